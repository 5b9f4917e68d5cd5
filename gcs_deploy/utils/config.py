"""
Environment configuration loader for gcs-deploy.

Loads deploy defaults from a .env file or environment variables so CI jobs
can configure the bucket without touching the build config.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from gcs_deploy.uploader.scheduler import UPLOAD_CHUNK_SIZE


@dataclass
class DeployConfig:
    """Deploy environment configuration."""

    # Google Cloud Storage
    gcs_bucket: str
    gcs_project: Optional[str] = None
    base_path: str = ""

    # CDN rewriting (disabled when unset)
    cdn_base: Optional[str] = None

    # Google Cloud Authentication
    google_credentials_path: Optional[str] = None

    # Upload settings
    upload_chunk_size: int = UPLOAD_CHUNK_SIZE

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "DeployConfig":
        """
        Load configuration from environment variables.

        Loads ``env_file`` (default: ``.env`` in the working directory) if it
        exists, then reads from os.environ. Variables already set in the
        environment win over the file.

        Returns:
            DeployConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        env_path = env_file if env_file is not None else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        gcs_bucket = os.getenv("GCS_BUCKET")
        if not gcs_bucket:
            raise ValueError(
                "GCS_BUCKET environment variable is required. "
                "Set it in .env or export it."
            )

        chunk_size_raw = os.getenv("GCS_UPLOAD_CHUNK_SIZE", str(UPLOAD_CHUNK_SIZE))
        try:
            upload_chunk_size = int(chunk_size_raw)
        except ValueError as e:
            raise ValueError(f"GCS_UPLOAD_CHUNK_SIZE must be an integer, got {chunk_size_raw!r}") from e

        return cls(
            gcs_bucket=gcs_bucket,
            gcs_project=os.getenv("GCS_PROJECT"),
            base_path=os.getenv("GCS_BASE_PATH", ""),
            cdn_base=os.getenv("GCS_CDN_BASE"),
            google_credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            upload_chunk_size=upload_chunk_size,
        )


# Global config instance (lazy-loaded)
_config: Optional[DeployConfig] = None


def get_config() -> DeployConfig:
    """
    Get or create deploy configuration singleton.

    Example:
        >>> config = get_config()
        >>> print(config.gcs_bucket)
        my-site-assets
    """
    global _config
    if _config is None:
        _config = DeployConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (used by tests)."""
    global _config
    _config = None
