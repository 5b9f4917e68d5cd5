"""
Deploy file loader and validator.

Loads YAML deploy files and turns them into ``GcsPlugin`` keyword arguments.
Rules are written as regular-expression strings; a list of strings means
all of them must match.

Example deploy file (deploy.yaml):
    ```yaml
    version: "1.0"
    bucket: my-site-assets
    directory: dist
    base_path: releases/

    exclude: '\\.map$'
    priority:
      - 'index\\.html$'

    cdnizer:
      default_cdn_base: https://cdn.example.com/releases

    metadata:
      cache_control: public, max-age=31536000

    upload_options:
      predefined_acl: publicRead
    ```

Usage:
    >>> config = load_config("deploy.yaml")
    >>> errors = validate_config(config)
    >>> if not errors:
    ...     plugin = GcsPlugin(**plugin_options_from_config(config))
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from gcs_deploy.utils.logging import get_logger

logger = get_logger(__name__)


SUPPORTED_VERSIONS = ["1.0"]

KNOWN_KEYS = [
    "version",
    "bucket",
    "project_id",
    "directory",
    "base_path",
    "include",
    "exclude",
    "priority",
    "html_files",
    "cdnizer",
    "metadata",
    "upload_options",
    "chunk_size",
]


@dataclass
class ConfigError:
    """Validation error in a deploy file."""

    field: str
    message: str
    value: Optional[Any] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value})"
        return f"{self.field}: {self.message}"


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a deploy file.

    Args:
        config_path: Path to YAML deploy file

    Returns:
        Dictionary containing parsed configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If the path is not a file or the file is empty
        yaml.YAMLError: If YAML is malformed
    """
    path = Path(config_path)
    logger.info(f"Loading deploy configuration from: {path}")

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Configuration path is not a file: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise

    if config is None:
        raise ValueError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(config).__name__}")

    logger.info(f"✓ Configuration loaded for bucket: {config.get('bucket', 'unknown')}")
    return dict(config)


def _validate_rule(field: str, value: Any) -> List[ConfigError]:
    members = value if isinstance(value, list) else [value]
    errors: List[ConfigError] = []
    for member in members:
        if not isinstance(member, str):
            errors.append(ConfigError(field, "Rules must be regex strings", type(member).__name__))
            continue
        try:
            re.compile(member)
        except re.error as e:
            errors.append(ConfigError(field, f"Invalid regular expression: {e}", member))
    return errors


def validate_config(config: Dict[str, Any]) -> List[ConfigError]:
    """
    Validate a deploy file against the expected schema.

    Args:
        config: Configuration dictionary to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[ConfigError] = []

    if "version" not in config:
        errors.append(ConfigError("version", "Missing required field"))
    elif str(config["version"]) not in SUPPORTED_VERSIONS:
        errors.append(
            ConfigError(
                "version",
                f"Unsupported version (supported: {SUPPORTED_VERSIONS})",
                config["version"],
            )
        )

    for key in config:
        if key not in KNOWN_KEYS:
            errors.append(ConfigError(key, "Unknown field"))

    if "bucket" in config and not isinstance(config["bucket"], str):
        errors.append(ConfigError("bucket", "Must be a string", type(config["bucket"]).__name__))

    for field in ["directory", "base_path", "project_id"]:
        if field in config and config[field] is not None and not isinstance(config[field], str):
            errors.append(ConfigError(field, "Must be a string", type(config[field]).__name__))

    for field in ["include", "exclude"]:
        if config.get(field) is not None:
            errors.extend(_validate_rule(field, config[field]))

    if config.get("priority") is not None:
        priority = config["priority"]
        if not isinstance(priority, list):
            errors.append(ConfigError("priority", "Must be a list", type(priority).__name__))
        else:
            for i, rule in enumerate(priority):
                errors.extend(_validate_rule(f"priority[{i}]", rule))

    html_files = config.get("html_files")
    if html_files is not None and not isinstance(html_files, (str, list)):
        errors.append(ConfigError("html_files", "Must be a string or list", type(html_files).__name__))

    cdnizer = config.get("cdnizer")
    if cdnizer is not None:
        if not isinstance(cdnizer, dict):
            errors.append(ConfigError("cdnizer", "Must be a mapping", type(cdnizer).__name__))
        elif cdnizer and not cdnizer.get("default_cdn_base"):
            errors.append(ConfigError("cdnizer.default_cdn_base", "Missing required field"))

    for field in ["metadata", "upload_options"]:
        if config.get(field) is not None and not isinstance(config[field], dict):
            errors.append(ConfigError(field, "Must be a mapping", type(config[field]).__name__))

    if "chunk_size" in config:
        chunk_size = config["chunk_size"]
        if not isinstance(chunk_size, int) or isinstance(chunk_size, bool):
            errors.append(ConfigError("chunk_size", "Must be an integer", type(chunk_size).__name__))
        elif chunk_size < 1:
            errors.append(ConfigError("chunk_size", "Must be at least 1", chunk_size))

    if errors:
        logger.warning(f"Configuration validation failed with {len(errors)} errors")
    else:
        logger.info("✓ Configuration validation passed")

    return errors


def plugin_options_from_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a validated deploy file onto ``GcsPlugin`` keyword arguments.

    Keys absent from the file are left out so plugin defaults apply.
    """
    renames = {"cdnizer": "cdnizer_options", "metadata": "upload_metadata"}
    options: Dict[str, Any] = {}
    for key, value in config.items():
        if key == "version" or value is None:
            continue
        options[renames.get(key, key)] = value
    return options
