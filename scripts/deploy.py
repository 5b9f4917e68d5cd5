#!/usr/bin/env python3
"""
Deploy a build directory to Google Cloud Storage.

CLI wrapper around GcsPlugin for build systems without a plugin API: run it
as the last step of the build. Options come from, in increasing precedence,
environment variables (.env), a YAML deploy file, and command-line flags.

Usage:
    python scripts/deploy.py dist/ --bucket my-site
    python scripts/deploy.py dist/ --config deploy.yaml
    python scripts/deploy.py dist/ --base-path releases/v42/ --priority 'index\\.html$'
    python scripts/deploy.py dist/ --cdn-base https://cdn.example.com --html-file index.html
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

import yaml

# Add project root to path for imports (before other imports)
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from gcs_deploy import GcsPlugin  # noqa: E402
from gcs_deploy.build import Compilation, Compiler  # noqa: E402
from gcs_deploy.errors import GcsDeployError  # noqa: E402
from gcs_deploy.utils.config import get_config  # noqa: E402
from gcs_deploy.utils.config_loader import (  # noqa: E402
    load_config,
    plugin_options_from_config,
    validate_config,
)
from gcs_deploy.utils.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger(__name__)


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Deploy build output to Google Cloud Storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload everything under dist/
  %(prog)s dist/ --bucket my-site

  # Use a deploy file, override the base path
  %(prog)s dist/ --config deploy.yaml --base-path releases/v42/

  # Upload index.html after all other files
  %(prog)s dist/ --bucket my-site --priority 'index\\.html$'

  # Rewrite HTML/CSS references to a CDN before upload
  %(prog)s dist/ --bucket my-site --cdn-base https://cdn.example.com
        """,
    )

    parser.add_argument("directory", help="Build output directory to upload")
    parser.add_argument("-b", "--bucket", help="GCS bucket (default: GCS_BUCKET)")
    parser.add_argument("-c", "--config", help="YAML deploy file")
    parser.add_argument("--base-path", help="Key prefix inside the bucket (default: GCS_BASE_PATH)")
    parser.add_argument("--project", help="GCP project (default: GCS_PROJECT)")
    parser.add_argument("-i", "--include", help="Regex a file name must match")
    parser.add_argument("-e", "--exclude", help="Regex of file names to skip")
    parser.add_argument(
        "--priority",
        action="append",
        help="Regex of files uploaded last; repeat for several levels",
    )
    parser.add_argument(
        "--html-file",
        action="append",
        dest="html_files",
        help="Extra file to CDN-rewrite and upload (repeatable)",
    )
    parser.add_argument("--cdn-base", help="CDN base URL; enables HTML/CSS rewriting")
    parser.add_argument(
        "-m",
        "--metadata",
        action="append",
        help="Metadata key=value pairs (can specify multiple times)",
    )
    parser.add_argument("--chunk-size", type=int, help="Maximum concurrent uploads")
    parser.add_argument(
        "--private",
        action="store_true",
        help="Do not apply the default publicRead ACL",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    return parser.parse_args(argv)


def parse_metadata(metadata_args: List[str]) -> Dict[str, str]:
    """Parse metadata arguments into dictionary."""
    metadata: Dict[str, str] = {}
    for item in metadata_args or []:
        if "=" not in item:
            logger.warning(f"Invalid metadata format (use key=value): {item}")
            continue

        key, value = item.split("=", 1)
        metadata[key.strip()] = value.strip()

    return metadata


def build_plugin_options(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Merge environment, deploy file and CLI flags into GcsPlugin options.

    Raises:
        ValueError: If the deploy file is invalid or no bucket is configured
    """
    options: Dict[str, Any] = {}

    try:
        env_config = get_config()
    except ValueError as e:
        env_config = None
        logger.debug(f"Environment config not used: {e}")

    if env_config is not None:
        options["bucket"] = env_config.gcs_bucket
        options["project_id"] = env_config.gcs_project
        options["chunk_size"] = env_config.upload_chunk_size
        if env_config.base_path:
            options["base_path"] = env_config.base_path
        if env_config.cdn_base:
            options["cdnizer_options"] = {"default_cdn_base": env_config.cdn_base}

    if args.config:
        config = load_config(args.config)
        errors = validate_config(config)
        if errors:
            raise ValueError("Invalid deploy file:\n" + "\n".join(f"  - {e}" for e in errors))
        options.update(plugin_options_from_config(config))

    flag_options = {
        "bucket": args.bucket,
        "base_path": args.base_path,
        "project_id": args.project,
        "include": args.include,
        "exclude": args.exclude,
        "priority": args.priority,
        "html_files": args.html_files,
        "chunk_size": args.chunk_size,
    }
    options.update({key: value for key, value in flag_options.items() if value is not None})

    if args.cdn_base:
        options["cdnizer_options"] = {
            **options.get("cdnizer_options", {}),
            "default_cdn_base": args.cdn_base,
        }

    metadata = parse_metadata(args.metadata)
    if metadata:
        options["upload_metadata"] = {**options.get("upload_metadata", {}), **metadata}

    if args.private:
        options["upload_options"] = {**options.get("upload_options", {}), "predefined_acl": None}

    # The positional directory always wins over the deploy file
    options["directory"] = args.directory

    if not options.get("bucket"):
        raise ValueError("No bucket configured: pass --bucket, set it in the deploy file or export GCS_BUCKET")

    return options


async def run_deploy(options: Dict[str, Any]) -> Compilation:
    plugin = GcsPlugin(**options)
    compiler = Compiler(output_path=options["directory"])
    plugin.apply(compiler)
    compilation = Compilation(output_path=options["directory"])
    try:
        await compiler.run_done(compilation)
    finally:
        plugin.close()
    return compilation


def main(argv: List[str] = None) -> int:
    """Main entry point for deploy CLI."""
    args = parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else "INFO")

    if not Path(args.directory).is_dir():
        print(f"❌ Not a directory: {args.directory}")
        return 1

    try:
        options = build_plugin_options(args)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        print(f"❌ Configuration error: {e}")
        return 1

    print(f"📤 Deploying {args.directory} to gs://{options['bucket']}/{options.get('base_path', '')}")

    try:
        compilation = asyncio.run(run_deploy(options))
    except KeyboardInterrupt:
        print("\n⚠️  Deploy cancelled by user")
        return 130
    except GcsDeployError as e:
        print(f"❌ Deploy failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"❌ Unexpected error: {e}")
        return 1

    if compilation.errors:
        for error in compilation.errors:
            print(f"❌ {error}")
        return 1

    print("✅ Deploy complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
