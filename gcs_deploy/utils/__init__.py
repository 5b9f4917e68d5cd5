"""
Utility modules for gcs-deploy.

This package provides shared utilities used across all deploy stages:
- logging: Structured logging with entry/exit decorators
- paths: Storage key and local path helpers
- rules: Include/exclude/priority rule matching
- config / config_loader: Environment and YAML deploy configuration
- metrics: Prometheus counters for uploads
"""

from gcs_deploy.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
