"""
Exception hierarchy for gcs-deploy.

Every failure in a deploy run surfaces as one of these. The plugin reports
the error into the build's error list and then re-raises it, so callers can
catch ``GcsDeployError`` to handle any deploy failure.
"""

from typing import Optional


class GcsDeployError(Exception):
    """Base class for all deploy errors."""


class ConfigurationError(GcsDeployError):
    """A required option is missing or an option has an invalid value."""


class InvalidRuleError(ConfigurationError):
    """An include/exclude/priority rule has an unrecognized shape."""

    def __init__(self, rule: object) -> None:
        self.rule = rule
        super().__init__(
            f"Invalid include / exclude rule: {rule!r} "
            f"(expected regex, callable, string or list, got {type(rule).__name__})"
        )


class DiscoveryError(GcsDeployError):
    """Listing the build output failed."""


class RewriteError(GcsDeployError):
    """Reading or writing an HTML/CSS file during CDN rewriting failed."""

    def __init__(self, path: str, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to rewrite {path}: {cause}")


class TransferError(GcsDeployError):
    """A single object upload failed."""

    def __init__(self, name: str, destination: str, cause: Optional[Exception] = None) -> None:
        self.name = name
        self.destination = destination
        self.cause = cause
        super().__init__(f"Failed to upload {name} to {destination}: {cause}")
