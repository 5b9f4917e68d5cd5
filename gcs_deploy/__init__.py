"""
gcs-deploy

Uploads a build's output to Google Cloud Storage once the build finishes:
include/exclude filtering, optional CDN rewriting of HTML/CSS, and
priority-ordered uploads with a bounded number of concurrent transfers.

This package provides modular components for each stage:
- catalog: Build output discovery (directory walk or asset manifest)
- rewriter: CDN URL rewriting of HTML/CSS files
- filtering: Include/exclude rules
- uploader: Upload scheduling and GCS transfers
- plugin: The post-build hook tying the stages together
"""

__version__ = "0.1.0"

from gcs_deploy.plugin import GcsPlugin

__all__ = ["GcsPlugin", "__version__"]
