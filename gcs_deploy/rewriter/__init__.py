"""
CDN rewriting of HTML/CSS build output.

Provides the text-level URL rewriter and the pipeline stage that applies it
to files on disk before upload.
"""

from .cdnizer import Cdnizer
from .rewriter import ContentRewriter

__all__ = ["Cdnizer", "ContentRewriter"]
