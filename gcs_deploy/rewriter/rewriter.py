"""
In-place CDN rewriting of HTML and CSS build files.

When CDN options are configured, every ``.html``/``.css`` file in the
candidate set (plus any extra ``html_files``) is read, rewritten so its
references to build files point at the CDN, and written back to the same
path. All targets are rewritten concurrently. A failure on any file aborts
the whole step.

Options (``cdnizer_options``):
    default_cdn_base: CDN URL prefix, required when rewriting is enabled
    relative_root: Optional path prefix stripped from URLs before lookup
"""

import asyncio
import os
import re
from typing import Any, Dict, List, Optional, Sequence

from gcs_deploy.catalog import FileEntry
from gcs_deploy.errors import ConfigurationError, RewriteError
from gcs_deploy.rewriter.cdnizer import Cdnizer
from gcs_deploy.utils.logging import get_logger, log_function_call
from gcs_deploy.utils.metrics import get_metrics
from gcs_deploy.utils.paths import partition, uniq_by

logger = get_logger(__name__)

REWRITE_TARGET_RE = re.compile(r"\.(html|css)")


def _rewrite_file(entry: FileEntry, cdnizer: Cdnizer) -> FileEntry:
    # newline="" keeps CRLF line endings byte-for-byte
    try:
        with open(entry.path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
        rewritten = cdnizer.rewrite(content)
        with open(entry.path, "w", encoding="utf-8", newline="") as f:
            f.write(rewritten)
    except Exception as e:
        raise RewriteError(entry.path, e) from e

    logger.debug(f"Rewrote CDN URLs in {entry.name}")
    return entry


class ContentRewriter:
    """
    Rewrites URLs inside HTML/CSS files to reference a CDN.

    Args:
        cdnizer_options: Rewrite configuration; empty or None disables rewriting
        html_files: Extra file names, relative to the upload directory, that
            take part in rewriting (and are uploaded) even if the build did
            not emit them
    """

    def __init__(
        self,
        cdnizer_options: Optional[Dict[str, Any]] = None,
        html_files: Optional[Sequence[str]] = None,
    ) -> None:
        self.options = dict(cdnizer_options or {})
        self.html_files = list(html_files or [])
        self.enabled = bool(self.options)

        if self.enabled and not self.options.get("default_cdn_base"):
            raise ConfigurationError("cdnizer_options requires 'default_cdn_base'")

    def _html_entries(self, directory: str) -> List[FileEntry]:
        return [
            FileEntry(name=name, path=os.path.abspath(os.path.join(directory, name)))
            for name in self.html_files
        ]

    @log_function_call
    async def change_urls(self, files: Sequence[FileEntry], directory: str = ".") -> List[FileEntry]:
        """
        Rewrite HTML/CSS files in place and return the de-duplicated file set.

        Returns the input unchanged when rewriting is disabled. Otherwise the
        result lists rewrite targets first, then every other file.

        Raises:
            RewriteError: If any target cannot be read or written
        """
        if not self.enabled:
            return list(files)

        all_files = uniq_by(self._html_entries(directory) + list(files), "name")
        cdnizer = Cdnizer(
            self.options["default_cdn_base"],
            [f.name for f in all_files],
            relative_root=self.options.get("relative_root"),
        )

        targets, others = partition(all_files, lambda f: REWRITE_TARGET_RE.search(f.name))
        logger.info(f"Rewriting CDN URLs in {len(targets)} HTML/CSS files")

        rewritten = await asyncio.gather(
            *(asyncio.to_thread(_rewrite_file, entry, cdnizer) for entry in targets)
        )
        get_metrics().record_rewrites(len(rewritten))

        return list(rewritten) + others
