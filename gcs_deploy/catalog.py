"""
Build output discovery.

Produces the candidate file set for a deploy run, either by walking a local
directory or from the build's in-memory asset manifest. Every entry is a
``FileEntry`` whose ``name`` is the storage-relative key ("/" separated) and
whose ``path`` is where the bytes live on disk.
"""

import asyncio
import os
import re
from dataclasses import dataclass
from typing import Any, List, Sequence

from gcs_deploy.errors import DiscoveryError
from gcs_deploy.utils.logging import get_logger, log_function_call
from gcs_deploy.utils.paths import GCS_PATH_SEP, to_storage_name

logger = get_logger(__name__)

# OS metadata files that never belong in a bucket
UPLOAD_IGNORES = [r"(^|/)\.DS_Store$"]


@dataclass(frozen=True)
class FileEntry:
    """
    One file of the build output.

    Attributes:
        name: Storage-relative key, e.g. "js/app.js"
        path: Local filesystem location of the file
    """

    name: str
    path: str


def is_ignored(name: str, ignores: Sequence[str] = UPLOAD_IGNORES) -> bool:
    """True if the storage name matches any ignore pattern."""
    return any(re.search(pattern, name) for pattern in ignores)


def _walk(root: str, ignores: Sequence[str]) -> List[FileEntry]:
    def _raise(error: OSError) -> None:
        raise error

    entries: List[FileEntry] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise, followlinks=True):
        dirnames.sort()
        for filename in sorted(filenames):
            full_path = os.path.join(dirpath, filename)
            name = to_storage_name(os.path.relpath(full_path, root))
            if is_ignored(name, ignores):
                continue
            entries.append(FileEntry(name=name, path=full_path))
    return entries


@log_function_call
async def from_directory(root: str, ignores: Sequence[str] = UPLOAD_IGNORES) -> List[FileEntry]:
    """
    Recursively list every file under ``root``.

    The walk runs in a worker thread and follows symlinked directories.
    Files matching ``ignores`` are skipped.
    Entry order is deterministic (directories and files visited sorted).

    Args:
        root: Local directory to list
        ignores: Regex patterns of storage names to skip

    Returns:
        FileEntry list with absolute local paths

    Raises:
        DiscoveryError: If ``root`` is not a directory or cannot be read

    Example:
        >>> entries = asyncio.run(from_directory("dist/"))
        >>> [e.name for e in entries]
        ['css/site.css', 'index.html', 'js/app.js']
    """
    abs_root = os.path.abspath(root)
    if not os.path.isdir(abs_root):
        raise DiscoveryError(f"Upload directory not found: {root}")

    try:
        entries = await asyncio.to_thread(_walk, abs_root, ignores)
    except OSError as e:
        raise DiscoveryError(f"Failed to list {root}: {e}") from e

    logger.info(f"Found {len(entries)} files under {abs_root}")
    return entries


def from_build_manifest(compilation: Any) -> List[FileEntry]:
    """
    Map the build's emitted assets to FileEntry objects.

    Paths are synthesized as ``output_path + "/" + name`` and are not checked;
    a missing file surfaces later as a transfer failure.

    Raises:
        DiscoveryError: If the compilation has no readable asset manifest
    """
    try:
        names = list(compilation.assets.keys())
        output_path = compilation.output_path
    except AttributeError as e:
        raise DiscoveryError(f"Build manifest is unreadable: {e}") from e

    entries = [FileEntry(name=name, path=f"{output_path}{GCS_PATH_SEP}{name}") for name in names]
    logger.info(f"Found {len(entries)} assets in build manifest")
    return entries
