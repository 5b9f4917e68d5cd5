"""
Path helpers shared by the catalog, rewriter and uploader.

Storage keys always use "/" regardless of platform; local paths use os.sep.
"""

import os
import re
from typing import Any, Dict, Iterable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

PATH_SEP = os.sep
GCS_PATH_SEP = "/"

# Optional trailing "/" followed by the first query/fragment marker or the end
_TRAILING_SEP_RE = re.compile(r"/?(\?|#|$)")


def normalize_storage_key(path: str) -> str:
    """
    Ensure a storage prefix ends with "/".

    When the path carries a query or fragment, the separator is inserted
    right before the first "?" or "#". Empty input is returned unchanged.

    Example:
        >>> normalize_storage_key("assets/v1")
        'assets/v1/'
        >>> normalize_storage_key("assets/v1?x=1")
        'assets/v1/?x=1'
    """
    if not path:
        return path
    return _TRAILING_SEP_RE.sub(lambda m: GCS_PATH_SEP + m.group(1), path, count=1)


def normalize_local_path(path: str) -> str:
    """Append the local separator to a directory path if it is missing."""
    if not path:
        return path
    return path if path.endswith(PATH_SEP) else path + PATH_SEP


def to_storage_name(relative_path: str) -> str:
    """Convert a local relative path into a storage-relative key."""
    return GCS_PATH_SEP.join(relative_path.split(PATH_SEP))


def uniq_by(items: Iterable[T], key: str) -> List[T]:
    """
    De-duplicate objects by attribute, keeping the first occurrence.

    Example:
        >>> [e.name for e in uniq_by(entries, "name")]
        ['a', 'b']
    """
    seen: Dict[Any, bool] = {}
    result: List[T] = []
    for item in items:
        value = getattr(item, key)
        if value not in seen:
            seen[value] = True
            result.append(item)
    return result


def partition(items: Sequence[T], predicate: Any) -> Tuple[List[T], List[T]]:
    """Split items into (matching, non-matching), preserving order."""
    matching: List[T] = []
    rest: List[T] = []
    for item in items:
        (matching if predicate(item) else rest).append(item)
    return matching, rest
