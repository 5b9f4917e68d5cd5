"""
Priority-ordered, concurrency-bounded upload scheduling.

Files are uploaded in chunks of at most ``chunk_size`` concurrent transfers.
Chunks run one after another; transfers inside a chunk race each other.

With priority rules the filtered set is first split into buckets::

    [remainder, priority[0] matches, priority[1] matches, ...]

and buckets are uploaded strictly in that order, so the files matched by the
first priority rule are the last to land. A typical use is uploading
``index.html`` after every asset it references already exists.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

from gcs_deploy.catalog import FileEntry
from gcs_deploy.utils.logging import get_logger
from gcs_deploy.utils.rules import compile_rule

logger = get_logger(__name__)

UPLOAD_CHUNK_SIZE = 50

T = TypeVar("T")
UploadFn = Callable[[FileEntry], Awaitable[T]]


def iter_chunks(files: Sequence[FileEntry], chunk_size: int) -> Iterator[Sequence[FileEntry]]:
    """
    Yield consecutive slices of at most ``chunk_size`` entries.

    Example:
        >>> [len(c) for c in iter_chunks(files_120, 50)]
        [50, 50, 20]
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for start in range(0, len(files), chunk_size):
        yield files[start:start + chunk_size]


def partition(files: Sequence[FileEntry], priority_rules: Sequence[Any]) -> List[List[FileEntry]]:
    """
    Split files into upload buckets by priority rule.

    Each entry goes to the first rule it matches; unmatched entries form the
    remainder bucket, returned first in original order. Each rule's bucket
    lists its entries in reverse of their original order.

    Example:
        >>> buckets = partition([f1, f2, f3, f4], [rule_matching_f2_and_f4])
        >>> buckets
        [[f1, f3], [f4, f2]]
    """
    rules = [compile_rule(rule) for rule in priority_rules]

    def _tag(entry: FileEntry) -> Optional[int]:
        for index, rule in enumerate(rules):
            if rule.matches(entry.name):
                return index
        return None

    tagged = [(entry, _tag(entry)) for entry in files]

    remainder = [entry for entry, tag in tagged if tag is None]
    buckets = [
        [entry for entry, tag in reversed(tagged) if tag == index]
        for index in range(len(rules))
    ]
    return [remainder] + buckets


async def upload_files_in_chunk(
    files: Sequence[FileEntry],
    upload: UploadFn,
    chunk_size: int = UPLOAD_CHUNK_SIZE,
) -> List[Any]:
    """
    Upload files in sequential chunks, concurrently within each chunk.

    A failed transfer fails the chunk and everything after it. Sibling
    transfers already started are not cancelled, only no longer awaited.

    Returns:
        Results of ``upload`` in input order
    """
    results: List[Any] = []
    chunks = list(iter_chunks(files, chunk_size))
    for number, chunk in enumerate(chunks, start=1):
        logger.debug(f"Uploading chunk {number}/{len(chunks)} ({len(chunk)} files)")
        results.extend(await asyncio.gather(*(upload(entry) for entry in chunk)))
    return results


async def upload_in_priority_order(
    files: Sequence[FileEntry],
    priority_rules: Sequence[Any],
    upload: UploadFn,
    chunk_size: int = UPLOAD_CHUNK_SIZE,
) -> List[Any]:
    """
    Upload each priority bucket to completion before starting the next.

    Returns:
        Results of ``upload`` in bucket order
    """
    buckets = partition(files, priority_rules)
    logger.info(
        "Upload buckets: " + ", ".join(str(len(bucket)) for bucket in buckets),
        extra={"bucket_sizes": [len(bucket) for bucket in buckets]},
    )

    results: List[Any] = []
    for bucket in buckets:
        results.extend(await upload_files_in_chunk(bucket, upload, chunk_size))
    return results
