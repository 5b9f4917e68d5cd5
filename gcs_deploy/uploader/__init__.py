"""
Google Cloud Storage upload stage.

Resolves per-object destination keys and metadata, and schedules transfers
in priority order with a bounded number in flight.
"""

from .scheduler import (
    UPLOAD_CHUNK_SIZE,
    iter_chunks,
    partition,
    upload_files_in_chunk,
    upload_in_priority_order,
)
from .uploader import (
    DEFAULT_UPLOAD_OPTIONS,
    ComputedValue,
    ObjectUploader,
    StaticValue,
    UploadResult,
    resolve_destination,
    validate_bucket_name,
)

__all__ = [
    "UPLOAD_CHUNK_SIZE",
    "DEFAULT_UPLOAD_OPTIONS",
    "ComputedValue",
    "ObjectUploader",
    "StaticValue",
    "UploadResult",
    "iter_chunks",
    "partition",
    "resolve_destination",
    "upload_files_in_chunk",
    "upload_in_priority_order",
    "validate_bucket_name",
]
