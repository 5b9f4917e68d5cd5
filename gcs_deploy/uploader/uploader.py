"""
Google Cloud Storage object uploader.

Resolves the destination key and metadata of each build file and hands the
transfer to google-cloud-storage. Transfers are blocking SDK calls, so they
run on a thread pool owned by the plugin; the async ``upload`` method lets
the scheduler keep many of them in flight at once.

Example usage:
    >>> from google.cloud import storage
    >>> uploader = ObjectUploader(
    ...     client=storage.Client(),
    ...     bucket_name="my-site",
    ...     metadata={"cache_control": "public, max-age=31536000"},
    ... )
    >>> result = asyncio.run(uploader.upload(FileEntry("js/app.js", "dist/js/app.js"), "v1/"))
    >>> result.gcs_uri
    'gs://my-site/v1/js/app.js'
"""

import asyncio
import functools
import mimetypes
import os
import re
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from gcs_deploy.catalog import FileEntry
from gcs_deploy.errors import TransferError
from gcs_deploy.utils.logging import get_logger, log_function_call
from gcs_deploy.utils.metrics import get_metrics
from gcs_deploy.utils.paths import GCS_PATH_SEP

logger = get_logger(__name__)

# Transfer options applied to every upload unless overridden
DEFAULT_UPLOAD_OPTIONS: Dict[str, Any] = {"predefined_acl": "publicRead"}

# Metadata fields that map to blob properties; anything else is custom metadata
BLOB_PROPERTIES = (
    "content_type",
    "cache_control",
    "content_encoding",
    "content_disposition",
    "content_language",
)

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._-]{1,220}[a-z0-9]$")


@dataclass(frozen=True)
class StaticValue:
    """Metadata value used as-is for every file."""

    value: Any

    def resolve(self, name: str, path: str) -> Any:
        return self.value


@dataclass(frozen=True)
class ComputedValue:
    """Metadata value computed per file from ``(name, path)``."""

    fn: Callable[[str, str], Any]

    def resolve(self, name: str, path: str) -> Any:
        return self.fn(name, path)


MetadataValue = Union[StaticValue, ComputedValue]


def as_metadata_value(value: Any) -> MetadataValue:
    if isinstance(value, (StaticValue, ComputedValue)):
        return value
    return ComputedValue(value) if callable(value) else StaticValue(value)


@dataclass
class UploadResult:
    """
    Result of a single object upload.

    Attributes:
        name: Storage-relative name of the file
        destination: Object key inside the bucket
        gcs_uri: Full GCS URI (gs://bucket/key)
        local_path: Local file that was uploaded
        content_type: Content type sent with the object
        file_size_bytes: Size of uploaded file
        duration_seconds: Upload time in seconds
    """

    name: str
    destination: str
    gcs_uri: str
    local_path: str
    content_type: Optional[str]
    file_size_bytes: int
    duration_seconds: float


def validate_bucket_name(bucket_name: str) -> bool:
    """
    Check a bucket name against GCS naming rules.

    Does NOT verify bucket existence.

    Example:
        >>> validate_bucket_name("my-site")
        True
        >>> validate_bucket_name("google-site")
        False
    """
    if not bucket_name or not _BUCKET_NAME_RE.match(bucket_name):
        return False
    if bucket_name.startswith("goog") or bucket_name.startswith("g00g"):
        return False
    if ".." in bucket_name or "._" in bucket_name:
        return False
    return True


def resolve_destination(base_path: str, name: str) -> str:
    """
    Build the object key for a file.

    Exactly one leading "/" is stripped, so the bucket never gets an
    unnamed top-level folder.

    Example:
        >>> resolve_destination("v1/", "app.js")
        'v1/app.js'
        >>> resolve_destination("", "/app.js")
        'app.js'
    """
    destination = (base_path or "") + name
    if destination.startswith(GCS_PATH_SEP):
        destination = destination[1:]
    return destination


class ObjectUploader:
    """
    Uploads FileEntry objects to one GCS bucket.

    Args:
        client: google.cloud.storage.Client
        bucket_name: Target bucket
        metadata: Field -> value or ``fn(name, path)``. Fields in
            BLOB_PROPERTIES become blob properties, others custom metadata.
        upload_options: Keyword arguments for ``Blob.upload_from_filename``
            (value or ``fn(name, path)``), merged over DEFAULT_UPLOAD_OPTIONS
        executor: Thread pool the blocking transfers run on
    """

    def __init__(
        self,
        client: Any,
        bucket_name: str,
        metadata: Optional[Mapping[str, Any]] = None,
        upload_options: Optional[Mapping[str, Any]] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.client = client
        self.bucket_name = bucket_name
        self.metadata = {key: as_metadata_value(v) for key, v in (metadata or {}).items()}
        merged_options = {**DEFAULT_UPLOAD_OPTIONS, **(upload_options or {})}
        self.upload_options = {key: as_metadata_value(v) for key, v in merged_options.items()}
        self.executor = executor
        self._bucket = None

    @property
    def bucket(self) -> Any:
        if self._bucket is None:
            self._bucket = self.client.bucket(self.bucket_name)
        return self._bucket

    def resolve_metadata(self, name: str, path: str) -> Dict[str, Any]:
        """
        Resolve every configured metadata field for one file.

        ``content_type`` is guessed from the name's extension when it is not
        configured or resolves to None.
        """
        resolved = {key: value.resolve(name, path) for key, value in self.metadata.items()}
        if resolved.get("content_type") is None:
            resolved["content_type"] = mimetypes.guess_type(name)[0]
        return resolved

    def resolve_upload_options(self, name: str, path: str) -> Dict[str, Any]:
        resolved = {key: value.resolve(name, path) for key, value in self.upload_options.items()}
        return {key: value for key, value in resolved.items() if value is not None}

    def _perform_gcs_upload(
        self,
        blob: Any,
        path: str,
        metadata: Dict[str, Any],
        options: Dict[str, Any],
    ) -> int:
        """Blocking part of an upload; runs on the executor. Returns bytes sent."""
        file_size = os.path.getsize(path)

        for prop in BLOB_PROPERTIES:
            if prop != "content_type" and metadata.get(prop) is not None:
                setattr(blob, prop, metadata[prop])

        custom = {k: v for k, v in metadata.items() if k not in BLOB_PROPERTIES}
        if custom:
            blob.metadata = custom

        with get_metrics().track_upload():
            blob.upload_from_filename(path, content_type=metadata.get("content_type"), **options)

        return file_size

    @log_function_call
    async def upload(self, entry: FileEntry, base_path: str = "") -> UploadResult:
        """
        Upload one file under ``base_path``.

        Not retried here; google-cloud-storage applies its own retry policy
        to transient errors.

        Raises:
            TransferError: If the transfer fails for any reason
        """
        destination = resolve_destination(base_path, entry.name)
        gcs_uri = f"gs://{self.bucket_name}/{destination}"
        metrics = get_metrics()

        logger.debug(f"Uploading {entry.path} -> {gcs_uri}")
        start_time = time.time()
        loop = asyncio.get_running_loop()

        try:
            # User-supplied fn(name, path) values can raise too
            metadata = self.resolve_metadata(entry.name, entry.path)
            options = self.resolve_upload_options(entry.name, entry.path)
            blob = self.bucket.blob(destination)
            file_size = await loop.run_in_executor(
                self.executor,
                functools.partial(self._perform_gcs_upload, blob, entry.path, metadata, options),
            )
        except Exception as e:
            logger.error(f"GCS upload failed: {entry.name} -> {gcs_uri}: {e}")
            metrics.record_upload_failure(bucket=self.bucket_name)
            metrics.record_gcs_error(operation="upload", error_type=type(e).__name__)
            raise TransferError(entry.name, destination, e) from e

        duration = time.time() - start_time
        metrics.record_upload_success(bytes_uploaded=file_size, bucket=self.bucket_name)
        logger.debug(f"Upload successful: {gcs_uri} ({file_size} bytes in {duration:.2f}s)")

        return UploadResult(
            name=entry.name,
            destination=destination,
            gcs_uri=gcs_uri,
            local_path=entry.path,
            content_type=metadata.get("content_type"),
            file_size_bytes=file_size,
            duration_seconds=duration,
        )
