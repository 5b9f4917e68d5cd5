"""
Post-build deploy plugin.

``GcsPlugin`` taps the build's ``done`` hook and runs the deploy pipeline::

    discover files -> rewrite CDN URLs -> filter -> partition -> upload

Example usage:
    >>> from gcs_deploy import GcsPlugin
    >>> from gcs_deploy.build import Compiler, Compilation
    >>>
    >>> plugin = GcsPlugin(
    ...     bucket="my-site",
    ...     directory="dist",
    ...     base_path="releases/",
    ...     base_path_transform=lambda path: path + "v42",
    ...     exclude=r"\\.map$",
    ...     priority=[r"index\\.html$"],
    ...     upload_metadata={"cache_control": "public, max-age=300"},
    ... )
    >>> compiler = Compiler(output_path="dist")
    >>> plugin.apply(compiler)
    >>> asyncio.run(compiler.run_done(Compilation(output_path="dist")))

Any failure is appended to ``compilation.errors`` as ``GcsPlugin: <error>``
and re-raised. A missing bucket is reported as a build error and nothing is
uploaded.
"""

import functools
import inspect
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from google.cloud import storage

from gcs_deploy import catalog
from gcs_deploy.build import Compilation, Compiler, Stats
from gcs_deploy.catalog import FileEntry
from gcs_deploy.errors import ConfigurationError, GcsDeployError
from gcs_deploy.filtering import FileFilter
from gcs_deploy.rewriter import ContentRewriter
from gcs_deploy.uploader import (
    UPLOAD_CHUNK_SIZE,
    ObjectUploader,
    UploadResult,
    upload_files_in_chunk,
    upload_in_priority_order,
    validate_bucket_name,
)
from gcs_deploy.utils.logging import get_logger, log_function_call, set_correlation_id
from gcs_deploy.utils.paths import normalize_local_path, normalize_storage_key
from gcs_deploy.utils.rules import Rule, compile_rule

logger = get_logger(__name__)

PLUGIN_NAME = "gcs-deploy-plugin"
REQUIRED_GCS_OPTS = ["bucket"]

BasePathTransform = Callable[[str], Union[str, Awaitable[str]]]


def identity_transform(path: str) -> str:
    return path


class GcsPlugin:
    """
    Uploads build output to a Google Cloud Storage bucket.

    Args:
        bucket: Target bucket (required)
        directory: Local directory to upload; when omitted the build's asset
            manifest is uploaded from its output path
        include: Rule a file name must match to be uploaded
        exclude: Rule that rejects matching file names
        base_path: Key prefix inside the bucket
        base_path_transform: ``fn(base_path)`` (sync or async) applied once per
            run before any upload, e.g. to append a version stamp
        html_files: Extra file(s), relative to ``directory``, fed into CDN
            rewriting and uploaded with the rest
        cdnizer_options: CDN rewrite options; empty disables rewriting
        upload_metadata: Field -> value or ``fn(name, path)``
        upload_options: ``upload_from_filename`` keyword -> value or
            ``fn(name, path)``; ``predefined_acl`` defaults to "publicRead"
        priority: Ordered rules; matching files are uploaded last, in reverse
            rule order
        project_id: GCP project for the storage client
        chunk_size: Maximum concurrent transfers

    Raises:
        ConfigurationError: If a rule or option value is malformed
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        directory: Optional[str] = None,
        include: Any = None,
        exclude: Any = None,
        base_path: Optional[str] = None,
        base_path_transform: BasePathTransform = identity_transform,
        html_files: Union[str, Sequence[str], None] = None,
        cdnizer_options: Optional[Dict[str, Any]] = None,
        upload_metadata: Optional[Dict[str, Any]] = None,
        upload_options: Optional[Dict[str, Any]] = None,
        priority: Optional[Sequence[Any]] = None,
        project_id: Optional[str] = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> None:
        if isinstance(html_files, str):
            html_files = [html_files]
        if priority is not None and not isinstance(priority, (list, tuple)):
            raise ConfigurationError("priority must be a list of rules")
        if not isinstance(chunk_size, int) or chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be a positive integer, got {chunk_size!r}")

        self.bucket = bucket
        self.directory = directory
        self.base_path = normalize_storage_key(base_path) if base_path else ""
        self.base_path_transform = base_path_transform
        self.project_id = project_id
        self.chunk_size = chunk_size
        self.upload_metadata = dict(upload_metadata or {})
        self.upload_options = dict(upload_options or {})

        self.file_filter = FileFilter(include=include, exclude=exclude)
        self.priority: Optional[List[Rule]] = (
            [compile_rule(rule) for rule in priority] if priority is not None else None
        )
        self.rewriter = ContentRewriter(cdnizer_options, html_files)

        self.is_directory_upload = bool(directory)
        self.resolved_base_path: Optional[str] = None

        self.is_connected = False
        self.client: Any = None
        self.uploader: Optional[ObjectUploader] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        if bucket and not validate_bucket_name(bucket):
            logger.warning(f"Bucket name does not follow GCS naming rules: {bucket}")

    def apply(self, compiler: Compiler) -> None:
        """Register the deploy run on the compiler's ``done`` hook."""
        # Directory mode only when a directory was given; the default below is
        # still used to resolve html_files
        self.directory = self.directory or compiler.output_path or compiler.context or "."
        compiler.hooks.done.tap(PLUGIN_NAME, self.on_build_done)

    def missing_required_options(self) -> List[str]:
        return [opt for opt in REQUIRED_GCS_OPTS if not getattr(self, opt)]

    async def on_build_done(self, stats: Stats) -> None:
        compilation = stats.compilation
        set_correlation_id(f"deploy-{uuid.uuid4().hex[:12]}")

        missing = self.missing_required_options()
        if missing:
            error = ConfigurationError(f"GcsPlugin-RequiredGcsOpts: {', '.join(REQUIRED_GCS_OPTS)}")
            logger.error(str(error), extra={"missing": missing})
            compilation.errors.append(error)
            return

        try:
            if self.is_directory_upload:
                files = await catalog.from_directory(normalize_local_path(self.directory))
            else:
                files = catalog.from_build_manifest(compilation)
            await self.handle_files(files)
        except Exception as e:
            self.handle_errors(e, compilation)

    def handle_errors(self, error: Exception, compilation: Compilation) -> None:
        logger.error(f"GcsPlugin: {error}", exc_info=error)
        compilation.errors.append(GcsDeployError(f"GcsPlugin: {error}"))
        raise error

    async def handle_files(self, files: Sequence[FileEntry]) -> List[UploadResult]:
        files = await self.rewriter.change_urls(files, self.directory or ".")
        files = self.file_filter.filter_files(files)
        return await self.upload_files(files)

    def connect(self) -> None:
        """Create the storage client and transfer pool on first use."""
        if self.is_connected:
            return

        self.client = storage.Client(project=self.project_id)
        self._executor = ThreadPoolExecutor(max_workers=self.chunk_size, thread_name_prefix="gcs-upload")
        self.uploader = ObjectUploader(
            client=self.client,
            bucket_name=self.bucket,
            metadata=self.upload_metadata,
            upload_options=self.upload_options,
            executor=self._executor,
        )
        self.is_connected = True
        logger.info(f"Connected to GCS bucket {self.bucket}")

    def close(self) -> None:
        """Release the transfer pool and the client's HTTP session."""
        if not self.is_connected:
            return
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
        self.client = None
        self.uploader = None
        self._executor = None
        self.is_connected = False

    async def transform_base_path(self) -> str:
        """Resolve the base path for this run; runs once, before any upload."""
        result = self.base_path_transform(self.base_path)
        if inspect.isawaitable(result):
            result = await result
        self.resolved_base_path = normalize_storage_key(result)
        logger.info(f"Uploading under base path '{self.resolved_base_path}'")
        return self.resolved_base_path

    @log_function_call
    async def upload_files(self, files: Sequence[FileEntry]) -> List[UploadResult]:
        base_path = await self.transform_base_path()
        self.connect()

        upload = functools.partial(self.uploader.upload, base_path=base_path)
        if self.priority is not None:
            results = await upload_in_priority_order(files, self.priority, upload, self.chunk_size)
        else:
            results = await upload_files_in_chunk(files, upload, self.chunk_size)

        total_bytes = sum(r.file_size_bytes for r in results)
        logger.info(
            f"Deploy complete: {len(results)} files, "
            f"{total_bytes / (1024 * 1024):.2f}MB uploaded to gs://{self.bucket}/{base_path}"
        )
        return results
