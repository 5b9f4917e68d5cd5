"""
Unit tests for the uploader module (GCS object upload).

Uses an in-memory fake of the storage client, so no GCS authentication is
needed. Validates destination keys, metadata resolution, transfer options
and error wrapping.
"""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import Forbidden

from gcs_deploy.catalog import FileEntry
from gcs_deploy.errors import GcsDeployError, TransferError
from gcs_deploy.uploader import (
    DEFAULT_UPLOAD_OPTIONS,
    ComputedValue,
    ObjectUploader,
    StaticValue,
    UploadResult,
    resolve_destination,
    validate_bucket_name,
)


class TestResolveDestination:
    """Test object key construction."""

    @pytest.mark.parametrize(
        "base_path,name,expected",
        [
            ("v1/", "index.html", "v1/index.html"),
            ("", "js/app.js", "js/app.js"),
            ("/", "index.html", "index.html"),
            ("", "/index.html", "index.html"),
            ("/releases/", "app.js", "releases/app.js"),
        ],
    )
    def test_destination(self, base_path, name, expected):
        assert resolve_destination(base_path, name) == expected

    def test_only_one_leading_slash_is_stripped(self):
        assert resolve_destination("//", "a.js") == "/a.js"


class TestValidateBucketName:
    """Test GCS bucket name validation."""

    @pytest.mark.parametrize("name", ["my-site", "assets.example.com", "a1b2c3", "cdn_bucket-01"])
    def test_valid_names(self, name):
        assert validate_bucket_name(name) is True

    @pytest.mark.parametrize(
        "name",
        ["", "ab", "My-Site", "-site", "site-", "google-site", "g00gle", "a..b", "a._b", "with space"],
    )
    def test_invalid_names(self, name):
        assert validate_bucket_name(name) is False


class TestMetadataValues:
    def test_static_value(self):
        assert StaticValue("public").resolve("a.js", "/dist/a.js") == "public"

    def test_computed_value_gets_name_and_path(self):
        value = ComputedValue(lambda name, path: f"{name}|{path}")
        assert value.resolve("a.js", "/dist/a.js") == "a.js|/dist/a.js"


class TestObjectUploader:
    """Test metadata resolution and transfers against the fake client."""

    def test_default_acl_is_public_read(self, fake_client):
        uploader = ObjectUploader(fake_client, "my-site")
        assert DEFAULT_UPLOAD_OPTIONS == {"predefined_acl": "publicRead"}
        assert uploader.resolve_upload_options("a.js", "/dist/a.js") == {"predefined_acl": "publicRead"}

    def test_none_option_is_dropped(self, fake_client):
        uploader = ObjectUploader(fake_client, "my-site", upload_options={"predefined_acl": None})
        assert uploader.resolve_upload_options("a.js", "/dist/a.js") == {}

    def test_content_type_guessed_without_metadata(self, fake_client):
        uploader = ObjectUploader(fake_client, "my-site")

        assert uploader.resolve_metadata("index.html", "/dist/index.html") == {"content_type": "text/html"}
        assert uploader.resolve_metadata("css/site.css", "/x") == {"content_type": "text/css"}
        assert uploader.resolve_metadata("blob.zzunknown", "/x") == {"content_type": None}

    def test_static_and_computed_metadata(self, fake_client):
        uploader = ObjectUploader(
            fake_client,
            "my-site",
            metadata={
                "cache_control": "public, max-age=60",
                "content_type": lambda name, path: "text/plain" if name.endswith(".txt") else None,
                "build": lambda name, path: path.upper(),
            },
        )

        assert uploader.resolve_metadata("a.txt", "/d/a.txt") == {
            "cache_control": "public, max-age=60",
            "content_type": "text/plain",
            "build": "/D/A.TXT",
        }
        # computed None falls back to the guessed type
        assert uploader.resolve_metadata("a.css", "/d/a.css")["content_type"] == "text/css"

    def test_upload_sends_file_with_acl(self, fake_client, build_dir: Path):
        uploader = ObjectUploader(fake_client, "my-site")
        entry = FileEntry("index.html", str(build_dir / "index.html"))

        result = asyncio.run(uploader.upload(entry, "v1/"))

        assert isinstance(result, UploadResult)
        assert result.gcs_uri == "gs://my-site/v1/index.html"
        assert result.destination == "v1/index.html"
        assert result.file_size_bytes == (build_dir / "index.html").stat().st_size
        assert result.duration_seconds >= 0

        (recorded,) = fake_client.bucket("my-site").uploads
        assert recorded.key == "v1/index.html"
        assert recorded.filename == str(build_dir / "index.html")
        assert recorded.content_type == "text/html"
        assert recorded.options == {"predefined_acl": "publicRead"}
        assert recorded.metadata is None

    def test_upload_applies_blob_properties_and_custom_metadata(self, fake_client, build_dir: Path):
        uploader = ObjectUploader(
            fake_client,
            "my-site",
            metadata={"cache_control": "no-cache", "release": "42"},
            upload_options={"predefined_acl": "private"},
        )

        asyncio.run(uploader.upload(FileEntry("style.css", str(build_dir / "style.css"))))

        (recorded,) = fake_client.bucket("my-site").uploads
        assert recorded.cache_control == "no-cache"
        assert recorded.metadata == {"release": "42"}
        assert recorded.options == {"predefined_acl": "private"}
        assert recorded.content_type == "text/css"

    def test_rejected_upload_raises_transfer_error(self, fake_client, build_dir: Path):
        fake_client.bucket("my-site").fail_names.add("bundle.js")
        uploader = ObjectUploader(fake_client, "my-site")

        with pytest.raises(TransferError) as exc_info:
            asyncio.run(uploader.upload(FileEntry("bundle.js", str(build_dir / "bundle.js")), "v1/"))

        error = exc_info.value
        assert isinstance(error, GcsDeployError)
        assert isinstance(error.cause, Forbidden)
        assert error.name == "bundle.js"
        assert error.destination == "v1/bundle.js"
        assert fake_client.bucket("my-site").uploads == []

    def test_missing_local_file_raises_transfer_error(self, fake_client, tmp_path: Path):
        uploader = ObjectUploader(fake_client, "my-site")

        with pytest.raises(TransferError) as exc_info:
            asyncio.run(uploader.upload(FileEntry("ghost.js", str(tmp_path / "ghost.js"))))

        assert isinstance(exc_info.value.cause, FileNotFoundError)

    def test_failing_metadata_function_raises_transfer_error(self, fake_client, build_dir: Path, monkeypatch):
        metrics = MagicMock()
        monkeypatch.setattr("gcs_deploy.uploader.uploader.get_metrics", lambda: metrics)

        def broken_cache_control(name, path):
            raise KeyError(name)

        uploader = ObjectUploader(fake_client, "my-site", metadata={"cache_control": broken_cache_control})

        with pytest.raises(TransferError) as exc_info:
            asyncio.run(uploader.upload(FileEntry("style.css", str(build_dir / "style.css")), "v1/"))

        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.destination == "v1/style.css"
        metrics.record_upload_failure.assert_called_once_with(bucket="my-site")
        metrics.record_gcs_error.assert_called_once_with(operation="upload", error_type="KeyError")
        assert fake_client.bucket("my-site").uploads == []
