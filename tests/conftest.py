"""Shared fixtures: an in-memory stand-in for the GCS client and sample builds."""

import importlib.util
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from unittest.mock import patch

import pytest
from google.api_core.exceptions import Forbidden

from gcs_deploy.utils.config import reset_config

SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"


@dataclass
class RecordedUpload:
    key: str
    filename: str
    content_type: Optional[str]
    options: Dict[str, Any]
    metadata: Optional[Dict[str, Any]]
    cache_control: Optional[str]


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str) -> None:
        self.bucket = bucket
        self.name = name
        self.metadata = None
        self.cache_control = None
        self.content_encoding = None
        self.content_disposition = None
        self.content_language = None

    def upload_from_filename(self, filename: str, content_type: Optional[str] = None, **kwargs: Any) -> None:
        self.bucket.start()
        try:
            if self.bucket.delay:
                time.sleep(self.bucket.delay)
            if self.name.rsplit("/", 1)[-1] in self.bucket.fail_names:
                raise Forbidden(f"denied: {self.name}")
            with open(filename, "rb"):
                pass
            self.bucket.record(
                RecordedUpload(
                    key=self.name,
                    filename=filename,
                    content_type=content_type,
                    options=kwargs,
                    metadata=self.metadata,
                    cache_control=self.cache_control,
                )
            )
        finally:
            self.bucket.finish()


class FakeBucket:
    def __init__(self, name: str) -> None:
        self.name = name
        self.uploads: List[RecordedUpload] = []
        self.fail_names: Set[str] = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def blob(self, key: str) -> FakeBlob:
        return FakeBlob(self, key)

    def start(self) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def finish(self) -> None:
        with self._lock:
            self.in_flight -= 1

    def record(self, upload: RecordedUpload) -> None:
        with self._lock:
            self.uploads.append(upload)

    @property
    def keys(self) -> List[str]:
        return [u.key for u in self.uploads]


class FakeClient:
    def __init__(self) -> None:
        self.buckets: Dict[str, FakeBucket] = {}
        self.closed = False

    def bucket(self, name: str) -> FakeBucket:
        if name not in self.buckets:
            self.buckets[name] = FakeBucket(name)
        return self.buckets[name]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_gcs(fake_client: FakeClient):
    """Patch google.cloud.storage.Client to hand out the fake client."""
    with patch("google.cloud.storage.Client") as client_cls:
        client_cls.return_value = fake_client
        fake_client.client_cls = client_cls
        yield fake_client


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """A small build output: HTML, CSS, JS and an OS metadata file."""
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(
        '<html><head><link rel="stylesheet" href="/style.css"></head>'
        '<body><script src="bundle.js"></script></body></html>'
    )
    (dist / "style.css").write_text("body { background: url('img/bg.png'); }")
    (dist / "bundle.js").write_text("console.log('hello');")
    (dist / ".DS_Store").write_bytes(b"\x00\x00\x00\x01Bud1")
    return dist


@pytest.fixture
def deploy_cli(monkeypatch, tmp_path: Path):
    """
    The deploy script loaded as a module, isolated from the caller's environment.

    Runs from an empty working directory (no .env), with no GCS_* variables,
    a fresh environment config cache and logging setup left to pytest.
    """
    for name in ["GCS_BUCKET", "GCS_PROJECT", "GCS_BASE_PATH", "GCS_CDN_BASE", "GCS_UPLOAD_CHUNK_SIZE"]:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    spec = importlib.util.spec_from_file_location("deploy_cli", SCRIPTS_DIR / "deploy.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module, "setup_logging", lambda **kwargs: None)
    reset_config()
    yield module
    reset_config()
