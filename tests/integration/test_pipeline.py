"""Integration tests for end-to-end deploy workflows.

These tests verify that all components work together correctly:
- Deploy file -> plugin options -> discovery -> rewrite -> filter -> upload
- CLI script execution against a realistic build tree
- Error reporting through the build's error list
"""

from pathlib import Path

import pytest

CDN = "https://cdn.example.com/releases/v3"

DEPLOY_FILE = """
version: "1.0"
base_path: releases/v3
exclude: '\\.map$'
priority:
  - 'index\\.html$'
  - 'sw\\.js$'
html_files: offline.html
cdnizer:
  default_cdn_base: {cdn}
metadata:
  cache_control: public, max-age=31536000
  release: v3
chunk_size: 4
"""


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """A build tree with nested assets, source maps and a service worker."""
    site = tmp_path / "site"
    (site / "js").mkdir(parents=True)
    (site / "css").mkdir()
    (site / "img").mkdir()
    (site / "index.html").write_text(
        '<link href="/css/site.css" rel="stylesheet">'
        '<script src="js/app.js"></script>'
        '<a href="https://example.org/">external</a>'
    )
    (site / "offline.html").write_text('<img src="./img/logo.png">')
    (site / "css" / "site.css").write_text('.logo { background: url("../img/logo.png"); }')
    (site / "js" / "app.js").write_text("console.log('app');")
    (site / "js" / "app.js.map").write_text("{}")
    (site / "sw.js").write_text("self.addEventListener('fetch', () => {});")
    (site / "img" / "logo.png").write_bytes(b"\x89PNG\r\n")
    (site / ".DS_Store").write_bytes(b"\x00")
    for i in range(6):
        (site / "js" / f"chunk{i}.js").write_text(f"// chunk {i}")
    return site


@pytest.fixture
def deploy_file(tmp_path: Path) -> Path:
    path = tmp_path / "deploy.yaml"
    path.write_text(DEPLOY_FILE.format(cdn=CDN))
    return path


class TestDeployFromConfig:
    """Deploy file driven runs through the CLI entry point."""

    def test_full_deploy(self, deploy_cli, fake_gcs, site_dir: Path, deploy_file: Path):
        exit_code = deploy_cli.main(
            [str(site_dir), "--config", str(deploy_file), "--bucket", "my-site"]
        )

        assert exit_code == 0
        bucket = fake_gcs.bucket("my-site")
        keys = bucket.keys

        expected = {
            "index.html",
            "offline.html",
            "css/site.css",
            "js/app.js",
            "sw.js",
            "img/logo.png",
        } | {f"js/chunk{i}.js" for i in range(6)}
        assert sorted(keys) == sorted(f"releases/v3/{name}" for name in expected)

        # priority buckets land last, first rule's bucket before the second's
        assert keys[-2:] == ["releases/v3/index.html", "releases/v3/sw.js"]
        assert bucket.max_in_flight <= 4

        by_key = {u.key: u for u in bucket.uploads}
        assert by_key["releases/v3/css/site.css"].content_type == "text/css"
        assert by_key["releases/v3/js/app.js"].cache_control == "public, max-age=31536000"
        assert by_key["releases/v3/js/app.js"].metadata == {"release": "v3"}
        assert by_key["releases/v3/img/logo.png"].options == {"predefined_acl": "publicRead"}

    def test_build_files_are_rewritten_to_cdn(self, deploy_cli, fake_gcs, site_dir: Path, deploy_file: Path):
        deploy_cli.main([str(site_dir), "--config", str(deploy_file), "--bucket", "my-site"])

        index = (site_dir / "index.html").read_text()
        assert f'href="{CDN}/css/site.css"' in index
        assert f'src="{CDN}/js/app.js"' in index
        assert 'href="https://example.org/"' in index
        assert (site_dir / "offline.html").read_text() == f'<img src="{CDN}/img/logo.png">'
        assert (site_dir / "css" / "site.css").read_text() == (
            f'.logo {{ background: url("{CDN}/img/logo.png"); }}'
        )
        assert (site_dir / "js" / "app.js").read_text() == "console.log('app');"

    def test_failed_object_fails_deploy(self, deploy_cli, fake_gcs, site_dir: Path, deploy_file: Path, capsys):
        fake_gcs.bucket("my-site").fail_names.add("chunk3.js")

        exit_code = deploy_cli.main([str(site_dir), "--config", str(deploy_file), "--bucket", "my-site"])

        assert exit_code == 1
        assert "js/chunk3.js" in capsys.readouterr().out
        # nothing from the later priority buckets was attempted
        assert "releases/v3/index.html" not in fake_gcs.bucket("my-site").keys

    def test_environment_only_deploy(self, deploy_cli, fake_gcs, site_dir: Path, monkeypatch):
        monkeypatch.setenv("GCS_BUCKET", "env-site")
        monkeypatch.setenv("GCS_BASE_PATH", "env")

        assert deploy_cli.main([str(site_dir)]) == 0

        keys = fake_gcs.bucket("env-site").keys
        assert "env/js/app.js.map" in keys
        assert all(key.startswith("env/") for key in keys)
        assert len(keys) == 13
