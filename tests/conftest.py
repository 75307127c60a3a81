"""Global pytest fixtures and configuration."""

import sys
from pathlib import Path

import httpx
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from edge_updater.config import UpdaterConfig  # noqa: E402

MANIFEST_URL = "https://updates.test/manifest.yaml"
DOWNLOAD_BASE_URL = "https://updates.test"
BINARY_NAME = "test-os.app"


def write_fake_binary(path: Path, version: str, exit_code: int = 0) -> bytes:
    """Write a shell script that answers --version like a managed binary.

    Returns:
        The script bytes, for byte-identity assertions
    """
    script = f"#!/bin/sh\necho {version}\nexit {exit_code}\n".encode()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(script)
    path.chmod(0o755)
    return script


def fake_binary_bytes(version: str) -> bytes:
    return f"#!/bin/sh\necho {version}\nexit 0\n".encode()


@pytest.fixture
def make_binary():
    """Factory writing fake managed binaries (see write_fake_binary)."""
    return write_fake_binary


@pytest.fixture
def updater_config(tmp_path):
    """UpdaterConfig with every slot inside tmp_path and no retry delay."""
    return UpdaterConfig(
        manifest_url=MANIFEST_URL,
        download_base_url=DOWNLOAD_BASE_URL,
        binary_name=BINARY_NAME,
        bin_path=tmp_path / "bin" / BINARY_NAME,
        backup_path=tmp_path / "bin" / f"{BINARY_NAME}.bak",
        tmp_path=tmp_path / "staging" / BINARY_NAME,
        service_name="test_service",
        start_retry_delay=0.0,
        version_query_timeout=5.0,
    )


@pytest.fixture
def release_server():
    """In-process HTTP server double serving a manifest and one artifact.

    Mutate ``manifest``, ``artifact`` and ``status`` before running; every
    request URL is recorded in ``requests``.
    """

    class ReleaseServer:
        def __init__(self):
            self.manifest = "version: 1.2.0\nname: test-os\n"
            self.artifact = fake_binary_bytes("1.2.0")
            self.status = {}
            self.requests = []

        def publish(self, manifest_version: str, artifact_version: str = None) -> bytes:
            """Advertise a version and serve a binary reporting artifact_version."""
            self.manifest = f"version: {manifest_version}\nname: test-os\n"
            self.artifact = fake_binary_bytes(artifact_version or manifest_version)
            return self.artifact

        def handler(self, request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            self.requests.append(url)
            if url in self.status:
                return httpx.Response(self.status[url])
            if url == MANIFEST_URL:
                return httpx.Response(200, text=self.manifest)
            if url.startswith(DOWNLOAD_BASE_URL) and url.endswith(f"/{BINARY_NAME}"):
                return httpx.Response(200, content=self.artifact)
            return httpx.Response(404)

        @property
        def transport(self) -> httpx.MockTransport:
            return httpx.MockTransport(self.handler)

    return ReleaseServer()
