"""Unit tests for DownloadService."""

import stat
import pytest
from unittest.mock import patch
import httpx

from edge_updater.exceptions import (
    ExecutablePermissionError,
    FetchError,
    UnsupportedPlatform,
)
from edge_updater.services.download import DownloadService

BASE_URL = "https://updates.test"
ARTIFACT_URL = f"{BASE_URL}/1.2.0/amd64/test-os.app"


def serve(content: bytes = b"", status: int = 200, seen=None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return httpx.Response(status, content=content)

    return httpx.MockTransport(handler)


@pytest.mark.unit
class TestResolveDownloadUrl:
    """Test per-architecture URL construction."""

    @pytest.fixture
    def download_service(self):
        return DownloadService(BASE_URL + "/", "test-os.app")

    def test_x86_64_maps_to_amd64(self, download_service):
        url = download_service.resolve_download_url("1.2.0", machine="x86_64")

        assert url == ARTIFACT_URL

    def test_aarch64_is_kept(self, download_service):
        url = download_service.resolve_download_url("1.2.0", machine="aarch64")

        assert url == f"{BASE_URL}/1.2.0/aarch64/test-os.app"

    @pytest.mark.parametrize("machine", ["arm64", "armv7l", "i686", "AMD64", "riscv64", ""])
    def test_other_architectures_rejected(self, download_service, machine):
        with pytest.raises(UnsupportedPlatform, match="Unsupported platform"):
            download_service.resolve_download_url("1.2.0", machine=machine)

    def test_defaults_to_running_platform(self, download_service):
        with patch("edge_updater.services.download.platform.machine", return_value="aarch64"):
            url = download_service.resolve_download_url("2.0.0")

        assert url == f"{BASE_URL}/2.0.0/aarch64/test-os.app"


@pytest.mark.unit
class TestDownloadService:
    """Test streaming download and chmod against tmp_path."""

    @pytest.mark.asyncio
    async def test_download_writes_body(self, tmp_path):
        content = b"\x7fELF" + b"x" * 200_000
        destination = tmp_path / "staging" / "test-os.app"
        service = DownloadService(BASE_URL, "test-os.app", chunk_size=4096, transport=serve(content))

        result = await service.download(ARTIFACT_URL, destination)

        assert result == destination
        assert destination.read_bytes() == content

    @pytest.mark.asyncio
    async def test_download_overwrites_existing_file(self, tmp_path):
        destination = tmp_path / "test-os.app"
        destination.write_bytes(b"old partial download that is longer")
        service = DownloadService(BASE_URL, "test-os.app", transport=serve(b"new"))

        await service.download(ARTIFACT_URL, destination)

        assert destination.read_bytes() == b"new"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 503])
    async def test_download_non_2xx_raises(self, tmp_path, status):
        service = DownloadService(BASE_URL, "test-os.app", transport=serve(b"error page", status=status))

        with pytest.raises(FetchError, match="DOWNLOAD_FAILED"):
            await service.download(ARTIFACT_URL, tmp_path / "test-os.app")

    @pytest.mark.asyncio
    async def test_download_follows_redirect(self, tmp_path):
        """Artifacts may be served from a CDN behind a redirect."""
        cdn_url = "https://cdn.test/mirror/1.2.0/amd64/test-os.app"
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            if str(request.url) == ARTIFACT_URL:
                return httpx.Response(302, headers={"Location": cdn_url})
            return httpx.Response(200, content=b"\x7fELF binary")

        destination = tmp_path / "test-os.app"
        service = DownloadService(BASE_URL, "test-os.app", transport=httpx.MockTransport(handler))

        await service.download(ARTIFACT_URL, destination)

        assert destination.read_bytes() == b"\x7fELF binary"
        assert seen == [ARTIFACT_URL, cdn_url]

    @pytest.mark.asyncio
    async def test_download_redirect_to_missing_artifact_raises(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "updates.test":
                return httpx.Response(301, headers={"Location": "https://cdn.test/gone"})
            return httpx.Response(404, content=b"not found")

        service = DownloadService(BASE_URL, "test-os.app", transport=httpx.MockTransport(handler))

        with pytest.raises(FetchError, match="404"):
            await service.download(ARTIFACT_URL, tmp_path / "test-os.app")

    @pytest.mark.asyncio
    async def test_download_transport_error_raises(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        service = DownloadService(BASE_URL, "test-os.app", transport=httpx.MockTransport(handler))

        with pytest.raises(FetchError, match="timed out"):
            await service.download(ARTIFACT_URL, tmp_path / "test-os.app")

    @pytest.mark.asyncio
    async def test_download_write_error_raises(self, tmp_path):
        """Destination that cannot be opened for writing."""
        destination = tmp_path / "is-a-directory"
        destination.mkdir()
        service = DownloadService(BASE_URL, "test-os.app", transport=serve(b"data"))

        with pytest.raises(FetchError, match="DOWNLOAD_WRITE_FAILED"):
            await service.download(ARTIFACT_URL, destination)

    @pytest.mark.asyncio
    async def test_download_requests_given_url(self, tmp_path):
        seen = []
        service = DownloadService(BASE_URL, "test-os.app", transport=serve(b"data", seen=seen))

        await service.download(ARTIFACT_URL, tmp_path / "test-os.app")

        assert seen == [ARTIFACT_URL]

    def test_mark_executable(self, tmp_path):
        path = tmp_path / "test-os.app"
        path.write_bytes(b"binary")
        path.chmod(0o600)

        DownloadService(BASE_URL, "test-os.app").mark_executable(path)

        assert stat.S_IMODE(path.stat().st_mode) == 0o755

    def test_mark_executable_failure(self, tmp_path):
        with pytest.raises(ExecutablePermissionError, match="CHMOD_FAILED") as exc_info:
            DownloadService(BASE_URL, "test-os.app").mark_executable(tmp_path / "missing")

        assert isinstance(exc_info.value, PermissionError)
