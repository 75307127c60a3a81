"""Artifact download into the staging slot."""

import os
import platform
from pathlib import Path
from typing import Optional
import logging

import httpx
import aiofiles

from edge_updater.exceptions import (
    ExecutablePermissionError,
    FetchError,
    UnsupportedPlatform,
)

# Runtime architecture -> published artifact directory
ARCH_MAP = {
    "x86_64": "amd64",
    "aarch64": "aarch64",
}


class DownloadService:
    """Streams a candidate binary to the staging path and makes it runnable."""

    def __init__(
        self,
        download_base_url: str,
        binary_name: str,
        timeout: float = 30.0,
        chunk_size: int = 64 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize download service.

        Args:
            download_base_url: URL prefix in front of <version>/<arch>/<binary>
            binary_name: Published artifact file name
            timeout: HTTP timeout in seconds
            chunk_size: Bytes written per chunk
            transport: Optional httpx transport (used by tests)
        """
        self.logger = logging.getLogger("edge_updater.download")
        self.download_base_url = download_base_url.rstrip("/")
        self.binary_name = binary_name
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._transport = transport

    def resolve_download_url(self, version: str, machine: Optional[str] = None) -> str:
        """Build the per-architecture artifact URL.

        Args:
            version: Version to download (e.g., "1.2.0")
            machine: Architecture identifier (default: platform.machine())

        Returns:
            <base>/<version>/<arch>/<binary>

        Raises:
            UnsupportedPlatform: If the architecture has no published binary
        """
        machine = machine if machine is not None else platform.machine()
        arch = ARCH_MAP.get(machine)
        if arch is None:
            raise UnsupportedPlatform(
                f"Unsupported platform for auto updates: {machine!r}"
            )

        return f"{self.download_base_url}/{version}/{arch}/{self.binary_name}"

    async def download(self, url: str, destination: Path) -> Path:
        """Stream ``url`` into ``destination``, replacing any existing file.

        A failed download may leave a partial file behind; the destination is
        a staging path only.

        Returns:
            Path to the downloaded file

        Raises:
            FetchError: On non-2xx status, transport error or write failure
        """
        destination = Path(destination)
        self.logger.info(f"Downloading from {url} to {destination}")

        bytes_downloaded = 0
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    async with aiofiles.open(destination, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)
        except httpx.HTTPError as e:
            self.logger.error(f"Download failed: {e}")
            raise FetchError(f"DOWNLOAD_FAILED: {e}") from e
        except OSError as e:
            self.logger.error(f"Failed to write {destination}: {e}")
            raise FetchError(f"DOWNLOAD_WRITE_FAILED: {e}") from e

        self.logger.info(f"Downloaded {bytes_downloaded} bytes")
        return destination

    def mark_executable(self, path: Path) -> None:
        """Set rwxr-xr-x on the staged binary.

        Raises:
            ExecutablePermissionError: If the mode cannot be changed
        """
        try:
            os.chmod(path, 0o755)
        except OSError as e:
            self.logger.error(f"Failed to mark {path} executable: {e}")
            raise ExecutablePermissionError(f"CHMOD_FAILED: {e}") from e

        self.logger.debug(f"Marked {path} executable")
