"""Installed and advertised version resolution."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from edge_updater.exceptions import InvalidVersion
from edge_updater.models.manifest import UpdateManifest
from edge_updater.models.version import SemanticVersion


class VersionOracle:
    """Turns the manifest and managed binaries into comparable versions.

    A managed binary answers ``<binary> --version`` with a bare semantic
    version on stdout and exit code 0. Anything else is treated as "no
    version" so that a missing or broken install never blocks an update.
    """

    def __init__(self, version_flag: str = "--version", timeout: float = 10.0):
        """Initialize version oracle.

        Args:
            version_flag: Argument that makes the binary print its version
            timeout: Seconds to wait for the binary to answer
        """
        self.logger = logging.getLogger("edge_updater.version")
        self.version_flag = version_flag
        self.timeout = timeout

    def resolve_remote_version(self, manifest: UpdateManifest) -> SemanticVersion:
        """Parse the manifest's advertised version.

        Raises:
            InvalidVersion: If the manifest version is malformed
        """
        try:
            version = SemanticVersion.parse(manifest.version)
        except InvalidVersion:
            self.logger.error(f"Manifest advertises invalid version: {manifest.version!r}")
            raise

        self.logger.info(f"Found remote version: {version}")
        return version

    async def resolve_local_version(self, path: Path) -> SemanticVersion:
        """Version reported by the binary at ``path``, or 0.0.0 if none."""
        version = await self.query_binary_version(path)
        if version is None:
            self.logger.info(f"No usable version from {path}, assuming 0.0.0")
            return SemanticVersion.zero()

        self.logger.info(f"Found local version: {version}")
        return version

    async def query_binary_version(self, path: Path) -> Optional[SemanticVersion]:
        """Run ``<path> --version`` and parse its stdout.

        Returns:
            Parsed version, or None if the binary is missing, exits non-zero,
            times out or prints something that is not a version
        """
        try:
            process = await asyncio.create_subprocess_exec(
                str(path),
                self.version_flag,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.logger.debug(f"Cannot execute {path}: {e}")
            return None

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"{path} {self.version_flag} did not answer within {self.timeout}s"
            )
            process.kill()
            await process.wait()
            return None

        if process.returncode != 0:
            self.logger.debug(
                f"{path} {self.version_flag} exited with code {process.returncode}"
            )
            return None

        output = stdout.decode(errors="replace")
        try:
            return SemanticVersion.parse(output)
        except InvalidVersion:
            self.logger.warning(
                f"{path} printed unsupported version {output.strip()!r}, "
                f"expected MAJOR.MINOR.PATCH"
            )
            return None

    @staticmethod
    def is_update_available(remote: SemanticVersion, local: SemanticVersion) -> bool:
        """An update is warranted only for a strictly newer remote version."""
        return remote > local
