"""Remote manifest retrieval."""

import logging
from typing import Optional

import httpx
import yaml
from pydantic import ValidationError

from edge_updater.exceptions import ManifestFetchError
from edge_updater.models.manifest import UpdateManifest


class ManifestService:
    """Fetches and validates the remote manifest.yaml."""

    def __init__(
        self,
        manifest_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize manifest service.

        Args:
            manifest_url: URL of the YAML manifest
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.logger = logging.getLogger("edge_updater.manifest")
        self.manifest_url = manifest_url
        self.timeout = timeout
        self._transport = transport

    async def fetch_manifest(self) -> UpdateManifest:
        """Download and parse the manifest.

        Returns:
            Parsed UpdateManifest

        Raises:
            ManifestFetchError: On transport error, non-2xx status, malformed
                YAML or schema mismatch
        """
        self.logger.info(f"Fetching manifest from {self.manifest_url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.manifest_url)
                response.raise_for_status()
                body = response.text
        except httpx.HTTPError as e:
            self.logger.error(f"Failed to fetch manifest: {e}")
            raise ManifestFetchError(f"MANIFEST_FETCH_FAILED: {e}") from e

        try:
            data = yaml.safe_load(body)
        except yaml.YAMLError as e:
            raise ManifestFetchError(f"Invalid manifest YAML: {e}") from e

        if not isinstance(data, dict):
            raise ManifestFetchError(
                f"Invalid manifest: expected a mapping, got {type(data).__name__}"
            )

        try:
            manifest = UpdateManifest(**data)
        except (ValidationError, TypeError) as e:
            raise ManifestFetchError(f"Invalid manifest: {e}") from e

        self.logger.debug(f"Parsed manifest: {manifest.model_dump()}")
        return manifest
