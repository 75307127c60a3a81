"""Error taxonomy for the update transaction."""

from typing import Optional


class UpdaterError(Exception):
    """Base class for every failure the updater knows how to classify."""


class ManifestFetchError(UpdaterError):
    """Remote manifest could not be fetched or parsed."""


class InvalidVersion(UpdaterError, ValueError):
    """Version string is not a well-formed MAJOR.MINOR.PATCH."""


class UnsupportedPlatform(UpdaterError):
    """Running CPU architecture has no published binary."""


class FetchError(UpdaterError):
    """Artifact download failed (HTTP status, transport or local write)."""


class ExecutablePermissionError(UpdaterError, PermissionError):
    """Staged binary could not be made executable."""


class ArtifactVerificationFailed(UpdaterError):
    """Downloaded binary does not report the advertised version."""


class ServiceControlError(UpdaterError):
    """Service manager call exited non-zero or could not be launched."""

    def __init__(self, action: str, message: Optional[str] = None):
        self.action = action
        super().__init__(message or f"SERVICE_{action.upper()}_FAILED")


class SwapError(UpdaterError):
    """Live binary could not be replaced; live slot may be inconsistent."""


class RollbackError(UpdaterError):
    """Backup binary could not be restored into the live slot."""
