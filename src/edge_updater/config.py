"""Fixed locations and tunables for the edge updater."""

from pathlib import Path

from pydantic import BaseModel, Field

MANIFEST_URL = "https://os.druid.garden/manifest.yaml"
DOWNLOAD_BASE_URL = "https://os.druid.garden"
BINARY_NAME = "druid-garden-os.app"
BIN_PATH = Path("/usr/bin/druid-garden-os.app")
BACKUP_PATH = Path("/usr/bin/druid-garden-os.app.bak")
TMP_PATH = Path("/tmp/druid-garden-os.app")
SERVICE_NAME = "druid_garden_os"
LOG_FILE = "/var/log/edge-updater/updater.log"


class UpdaterConfig(BaseModel):
    """Everything one update run needs to know about the device.

    Production runs use the defaults; they are not exposed on the command line.
    """

    model_config = {"frozen": True}

    manifest_url: str = Field(MANIFEST_URL, description="Remote manifest.yaml")
    download_base_url: str = Field(
        DOWNLOAD_BASE_URL, description="Prefix of <version>/<arch>/<binary>"
    )
    binary_name: str = Field(BINARY_NAME, description="Published artifact name")
    bin_path: Path = Field(BIN_PATH, description="Live binary launched by the service")
    backup_path: Path = Field(BACKUP_PATH, description="Previous live binary")
    tmp_path: Path = Field(TMP_PATH, description="Staged download")
    service_name: str = Field(SERVICE_NAME, description="systemd unit to control")
    version_flag: str = Field("--version", description="Version query argument")
    start_attempts: int = Field(3, ge=1, description="Starts tried with the new binary")
    start_retry_delay: float = Field(
        2.0, ge=0, description="Seconds to wait after a failed start"
    )
    http_timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds")
    version_query_timeout: float = Field(
        10.0, gt=0, description="Seconds a binary gets to answer --version"
    )
    chunk_size: int = Field(64 * 1024, gt=0, description="Download chunk size")
