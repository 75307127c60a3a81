"""Stage enums and run result model for the update transaction."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UpdateStage(str, Enum):
    """Update transaction stages.

    State transitions:
    checking_version → downloading → verifying → stopping_service → swapping
          ↓                ↓            ↓              ↓               ↓
      succeeded          failed ←───────────────────────────── failed (critical)

    swapping → starting (×3) → succeeded
                  ↓
             rolling_back → starting_previous → rolled_back
                  ↓                 ↓
          failed (critical)  failed (critical)
    """

    CHECKING_VERSION = "checking_version"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    STOPPING_SERVICE = "stopping_service"
    SWAPPING = "swapping"
    STARTING = "starting"
    ROLLING_BACK = "rolling_back"
    STARTING_PREVIOUS = "starting_previous"
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            UpdateStage.SUCCEEDED,
            UpdateStage.ROLLED_BACK,
            UpdateStage.FAILED,
        )


class UpdateOutcome(str, Enum):
    """What a finished run reports."""

    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class UpdateResult(BaseModel):
    """Outcome of one update run."""

    outcome: UpdateOutcome = Field(..., description="Reported outcome")
    stage: UpdateStage = Field(..., description="Terminal stage reached")
    failed_stage: Optional[UpdateStage] = Field(
        None, description="Stage in which the failure occurred"
    )
    critical: bool = Field(
        False,
        description="Service may be left non-running; operator action required",
    )
    local_version: Optional[str] = Field(None, description="Installed version")
    remote_version: Optional[str] = Field(None, description="Advertised version")
    start_attempts: int = Field(
        0, ge=0, description="Start attempts made with the new binary"
    )
    error: Optional[str] = Field(None, description="Failure description")

    @property
    def exit_code(self) -> int:
        """0: no operator action needed, 1: failed safely, 2: critical."""
        if self.critical:
            return 2
        if self.outcome == UpdateOutcome.FAILED:
            return 1
        return 0
