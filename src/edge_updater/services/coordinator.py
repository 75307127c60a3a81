"""Update transaction state machine.

One run walks the transition table below exactly once:

    checking_version → downloading → verifying → stopping_service → swapping
    → starting → (rolling_back → starting_previous) → terminal

Every failure before ``swapping`` leaves the device untouched. From
``swapping`` onward a failure may leave the service down, so those stages are
critical and the rest of the run is shielded from cancellation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from edge_updater.config import UpdaterConfig
from edge_updater.exceptions import (
    ArtifactVerificationFailed,
    ServiceControlError,
    UpdaterError,
)
from edge_updater.models.manifest import UpdateManifest
from edge_updater.models.status import UpdateOutcome, UpdateResult, UpdateStage
from edge_updater.models.version import SemanticVersion
from edge_updater.services.download import DownloadService
from edge_updater.services.manifest import ManifestService
from edge_updater.services.process import ProcessManager
from edge_updater.services.swap import BinarySwapManager
from edge_updater.services.version_oracle import VersionOracle

CRITICAL_STAGES = frozenset(
    {
        UpdateStage.SWAPPING,
        UpdateStage.STARTING,
        UpdateStage.ROLLING_BACK,
        UpdateStage.STARTING_PREVIOUS,
    }
)


@dataclass
class _RunContext:
    """Mutable facts gathered while walking the state machine."""

    manifest: Optional[UpdateManifest] = None
    remote_version: Optional[SemanticVersion] = None
    local_version: Optional[SemanticVersion] = None
    up_to_date: bool = False
    start_attempts: int = 0
    failed_stage: Optional[UpdateStage] = None
    error: Optional[str] = None


class UpdateCoordinator:
    """Runs a single update transaction against one binary and one service."""

    def __init__(
        self,
        config: Optional[UpdaterConfig] = None,
        manifest_service: Optional[ManifestService] = None,
        version_oracle: Optional[VersionOracle] = None,
        download_service: Optional[DownloadService] = None,
        swap_manager: Optional[BinarySwapManager] = None,
        process_manager: Optional[ProcessManager] = None,
    ):
        """Initialize coordinator.

        Args:
            config: Paths and tunables (defaults to the device constants)
            manifest_service: Manifest fetcher (built from config if None)
            version_oracle: Version resolver (built from config if None)
            download_service: Artifact fetcher (built from config if None)
            swap_manager: Binary slot manager (new instance if None)
            process_manager: Service controller (new instance if None)
        """
        self.logger = logging.getLogger("edge_updater.coordinator")
        self.config = config or UpdaterConfig()
        self.manifest_service = manifest_service or ManifestService(
            self.config.manifest_url, timeout=self.config.http_timeout
        )
        self.version_oracle = version_oracle or VersionOracle(
            version_flag=self.config.version_flag,
            timeout=self.config.version_query_timeout,
        )
        self.download_service = download_service or DownloadService(
            self.config.download_base_url,
            self.config.binary_name,
            timeout=self.config.http_timeout,
            chunk_size=self.config.chunk_size,
        )
        self.swap_manager = swap_manager or BinarySwapManager()
        self.process_manager = process_manager or ProcessManager()

        self._transitions = {
            UpdateStage.CHECKING_VERSION: self._check_version,
            UpdateStage.DOWNLOADING: self._download,
            UpdateStage.VERIFYING: self._verify,
            UpdateStage.STOPPING_SERVICE: self._stop_service,
            UpdateStage.SWAPPING: self._swap,
            UpdateStage.STARTING: self._start_new_binary,
            UpdateStage.ROLLING_BACK: self._rollback,
            UpdateStage.STARTING_PREVIOUS: self._start_previous_binary,
        }

    async def run(self) -> UpdateResult:
        """Execute the transaction once and report how it ended."""
        ctx = _RunContext()
        stage = UpdateStage.CHECKING_VERSION
        self.logger.info(f"Update run started, stage={stage.value}")

        while not stage.is_terminal:
            if stage == UpdateStage.SWAPPING:
                stage = await self._run_shielded(ctx, stage)
                break
            stage = await self._step(ctx, stage)

        return self._finish(ctx, stage)

    async def _run_shielded(self, ctx: _RunContext, stage: UpdateStage) -> UpdateStage:
        """Drive the remaining stages to a terminal one, ignoring cancellation.

        Every cancellation of the caller is absorbed until the inner task has
        finished; the outcome is then logged and the cancellation re-raised.
        """
        task = asyncio.ensure_future(self._drive(ctx, stage))
        cancelled = False
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not cancelled:
                    self.logger.warning(
                        "Cancellation requested during binary swap, finishing transaction first"
                    )
                cancelled = True

        final = task.result()
        if cancelled:
            self._finish(ctx, final)
            raise asyncio.CancelledError()
        return final

    async def _drive(self, ctx: _RunContext, stage: UpdateStage) -> UpdateStage:
        while not stage.is_terminal:
            stage = await self._step(ctx, stage)
        return stage

    async def _step(self, ctx: _RunContext, stage: UpdateStage) -> UpdateStage:
        """Run one handler and return the next stage."""
        handler = self._transitions[stage]
        try:
            next_stage = await handler(ctx)
        except UpdaterError as e:
            ctx.failed_stage = stage
            ctx.error = f"{type(e).__name__}: {e}"
            self.logger.error(f"Stage {stage.value} failed: {ctx.error}")
            next_stage = UpdateStage.FAILED

        self.logger.info(f"Stage: {stage.value} -> {next_stage.value}")
        return next_stage

    def _finish(self, ctx: _RunContext, stage: UpdateStage) -> UpdateResult:
        critical = stage == UpdateStage.FAILED and ctx.failed_stage in CRITICAL_STAGES

        if stage == UpdateStage.SUCCEEDED:
            outcome = UpdateOutcome.UP_TO_DATE if ctx.up_to_date else UpdateOutcome.UPDATED
        elif stage == UpdateStage.ROLLED_BACK:
            outcome = UpdateOutcome.ROLLED_BACK
        else:
            outcome = UpdateOutcome.FAILED

        result = UpdateResult(
            outcome=outcome,
            stage=stage,
            failed_stage=ctx.failed_stage,
            critical=critical,
            local_version=str(ctx.local_version) if ctx.local_version is not None else None,
            remote_version=str(ctx.remote_version) if ctx.remote_version is not None else None,
            start_attempts=ctx.start_attempts,
            error=ctx.error,
        )

        if critical:
            self.logger.critical(
                f"CRITICAL UPDATE FAILURE in {ctx.failed_stage.value}: "
                f"{self.config.service_name} may not be running. "
                f"Reboot the device or intervene manually. ({ctx.error})"
            )
        elif outcome == UpdateOutcome.UP_TO_DATE:
            self.logger.info("Up to date, nothing to do")
        elif outcome == UpdateOutcome.UPDATED:
            self.logger.info(f"Update successful: now running {ctx.remote_version}")
        elif outcome == UpdateOutcome.ROLLED_BACK:
            self.logger.warning(
                f"Update to {ctx.remote_version} rolled back, "
                f"service running on previous binary"
            )
        else:
            self.logger.error(f"Update failed, device left unchanged: {ctx.error}")

        return result

    async def _check_version(self, ctx: _RunContext) -> UpdateStage:
        ctx.manifest = await self.manifest_service.fetch_manifest()
        self.logger.info(
            f"Manifest: version={ctx.manifest.version}, name={ctx.manifest.name}, "
            f"date={ctx.manifest.date}, author={ctx.manifest.author}"
        )
        ctx.remote_version = self.version_oracle.resolve_remote_version(ctx.manifest)
        ctx.local_version = await self.version_oracle.resolve_local_version(
            self.config.bin_path
        )

        if not self.version_oracle.is_update_available(
            ctx.remote_version, ctx.local_version
        ):
            ctx.up_to_date = True
            return UpdateStage.SUCCEEDED

        self.logger.info(f"Update available: {ctx.local_version} -> {ctx.remote_version}")
        return UpdateStage.DOWNLOADING

    async def _download(self, ctx: _RunContext) -> UpdateStage:
        url = self.download_service.resolve_download_url(str(ctx.remote_version))
        await self.download_service.download(url, self.config.tmp_path)
        self.download_service.mark_executable(self.config.tmp_path)
        return UpdateStage.VERIFYING

    async def _verify(self, ctx: _RunContext) -> UpdateStage:
        staged_version = await self.version_oracle.query_binary_version(
            self.config.tmp_path
        )
        if staged_version is None:
            raise ArtifactVerificationFailed(
                f"Failed to read downloaded binary version from {self.config.tmp_path}"
            )
        if staged_version != ctx.remote_version:
            raise ArtifactVerificationFailed(
                f"Downloaded binary version mismatch: "
                f"expected {ctx.remote_version}, got {staged_version}"
            )

        self.logger.info(f"Downloaded binary verified as {staged_version}")
        return UpdateStage.STOPPING_SERVICE

    async def _stop_service(self, ctx: _RunContext) -> UpdateStage:
        await self.process_manager.stop_service(self.config.service_name)
        return UpdateStage.SWAPPING

    async def _swap(self, ctx: _RunContext) -> UpdateStage:
        await self.swap_manager.swap_in(
            self.config.bin_path, self.config.backup_path, self.config.tmp_path
        )
        return UpdateStage.STARTING

    async def _start_new_binary(self, ctx: _RunContext) -> UpdateStage:
        attempts = self.config.start_attempts
        for attempt in range(1, attempts + 1):
            ctx.start_attempts = attempt
            self.logger.info(f"Starting service (attempt {attempt}/{attempts})")
            try:
                await self.process_manager.start_service(self.config.service_name)
                return UpdateStage.SUCCEEDED
            except ServiceControlError as e:
                ctx.error = str(e)
                self.logger.warning(f"Start attempt {attempt} failed: {e}")
            await asyncio.sleep(self.config.start_retry_delay)

        ctx.error = f"New binary failed to start after {attempts} attempts: {ctx.error}"
        return UpdateStage.ROLLING_BACK

    async def _rollback(self, ctx: _RunContext) -> UpdateStage:
        self.logger.info("Rolling back to backup")
        await self.swap_manager.rollback(self.config.bin_path, self.config.backup_path)
        return UpdateStage.STARTING_PREVIOUS

    async def _start_previous_binary(self, ctx: _RunContext) -> UpdateStage:
        await self.process_manager.start_service(self.config.service_name)
        self.logger.info("Rollback succeeded")
        return UpdateStage.ROLLED_BACK
