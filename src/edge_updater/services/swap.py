"""Live/backup/staged binary slot transitions."""

import logging
import shutil
from pathlib import Path

import aiofiles.os

from edge_updater.exceptions import RollbackError, SwapError


class BinarySwapManager:
    """Replaces the live binary with the staged one and can undo it.

    The live binary is always renamed out of the way before anything is
    written to the live path, so a failed rename leaves it untouched.
    """

    def __init__(self):
        """Initialize swap manager."""
        self.logger = logging.getLogger("edge_updater.swap")

    async def swap_in(self, live: Path, backup: Path, staged: Path) -> None:
        """Move live to backup, then copy staged into live.

        Args:
            live: Path the service launches
            backup: Where the current live binary is kept
            staged: Verified download (left in place for diagnostics)

        Raises:
            SwapError: If the rename or the copy fails. After a failed copy
                the live path may be empty and the old binary sits in backup.
        """
        if await aiofiles.os.path.exists(backup):
            self.logger.warning(f"Discarding stale backup {backup}")
            try:
                await aiofiles.os.remove(backup)
            except OSError as e:
                # rename below overwrites it or fails loudly
                self.logger.warning(f"Could not delete stale backup {backup}: {e}")

        if await aiofiles.os.path.exists(live):
            try:
                await aiofiles.os.rename(live, backup)
            except OSError as e:
                self.logger.error(f"Failed to back up {live} to {backup}: {e}")
                raise SwapError(f"BACKUP_RENAME_FAILED: {e}") from e
            self.logger.info(f"Backed up {live} to {backup}")
        else:
            self.logger.info(f"No live binary at {live}, installing fresh")

        try:
            live.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(staged, live)
        except OSError as e:
            self.logger.error(f"Failed to copy {staged} to {live}: {e}")
            raise SwapError(f"INSTALL_COPY_FAILED: {e}") from e

        self.logger.info(f"Installed {staged} to {live}")

    async def rollback(self, live: Path, backup: Path) -> None:
        """Restore the backup into the live slot.

        Raises:
            RollbackError: If the backup cannot be renamed into place
        """
        self.logger.info(f"Rolling back {live} from {backup}")

        try:
            await aiofiles.os.remove(live)
        except OSError as e:
            self.logger.debug(f"Ignoring failure to remove {live}: {e}")

        try:
            await aiofiles.os.rename(backup, live)
        except OSError as e:
            self.logger.error(f"Failed to restore {backup} to {live}: {e}")
            raise RollbackError(f"ROLLBACK_RENAME_FAILED: {e}") from e

        self.logger.info(f"Restored previous binary to {live}")
