import asyncio
import os
import shutil
import threading
from enum import Enum
from pathlib import Path
from typing import Optional

from app.core.errors import StoreUnavailable
from app.core.logger import logger

DEFAULT_INTERVAL_SECONDS = 3600


class BackupState(str, Enum):
    COLD = "cold"
    READY = "ready"
    TERMINATED = "terminated"


class BackupManager:
    """
    Keeps a whole-file copy of the booking database next to the primary.

    Startup restores the primary from the backup when the primary is missing.
    While running, `snapshot()` is triggered by the hourly task and once more
    by `shutdown()`.
    """

    def __init__(
        self,
        primary_path: str,
        backup_path: str,
        gate: Optional[threading.Lock] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.primary_path = Path(primary_path)
        self.backup_path = Path(backup_path)
        self.gate = gate or threading.Lock()
        self.interval = interval
        self.state = BackupState.COLD
        self._task: Optional[asyncio.Task] = None

    def ensure_store(self) -> bool:
        """
        Makes sure a primary store file exists.
        Returns True if it was restored from the backup.
        """
        restored = False
        try:
            if self.primary_path.exists():
                logger.info(f"💾 Primary store found: {self.primary_path}")
            elif self.backup_path.exists():
                self.primary_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(self.backup_path, self.primary_path)
                restored = True
                logger.warning(f"♻️ Primary store missing, restored from backup {self.backup_path}")
            else:
                self.primary_path.parent.mkdir(parents=True, exist_ok=True)
                self.primary_path.touch()
                logger.info(f"🆕 No store or backup found, created empty store {self.primary_path}")
        except OSError as e:
            logger.critical(f"❌ Cannot prepare store file {self.primary_path}: {e}")
            raise StoreUnavailable(f"Cannot prepare store file {self.primary_path}: {e}") from e

        self.state = BackupState.READY
        return restored

    def snapshot(self) -> bool:
        """
        Copies the primary over the backup. Never raises: a missed backup
        is logged and bookings keep working.
        """
        if self.state == BackupState.TERMINATED:
            logger.warning("⚠️ Backup manager terminated, snapshot skipped")
            return False

        if not self.primary_path.exists():
            logger.warning(f"⚠️ Primary store {self.primary_path} missing, snapshot skipped")
            return False

        tmp_path = self.backup_path.with_name(self.backup_path.name + ".tmp")
        try:
            self.backup_path.parent.mkdir(parents=True, exist_ok=True)
            with self.gate:
                shutil.copy2(self.primary_path, tmp_path)
                os.replace(tmp_path, self.backup_path)
        except OSError as e:
            logger.error(f"❌ Backup failed ({self.primary_path} -> {self.backup_path}): {e}")
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return False

        logger.info(f"💾 Backup written: {self.backup_path}")
        return True

    def read_backup(self) -> Optional[bytes]:
        """Current backup contents, or None if no snapshot was taken yet."""
        if not self.backup_path.exists():
            return None
        return self.backup_path.read_bytes()

    async def run_periodic(self):
        while True:
            await asyncio.sleep(self.interval)
            logger.info("⏰ Scheduled backup")
            try:
                await asyncio.to_thread(self.snapshot)
            except Exception as e:
                # Keep the timer alive; the next interval tries again
                logger.opt(exception=e).error(f"❌ Scheduled backup crashed: {e}")

    def start(self) -> asyncio.Task:
        """Schedules the recurring backup on the running event loop."""
        if self.state != BackupState.READY:
            raise RuntimeError(f"Backup manager cannot start in state '{self.state.value}'")
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_periodic())
            logger.info(f"⏰ Periodic backup every {self.interval:g}s")
        return self._task

    async def shutdown(self):
        """Stops the timer, takes the final snapshot and terminates."""
        if self.state == BackupState.TERMINATED:
            return

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.opt(exception=e).error(f"❌ Backup timer had failed: {e}")
            self._task = None

        logger.info("🛑 Final backup before shutdown")
        try:
            self.snapshot()
        except Exception as e:
            logger.opt(exception=e).error(f"❌ Final backup crashed: {e}")
        finally:
            self.state = BackupState.TERMINATED
