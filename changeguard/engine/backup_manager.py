"""
Backup Manager — Stores pre-mutation file copies for rollback capability.

Before a pre-existing file is modified or deleted, its bytes are copied to
backup_root/<application_id>/<relative path>. Each application owns its own
subtree, so concurrent runs never touch each other's backups.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from changeguard.config import settings
from changeguard.errors import BackupNotFoundError

logger = logging.getLogger("changeguard.engine.backup")


class BackupManager:
    """
    Manages on-disk file backups for safe rollback.

    Usage:
        mgr = BackupManager("./backups")
        backup_path = mgr.create_backup("/repo/app.py", app_id, "app.py")
        # ... mutate /repo/app.py ...
        mgr.restore(backup_path, "/repo/app.py")
    """

    def __init__(self, backup_root: str | Path | None = None) -> None:
        self.backup_root = Path(backup_root or settings.backup_root)

    def backup_path_for(self, application_id: str, relative_path: str) -> Path:
        """Location of a file's backup inside the application's subtree."""
        app_root = (self.backup_root / application_id).resolve()
        candidate = (app_root / relative_path).resolve()
        if not candidate.is_relative_to(app_root):
            raise ValueError(f"Path escapes backup tree: {relative_path}")
        return candidate

    def create_backup(
        self, absolute_path: str | Path, application_id: str, relative_path: str
    ) -> str:
        """
        Copy an existing file into the application's backup tree.

        The first backup of a path within an application is kept: later
        changes to the same file in that run reuse it, so rollback returns
        the content from before the run.

        Raises:
            OSError: if the source cannot be read or the copy cannot be written.
        """
        backup_path = self.backup_path_for(application_id, relative_path)
        if backup_path.is_file():
            logger.debug(f"Backup already taken for {relative_path}, keeping it")
            return str(backup_path)
        backup_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(absolute_path, backup_path)
        logger.debug(f"Backup saved: {relative_path} -> {backup_path}")
        return str(backup_path)

    def restore(self, backup_path: str | Path, destination_path: str | Path) -> None:
        """
        Copy backup bytes back over the destination, recreating parents.

        Raises:
            BackupNotFoundError: if the backup file is missing.
        """
        source = Path(backup_path)
        if not source.is_file():
            logger.error(f"No backup found for restore: {source}")
            raise BackupNotFoundError(str(source))
        destination = Path(destination_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        logger.info(f"Restored {destination} from backup")
