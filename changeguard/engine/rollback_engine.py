"""
Rollback Engine — Reverses a prior apply run using its backups.

Per applied file, in original order:
- CREATE  that succeeded (+ delete_new_files)    → delete the created file
- MODIFY  with a backup                          → restore the backup
- DELETE  with a backup (+ restore_deleted_files) → recreate from the backup
- anything else                                  → untouched, not counted

Backups are only read, never removed, so a rollback can be repeated.
"""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from changeguard.audit.logger import AuditLogger
from changeguard.engine.backup_manager import BackupManager
from changeguard.errors import (
    ApplicationNotFoundError,
    BackupNotFoundError,
    RollbackRejectedError,
)
from changeguard.ledger.store import Ledger
from changeguard.models.change_models import FileOperation
from changeguard.models.record_models import (
    AppliedFile,
    AuditEntry,
    FileStatus,
    RollbackRecord,
    RollbackRequest,
    RunStatus,
    derive_status,
    utc_now,
)

logger = logging.getLogger("changeguard.engine.rollback")


class RollbackEngine:
    """Restores a target tree to its state before an application."""

    def __init__(
        self,
        ledger: Ledger,
        backup_manager: BackupManager | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.ledger = ledger
        self.backup_manager = backup_manager or BackupManager()
        self.audit_logger = audit_logger or AuditLogger()

    def rollback(self, request: RollbackRequest) -> RollbackRecord:
        """
        Roll back an application.

        Raises:
            ApplicationNotFoundError: the application is not in the ledger.
            RollbackRejectedError: the application created no backups.
        """
        application = self.ledger.get_application(request.application_id)
        if application is None:
            raise ApplicationNotFoundError(request.application_id)
        if not application.can_rollback:
            raise RollbackRejectedError(request.application_id)

        start_time = time.monotonic()
        record = RollbackRecord(
            rollback_id=str(uuid.uuid4()),
            application_id=request.application_id,
        )
        record.status = RunStatus.IN_PROGRESS
        logger.info(
            f"Starting rollback {record.rollback_id} for application {request.application_id}"
        )

        applied_files = application.applied_files
        if request.file_filter:
            allowed = set(request.file_filter)
            applied_files = [f for f in applied_files if f.file_path in allowed]

        errors: list[str] = []
        for applied in applied_files:
            try:
                self._revert(applied, request, record)
            except (OSError, BackupNotFoundError) as e:
                record.failed_files += 1
                errors.append(f"{applied.file_path}: {e}")
                logger.error(f"Failed to rollback {applied.file_path}: {e}")

        record.total_files = len(applied_files)
        record.status = derive_status(record.successful_files, record.failed_files)
        record.error = "; ".join(errors) if errors else None
        record.completed_at = utc_now()

        self.ledger.save_rollback(record)

        elapsed = (time.monotonic() - start_time) * 1000
        self.audit_logger.log(AuditEntry(
            event="rollback",
            record_id=record.rollback_id,
            execution_id=application.execution_id,
            application_id=record.application_id,
            status=record.status.value,
            total_files=record.total_files,
            successful_files=record.successful_files,
            failed_files=record.failed_files,
            duration_ms=round(elapsed, 2),
        ))

        logger.info(
            f"Rollback {record.rollback_id} completed: "
            f"{record.successful_files} success, {record.failed_files} failed"
        )
        return record

    def _revert(
        self,
        applied: AppliedFile,
        request: RollbackRequest,
        record: RollbackRecord,
    ) -> None:
        if applied.operation is FileOperation.CREATE:
            # Skipped or failed creations never produced the file on disk.
            if not request.delete_new_files or applied.status is not FileStatus.SUCCESS:
                return
            Path(applied.absolute_path).unlink()
            record.files_deleted.append(applied.file_path)
        elif applied.operation is FileOperation.MODIFY:
            if not applied.backup_path:
                return
            self.backup_manager.restore(applied.backup_path, applied.absolute_path)
            record.files_restored.append(applied.file_path)
        elif applied.operation is FileOperation.DELETE:
            if not (applied.backup_path and request.restore_deleted_files):
                return
            self.backup_manager.restore(applied.backup_path, applied.absolute_path)
            record.files_restored.append(applied.file_path)
        else:
            return
        record.successful_files += 1
