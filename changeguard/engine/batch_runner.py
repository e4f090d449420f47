"""
Change Batch Runner — Main orchestrator for an apply run.

Full run:
1. Resolve the execution's generated changes (fail fast if unknown)
2. Reduce them to the caller's file filter
3. For each change, in order: backup → patch → write/delete (FileMutator)
4. Aggregate per-file results and derive the run status
5. Persist the ApplicationRecord to the Ledger and audit it

A run is best-effort per file: one failed file never stops the batch.
"""

from __future__ import annotations

import logging
import os
import time
import uuid

from changeguard.audit.logger import AuditLogger
from changeguard.config import settings
from changeguard.engine.backup_manager import BackupManager
from changeguard.engine.file_mutator import FileMutator, MutationOptions
from changeguard.errors import ExecutionNotFoundError
from changeguard.executions.registry import ExecutionSource
from changeguard.ledger.store import Ledger
from changeguard.models.change_models import GeneratedChange
from changeguard.models.record_models import (
    ApplicationRecord,
    ApplyChangesRequest,
    AuditEntry,
    FileStatus,
    RunStatus,
    derive_status,
    utc_now,
)

logger = logging.getLogger("changeguard.engine.runner")


class ChangeBatchRunner:
    """
    Applies an execution's changes to a target directory.

    Ties together: execution lookup → FileMutator per change → Ledger.
    """

    def __init__(
        self,
        executions: ExecutionSource,
        ledger: Ledger,
        backup_manager: BackupManager | None = None,
        mutator: FileMutator | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.executions = executions
        self.ledger = ledger
        self.backup_manager = backup_manager or BackupManager()
        self.mutator = mutator or FileMutator(self.backup_manager)
        self.audit_logger = audit_logger or AuditLogger()

    def apply_execution(self, request: ApplyChangesRequest) -> ApplicationRecord:
        """
        Apply every generated change of an execution.

        Raises:
            ExecutionNotFoundError: if the execution is unknown. Nothing on
                disk has been touched when this is raised.
        """
        changes = self.executions.get_changes(request.execution_id)
        if changes is None:
            raise ExecutionNotFoundError(request.execution_id)
        return self.apply_changes(request.execution_id, changes, request)

    def apply_changes(
        self,
        execution_id: str,
        changes: list[GeneratedChange],
        request: ApplyChangesRequest,
    ) -> ApplicationRecord:
        """
        Apply an ordered list of changes and record the outcome.

        Args:
            execution_id: Origin reference stored on the record
            changes: Changes in application order
            request: Per-run options (target, filter, dry run, switches)

        Returns:
            The finalized, persisted ApplicationRecord
        """
        start_time = time.monotonic()
        record = ApplicationRecord(
            application_id=str(uuid.uuid4()),
            execution_id=execution_id,
            target_directory=_target_directory(request),
            dry_run=request.dry_run,
        )
        record.status = RunStatus.IN_PROGRESS
        logger.info(
            f"Starting application {record.application_id} for execution {execution_id}"
            f"{' (dry run)' if request.dry_run else ''}"
        )

        if request.file_filter:
            allowed = set(request.file_filter)
            changes = [c for c in changes if c.file_path in allowed]
            logger.info(f"Filtered to {len(changes)} changes")

        options = MutationOptions.from_request(request)
        for change in changes:
            applied = self.mutator.apply(
                change,
                target_directory=record.target_directory,
                application_id=record.application_id,
                options=options,
            )
            record.applied_files.append(applied)
            logger.info(
                f"Applied {change.operation.value} to {change.file_path}: {applied.status.value}"
            )

        record.total_files = len(record.applied_files)
        record.successful_files = sum(
            1 for f in record.applied_files if f.status is FileStatus.SUCCESS
        )
        record.failed_files = sum(
            1 for f in record.applied_files if f.status is FileStatus.FAILED
        )
        record.status = derive_status(record.successful_files, record.failed_files)
        record.can_rollback = any(f.backup_path for f in record.applied_files)
        record.completed_at = utc_now()

        self.ledger.save_application(record)

        elapsed = (time.monotonic() - start_time) * 1000
        self.audit_logger.log(AuditEntry(
            event="apply",
            record_id=record.application_id,
            execution_id=execution_id,
            application_id=record.application_id,
            status=record.status.value,
            total_files=record.total_files,
            successful_files=record.successful_files,
            failed_files=record.failed_files,
            dry_run=record.dry_run,
            duration_ms=round(elapsed, 2),
        ))

        logger.info(
            f"Application {record.application_id} completed in {elapsed:.0f}ms: "
            f"{record.successful_files} success, {record.failed_files} failed"
        )
        return record

    # ── Lookups ──

    def get_application(self, application_id: str) -> ApplicationRecord | None:
        return self.ledger.get_application(application_id)

    def list_applications(self) -> list[ApplicationRecord]:
        return self.ledger.list_applications()

    def list_applications_for_execution(self, execution_id: str) -> list[ApplicationRecord]:
        return self.ledger.list_applications(execution_id=execution_id)


def _target_directory(request: ApplyChangesRequest) -> str:
    target = request.target_directory or settings.default_target_directory or os.getcwd()
    return os.path.abspath(target)
