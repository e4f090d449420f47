"""
ChangeGuard Errors — run-level failures raised to the caller.

Per-file problems never surface as exceptions from a run; they are recorded on
the AppliedFile instead. I/O failures use the builtin OSError family.
"""

from __future__ import annotations


class ChangeGuardError(Exception):
    """Base class for all engine errors."""


class NotFoundError(ChangeGuardError):
    """A referenced execution, application or backup does not exist."""


class ExecutionNotFoundError(NotFoundError):
    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution not found: {execution_id}")
        self.execution_id = execution_id


class ApplicationNotFoundError(NotFoundError):
    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application not found: {application_id}")
        self.application_id = application_id


class BackupNotFoundError(NotFoundError):
    def __init__(self, backup_path: str) -> None:
        super().__init__(f"Backup file does not exist: {backup_path}")
        self.backup_path = backup_path


class PatchError(ChangeGuardError):
    """A unified diff could not be parsed or reduced to content."""


class RollbackRejectedError(ChangeGuardError):
    """Rollback requested for an application that created no backups."""

    def __init__(self, application_id: str) -> None:
        super().__init__(f"Application {application_id} cannot be rolled back")
        self.application_id = application_id
