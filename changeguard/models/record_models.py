"""
Record Data Models — per-file results, run records and request schemas.

ApplicationRecord and RollbackRecord are what the Ledger stores and what the
HTTP shell returns. Field names serialize as camelCase.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from changeguard.models.change_models import (
    FileOperation,
    GeneratedChange,
    PatchStage,
    normalize_file_path,
)


class FileStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RunStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    FAILED = "FAILED"


def derive_status(successful_files: int, failed_files: int) -> RunStatus:
    """
    Collapse per-file counts into a run status.

    No failures (including an empty run) is COMPLETED; a mix of successes and
    failures is PARTIALLY_COMPLETED; failures with no successes is FAILED.
    """
    if failed_files == 0:
        return RunStatus.COMPLETED
    if successful_files > 0:
        return RunStatus.PARTIALLY_COMPLETED
    return RunStatus.FAILED


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_filter(value: list[str] | None) -> list[str] | None:
    # Same canonical form as GeneratedChange.file_path, so entries compare equal.
    if value is None:
        return None
    return [normalize_file_path(entry) for entry in value]


class AppliedFile(_CamelModel):
    """Outcome of applying one GeneratedChange."""

    file_path: str
    absolute_path: str
    operation: FileOperation
    status: FileStatus = FileStatus.SUCCESS
    error: str | None = None
    bytes_written: int = Field(default=0, ge=0)
    backup_path: str | None = None
    patch_stage: PatchStage | None = Field(
        default=None,
        description="Set for diff-driven writes: which patch stage produced the content",
    )


class ApplicationRecord(_CamelModel):
    """One apply run over a target directory."""

    application_id: str
    execution_id: str
    status: RunStatus = RunStatus.PENDING
    target_directory: str
    applied_files: list[AppliedFile] = Field(default_factory=list)
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    dry_run: bool = False
    can_rollback: bool = False


class RollbackRecord(_CamelModel):
    """One rollback of a prior ApplicationRecord."""

    rollback_id: str
    application_id: str
    status: RunStatus = RunStatus.PENDING
    files_restored: list[str] = Field(default_factory=list)
    files_deleted: list[str] = Field(default_factory=list)
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    error: str | None = None


class ApplyChangesRequest(_CamelModel):
    """Per-invocation options for an apply run."""

    execution_id: str = Field(..., min_length=1)
    target_directory: str | None = None
    file_filter: list[str] | None = Field(
        default=None, description="Allow-list of relative paths; empty or None applies all"
    )
    dry_run: bool = False
    create_backup: bool = True
    overwrite_existing: bool = True
    create_directories: bool = True
    use_diff_mode: bool = True

    @field_validator("file_filter")
    @classmethod
    def _normalize_file_filter(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_filter(value)


class RollbackRequest(_CamelModel):
    """Per-invocation options for a rollback."""

    application_id: str = Field(..., min_length=1)
    file_filter: list[str] | None = None
    delete_new_files: bool = True
    restore_deleted_files: bool = True

    @field_validator("file_filter")
    @classmethod
    def _normalize_file_filter(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_filter(value)


class ExecutionChanges(_CamelModel):
    """Body for registering an execution's generated changes."""

    changes: list[GeneratedChange] = Field(default_factory=list)


class AuditEntry(BaseModel):
    """Structured audit log entry for one apply or rollback."""

    event: str = Field(..., description="'apply' or 'rollback'")
    record_id: str
    execution_id: str = ""
    application_id: str = ""
    status: str
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    dry_run: bool = False
    duration_ms: float = 0.0
