"""
File Mutator — Applies one GeneratedChange to the target tree.

Each change moves through an explicit stage pipeline:

    NOT_STARTED → [BACKED_UP] → WRITTEN | DELETED | SKIPPED | FAILED → DONE

A frozen MutationContext is handed from stage to stage; every stage returns a
new context and transitions are checked against TRANSITIONS. Any error raised
while mutating becomes a FAILED outcome for that file only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from changeguard.config import settings
from changeguard.engine.backup_manager import BackupManager
from changeguard.engine.patch_engine import extract_added_lines, resolve_diff
from changeguard.models.change_models import (
    ContentType,
    FileOperation,
    GeneratedChange,
    PatchStage,
)
from changeguard.models.record_models import AppliedFile, ApplyChangesRequest, FileStatus

logger = logging.getLogger("changeguard.engine.mutator")


class MutationStage(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    BACKED_UP = "BACKED_UP"
    WRITTEN = "WRITTEN"
    DELETED = "DELETED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
    DONE = "DONE"


_OUTCOMES = frozenset({
    MutationStage.WRITTEN,
    MutationStage.DELETED,
    MutationStage.SKIPPED,
    MutationStage.FAILED,
})

TRANSITIONS: dict[MutationStage, frozenset[MutationStage]] = {
    MutationStage.NOT_STARTED: _OUTCOMES | {MutationStage.BACKED_UP},
    MutationStage.BACKED_UP: frozenset({
        MutationStage.WRITTEN,
        MutationStage.DELETED,
        MutationStage.FAILED,
    }),
    MutationStage.WRITTEN: frozenset({MutationStage.DONE}),
    MutationStage.DELETED: frozenset({MutationStage.DONE}),
    MutationStage.SKIPPED: frozenset({MutationStage.DONE}),
    MutationStage.FAILED: frozenset({MutationStage.DONE}),
    MutationStage.DONE: frozenset(),
}

_STATUS_BY_OUTCOME = {
    MutationStage.WRITTEN: FileStatus.SUCCESS,
    MutationStage.DELETED: FileStatus.SUCCESS,
    MutationStage.SKIPPED: FileStatus.SKIPPED,
    MutationStage.FAILED: FileStatus.FAILED,
}


class InvalidTransitionError(RuntimeError):
    """Raised when a stage handler attempts a transition the table forbids."""


@dataclass(frozen=True)
class MutationOptions:
    """Per-run switches that shape how each change is applied."""

    dry_run: bool = False
    create_backup: bool = True
    overwrite_existing: bool = True
    create_directories: bool = True
    use_diff_mode: bool = True

    @classmethod
    def from_request(cls, request: ApplyChangesRequest) -> MutationOptions:
        return cls(
            dry_run=request.dry_run,
            create_backup=request.create_backup,
            overwrite_existing=request.overwrite_existing,
            create_directories=request.create_directories,
            use_diff_mode=request.use_diff_mode,
        )


@dataclass(frozen=True)
class MutationContext:
    """State of one change as it moves through the pipeline."""

    change: GeneratedChange
    application_id: str
    absolute_path: Path
    options: MutationOptions
    existed: bool = False
    stage: MutationStage = MutationStage.NOT_STARTED
    outcome: MutationStage | None = None
    backup_path: str | None = None
    bytes_written: int = 0
    error: str | None = None
    patch_stage: PatchStage | None = None

    def advance(self, stage: MutationStage, **changes) -> MutationContext:
        if stage not in TRANSITIONS[self.stage]:
            raise InvalidTransitionError(f"{self.stage.value} -> {stage.value}")
        return replace(self, stage=stage, **changes)

    def fail(self, message: str) -> MutationContext:
        return self.advance(MutationStage.FAILED, error=message)

    def finish(self) -> MutationContext:
        return self.advance(MutationStage.DONE, outcome=self.stage)


def resolve_target(target_directory: str | Path, relative_path: str) -> Path:
    """
    Join a relative path onto the target directory.

    Containment is checked on the resolved path, but the unresolved path is
    returned so a symlink is itself the thing mutated, not its target.

    Raises:
        ValueError: if the path resolves outside the target directory.
    """
    root = Path(target_directory).resolve()
    candidate = root / relative_path
    if not candidate.resolve().is_relative_to(root):
        raise ValueError(f"Path escapes target directory: {relative_path}")
    return candidate


class FileMutator:
    """Dispatches a change to CREATE / MODIFY / DELETE handling."""

    def __init__(
        self,
        backup_manager: BackupManager | None = None,
        raw_diff_policy: str | None = None,
    ) -> None:
        self.backup_manager = backup_manager or BackupManager()
        self.raw_diff_policy = raw_diff_policy or settings.raw_diff_policy
        self._handlers = {
            FileOperation.CREATE: self._create,
            FileOperation.MODIFY: self._modify,
            FileOperation.DELETE: self._delete,
        }

    def apply(
        self,
        change: GeneratedChange,
        target_directory: str | Path,
        application_id: str,
        options: MutationOptions,
    ) -> AppliedFile:
        """Run one change through the pipeline and report the outcome."""
        try:
            absolute_path = resolve_target(target_directory, change.file_path)
        except ValueError as e:
            logger.error(f"Rejected {change.file_path}: {e}")
            return AppliedFile(
                file_path=change.file_path,
                absolute_path=str(Path(target_directory) / change.file_path),
                operation=change.operation,
                status=FileStatus.FAILED,
                error=str(e),
            )

        ctx = MutationContext(
            change=change,
            application_id=application_id,
            absolute_path=absolute_path,
            options=options,
            existed=absolute_path.exists() or absolute_path.is_symlink(),
        )
        ctx = self._backup(ctx)
        ctx = self._mutate(ctx)
        ctx = ctx.finish()
        return self._to_applied_file(ctx)

    # ── Stages ──

    def _backup(self, ctx: MutationContext) -> MutationContext:
        opts = ctx.options
        if (
            not opts.create_backup
            or opts.dry_run
            or not ctx.existed
            or ctx.change.operation is FileOperation.CREATE
        ):
            return ctx

        try:
            backup_path = self.backup_manager.create_backup(
                ctx.absolute_path, ctx.application_id, ctx.change.file_path
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to create backup for {ctx.change.file_path}: {e}")
            return ctx

        logger.info(f"Backup created for {ctx.change.file_path}")
        return ctx.advance(MutationStage.BACKED_UP, backup_path=backup_path)

    def _mutate(self, ctx: MutationContext) -> MutationContext:
        handler = self._handlers[ctx.change.operation]
        try:
            return handler(ctx)
        except InvalidTransitionError:
            raise
        except Exception as e:
            logger.error(f"{ctx.change.operation.value} failed for {ctx.change.file_path}: {e}")
            return ctx.fail(str(e) or e.__class__.__name__)

    # ── Operations ──

    def _create(self, ctx: MutationContext) -> MutationContext:
        if ctx.existed and not ctx.options.overwrite_existing:
            logger.info(f"Skipping {ctx.change.file_path}: exists and overwrite disabled")
            return ctx.advance(MutationStage.SKIPPED)
        return self._write(ctx, ctx.change.content)

    def _modify(self, ctx: MutationContext) -> MutationContext:
        change = ctx.change
        is_diff = change.content_type is ContentType.DIFF
        diff_mode = is_diff and ctx.options.use_diff_mode

        if not ctx.existed:
            if not diff_mode:
                return ctx.fail("File does not exist")
            logger.info(f"File {change.file_path} does not exist, creating from diff content")
            try:
                content = extract_added_lines(change.content)
            except Exception as e:
                return ctx.fail(f"Failed to extract content from diff: {e}")
            return self._write(ctx, content, PatchStage.LINE_EXTRACTION)

        if diff_mode:
            logger.info(f"Applying diff to {change.file_path}")
            try:
                current = ctx.absolute_path.read_bytes().decode("utf-8")
                outcome = resolve_diff(current, change.content)
            except Exception as e:
                return ctx.fail(f"Error applying diff: {e}")
            if outcome.stage is PatchStage.STRUCTURED:
                logger.info(f"Patch applied successfully to {change.file_path}")
            else:
                logger.warning(
                    f"Patch failed for {change.file_path}, wrote added lines only"
                )
            return self._write(ctx, outcome.content, outcome.stage)

        if is_diff:
            if self.raw_diff_policy == "reject":
                return ctx.fail("Diff content supplied while diff mode is disabled")
            logger.warning(
                f"Diff mode disabled, writing diff text verbatim to {change.file_path}"
            )
        return self._write(ctx, change.content)

    def _delete(self, ctx: MutationContext) -> MutationContext:
        if not ctx.existed:
            return ctx.advance(MutationStage.SKIPPED)
        if not ctx.options.dry_run:
            ctx.absolute_path.unlink()
        return ctx.advance(MutationStage.DELETED)

    def _write(
        self,
        ctx: MutationContext,
        content: str,
        patch_stage: PatchStage | None = None,
    ) -> MutationContext:
        data = content.encode("utf-8")
        if ctx.options.dry_run:
            return ctx.advance(
                MutationStage.WRITTEN, bytes_written=len(data), patch_stage=patch_stage
            )

        if ctx.options.create_directories:
            ctx.absolute_path.parent.mkdir(parents=True, exist_ok=True)
        ctx.absolute_path.write_bytes(data)
        return ctx.advance(
            MutationStage.WRITTEN,
            bytes_written=ctx.absolute_path.stat().st_size,
            patch_stage=patch_stage,
        )

    @staticmethod
    def _to_applied_file(ctx: MutationContext) -> AppliedFile:
        return AppliedFile(
            file_path=ctx.change.file_path,
            absolute_path=str(ctx.absolute_path),
            operation=ctx.change.operation,
            status=_STATUS_BY_OUTCOME[ctx.outcome],
            error=ctx.error,
            bytes_written=ctx.bytes_written,
            backup_path=ctx.backup_path,
            patch_stage=ctx.patch_stage,
        )
