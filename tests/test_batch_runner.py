"""
Tests for Change Batch Runner — run records, status derivation and persistence.
"""

import pytest

from changeguard.errors import ExecutionNotFoundError
from changeguard.models.change_models import ContentType, FileOperation, GeneratedChange
from changeguard.models.record_models import (
    ApplyChangesRequest,
    FileStatus,
    RunStatus,
    derive_status,
)


def _change(path, operation, content="", content_type=ContentType.FULL):
    return GeneratedChange(
        file_path=path, operation=operation, content=content, content_type=content_type
    )


def _request(target_dir, **overrides):
    return ApplyChangesRequest(execution_id="exec-1", target_directory=str(target_dir), **overrides)


def test_single_create_completes(runner, registry, ledger, target_dir):
    registry.register("exec-1", [_change("foo.txt", FileOperation.CREATE, "hello")])

    record = runner.apply_execution(_request(target_dir))

    assert record.status is RunStatus.COMPLETED
    assert record.total_files == 1
    assert record.successful_files == 1
    assert record.failed_files == 0
    assert record.applied_files[0].status is FileStatus.SUCCESS
    assert record.applied_files[0].bytes_written == 5
    assert record.can_rollback is False
    assert record.completed_at is not None
    assert record.completed_at >= record.started_at
    assert ledger.get_application(record.application_id).model_dump() == record.model_dump()


def test_unknown_execution_raises_before_any_work(runner, ledger, target_dir):
    with pytest.raises(ExecutionNotFoundError):
        runner.apply_execution(_request(target_dir))
    assert ledger.list_applications() == []
    assert list(target_dir.iterdir()) == []


def test_results_follow_input_order(runner, target_dir):
    changes = [
        _change("b.txt", FileOperation.CREATE, "b"),
        _change("a.txt", FileOperation.CREATE, "a"),
        _change("c.txt", FileOperation.DELETE),
    ]
    record = runner.apply_changes("exec-1", changes, _request(target_dir))
    assert [f.file_path for f in record.applied_files] == ["b.txt", "a.txt", "c.txt"]
    assert record.applied_files[2].status is FileStatus.SKIPPED


def test_later_changes_see_earlier_writes(runner, target_dir):
    changes = [
        _change("doc.txt", FileOperation.CREATE, "a\nb\n"),
        _change("doc.txt", FileOperation.MODIFY, "@@ -1,2 +1,2 @@\n a\n-b\n+c\n", ContentType.DIFF),
    ]
    record = runner.apply_changes("exec-1", changes, _request(target_dir))
    assert record.status is RunStatus.COMPLETED
    assert (target_dir / "doc.txt").read_text() == "a\nc\n"


def test_file_filter_limits_changes(runner, registry, target_dir):
    registry.register("exec-1", [
        _change("keep.txt", FileOperation.CREATE, "k"),
        _change("drop.txt", FileOperation.CREATE, "d"),
    ])
    record = runner.apply_execution(_request(target_dir, file_filter=["keep.txt"]))
    assert [f.file_path for f in record.applied_files] == ["keep.txt"]
    assert not (target_dir / "drop.txt").exists()


def test_file_filter_entries_are_normalized(runner, registry, target_dir):
    registry.register("exec-1", [
        _change("src/keep.txt", FileOperation.CREATE, "k"),
        _change("drop.txt", FileOperation.CREATE, "d"),
    ])
    record = runner.apply_execution(_request(target_dir, file_filter=[".\\src\\keep.txt"]))
    assert [f.file_path for f in record.applied_files] == ["src/keep.txt"]
    assert not (target_dir / "drop.txt").exists()


def test_partial_failure(runner, target_dir):
    changes = [
        _change("ok.txt", FileOperation.CREATE, "fine"),
        _change("missing.txt", FileOperation.MODIFY, "full content"),
    ]
    record = runner.apply_changes("exec-1", changes, _request(target_dir))
    assert record.status is RunStatus.PARTIALLY_COMPLETED
    assert record.successful_files == 1
    assert record.failed_files == 1
    assert record.applied_files[1].error == "File does not exist"


def test_all_failures(runner, target_dir):
    changes = [_change("missing.txt", FileOperation.MODIFY, "x")]
    record = runner.apply_changes("exec-1", changes, _request(target_dir))
    assert record.status is RunStatus.FAILED


def test_empty_run_completes(runner, ledger, target_dir):
    record = runner.apply_changes("exec-1", [], _request(target_dir))
    assert record.status is RunStatus.COMPLETED
    assert record.total_files == 0
    assert ledger.get_application(record.application_id) is not None


def test_can_rollback_when_backup_created(runner, target_dir):
    (target_dir / "notes.md").write_text("old")
    changes = [_change("notes.md", FileOperation.MODIFY, "new")]
    record = runner.apply_changes("exec-1", changes, _request(target_dir))
    assert record.can_rollback is True
    assert record.applied_files[0].backup_path is not None


def test_dry_run_record(runner, target_dir, backup_root):
    (target_dir / "notes.md").write_text("old")
    changes = [
        _change("notes.md", FileOperation.MODIFY, "new content"),
        _change("fresh.txt", FileOperation.CREATE, "hello"),
    ]
    record = runner.apply_changes("exec-1", changes, _request(target_dir, dry_run=True))
    assert record.dry_run is True
    assert record.can_rollback is False
    assert [f.bytes_written for f in record.applied_files] == [11, 5]
    assert (target_dir / "notes.md").read_text() == "old"
    assert not (target_dir / "fresh.txt").exists()
    assert not backup_root.exists()


def test_runs_are_audited(runner, audit_logger, target_dir):
    record = runner.apply_changes(
        "exec-1", [_change("foo.txt", FileOperation.CREATE, "x")], _request(target_dir)
    )
    entries = audit_logger.read_recent(event="apply")
    assert len(entries) == 1
    assert entries[0]["record_id"] == record.application_id
    assert entries[0]["status"] == "COMPLETED"


def test_lookups_by_execution(runner, target_dir):
    first = runner.apply_changes("exec-1", [], _request(target_dir))
    second = runner.apply_changes("exec-2", [], _request(target_dir))

    assert runner.get_application(first.application_id).model_dump() == first.model_dump()
    assert [r.application_id for r in runner.list_applications_for_execution("exec-2")] == [
        second.application_id
    ]
    assert {r.application_id for r in runner.list_applications()} == {
        first.application_id,
        second.application_id,
    }


@pytest.mark.parametrize(
    "successful, failed, expected",
    [
        (0, 0, RunStatus.COMPLETED),
        (3, 0, RunStatus.COMPLETED),
        (2, 1, RunStatus.PARTIALLY_COMPLETED),
        (1, 5, RunStatus.PARTIALLY_COMPLETED),
        (0, 1, RunStatus.FAILED),
        (0, 4, RunStatus.FAILED),
    ],
)
def test_derive_status(successful, failed, expected):
    assert derive_status(successful, failed) is expected
