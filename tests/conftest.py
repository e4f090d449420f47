"""
Test fixtures shared across all ChangeGuard tests.
"""

import pytest

from changeguard.audit.logger import AuditLogger
from changeguard.engine.backup_manager import BackupManager
from changeguard.engine.batch_runner import ChangeBatchRunner
from changeguard.engine.file_mutator import FileMutator
from changeguard.engine.rollback_engine import RollbackEngine
from changeguard.executions.registry import InMemoryExecutionRegistry
from changeguard.ledger.store import Ledger


@pytest.fixture
def greet_source():
    """A small file the diff fixtures are written against."""
    return "def greet():\n    return 'hi'\n\nprint(greet())\n"


@pytest.fixture
def greet_diff():
    """Unified diff changing greet()'s return value."""
    return (
        "--- a/greet.py\n"
        "+++ b/greet.py\n"
        "@@ -1,4 +1,4 @@\n"
        " def greet():\n"
        "-    return 'hi'\n"
        "+    return 'hello'\n"
        " \n"
        " print(greet())\n"
    )


@pytest.fixture
def greet_patched():
    return "def greet():\n    return 'hello'\n\nprint(greet())\n"


@pytest.fixture
def target_dir(tmp_path):
    """Empty target tree the engine mutates."""
    path = tmp_path / "target"
    path.mkdir()
    return path


@pytest.fixture
def backup_root(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def backup_manager(backup_root):
    return BackupManager(backup_root)


@pytest.fixture
def ledger(tmp_path):
    return Ledger(tmp_path / "ledger" / "ledger.db")


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(tmp_path / "audit.jsonl", enabled=True)


@pytest.fixture
def registry():
    return InMemoryExecutionRegistry()


@pytest.fixture
def mutator(backup_manager):
    return FileMutator(backup_manager, raw_diff_policy="write")


@pytest.fixture
def runner(registry, ledger, backup_manager, mutator, audit_logger):
    return ChangeBatchRunner(
        executions=registry,
        ledger=ledger,
        backup_manager=backup_manager,
        mutator=mutator,
        audit_logger=audit_logger,
    )


@pytest.fixture
def rollback_engine(ledger, backup_manager, audit_logger):
    return RollbackEngine(
        ledger=ledger,
        backup_manager=backup_manager,
        audit_logger=audit_logger,
    )
