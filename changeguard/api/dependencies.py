"""
FastAPI Dependencies — Shared singletons injected via Depends().
"""

from __future__ import annotations

from functools import lru_cache

from changeguard.audit.logger import AuditLogger
from changeguard.engine.backup_manager import BackupManager
from changeguard.engine.batch_runner import ChangeBatchRunner
from changeguard.engine.rollback_engine import RollbackEngine
from changeguard.executions.registry import InMemoryExecutionRegistry
from changeguard.ledger.store import Ledger


@lru_cache
def get_execution_registry() -> InMemoryExecutionRegistry:
    """Shared execution registry singleton."""
    return InMemoryExecutionRegistry()


@lru_cache
def get_ledger() -> Ledger:
    """Shared ledger singleton."""
    return Ledger()


@lru_cache
def get_backup_manager() -> BackupManager:
    """Shared backup manager singleton."""
    return BackupManager()


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Shared audit logger singleton."""
    return AuditLogger()


@lru_cache
def get_batch_runner() -> ChangeBatchRunner:
    """Shared batch runner singleton."""
    return ChangeBatchRunner(
        executions=get_execution_registry(),
        ledger=get_ledger(),
        backup_manager=get_backup_manager(),
        audit_logger=get_audit_logger(),
    )


@lru_cache
def get_rollback_engine() -> RollbackEngine:
    """Shared rollback engine singleton."""
    return RollbackEngine(
        ledger=get_ledger(),
        backup_manager=get_backup_manager(),
        audit_logger=get_audit_logger(),
    )
