"""
Apply-Changes Routes — /apply-changes

Thin HTTP shell over ChangeBatchRunner and RollbackEngine. Run-level errors
(unknown execution/application, rollback not allowed) propagate to the
exception handlers registered in changeguard.main.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from changeguard.api.dependencies import (
    get_batch_runner,
    get_execution_registry,
    get_rollback_engine,
)
from changeguard.engine.batch_runner import ChangeBatchRunner
from changeguard.engine.rollback_engine import RollbackEngine
from changeguard.executions.registry import InMemoryExecutionRegistry
from changeguard.models.record_models import (
    ApplicationRecord,
    ApplyChangesRequest,
    ExecutionChanges,
    RollbackRecord,
    RollbackRequest,
)

logger = logging.getLogger("changeguard.api.apply_changes")

router = APIRouter(prefix="/apply-changes")


@router.put("/executions/{execution_id}", status_code=204)
def register_execution(
    execution_id: str,
    body: ExecutionChanges,
    registry: InMemoryExecutionRegistry = Depends(get_execution_registry),
) -> None:
    """Register the generated changes of a finished execution."""
    registry.register(execution_id, body.changes)


@router.post("/apply", response_model=ApplicationRecord, status_code=201)
def apply_changes(
    request: ApplyChangesRequest,
    runner: ChangeBatchRunner = Depends(get_batch_runner),
):
    """
    Apply an execution's changes to the target directory.

    Per-file outcomes are in appliedFiles; the response status is
    COMPLETED, PARTIALLY_COMPLETED or FAILED.
    """
    return runner.apply_execution(request)


@router.post("/rollback", response_model=RollbackRecord)
def rollback(
    request: RollbackRequest,
    engine: RollbackEngine = Depends(get_rollback_engine),
):
    """Reverse a prior application using its backups."""
    return engine.rollback(request)


@router.get("/status/{application_id}", response_model=ApplicationRecord)
def get_status(
    application_id: str,
    runner: ChangeBatchRunner = Depends(get_batch_runner),
):
    record = runner.get_application(application_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return record


@router.get("/list", response_model=list[ApplicationRecord])
def list_applications(runner: ChangeBatchRunner = Depends(get_batch_runner)):
    return runner.list_applications()


@router.get("/execution/{execution_id}", response_model=list[ApplicationRecord])
def list_for_execution(
    execution_id: str,
    runner: ChangeBatchRunner = Depends(get_batch_runner),
):
    return runner.list_applications_for_execution(execution_id)
