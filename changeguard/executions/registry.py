"""
Execution Registry — Lookup of generated changes by execution ID.

The engine only needs an object satisfying ExecutionSource. The in-memory
registry is what the HTTP shell uses; an agent layer fills it after a plan
execution finishes.
"""

from __future__ import annotations

import logging
from typing import Protocol

from changeguard.models.change_models import GeneratedChange

logger = logging.getLogger("changeguard.executions")


class ExecutionSource(Protocol):
    def get_changes(self, execution_id: str) -> list[GeneratedChange] | None:
        """Ordered changes for an execution, or None if it is unknown."""
        ...


class InMemoryExecutionRegistry:
    """Dict-backed ExecutionSource."""

    def __init__(self) -> None:
        self._executions: dict[str, list[GeneratedChange]] = {}

    def register(self, execution_id: str, changes: list[GeneratedChange]) -> None:
        self._executions[execution_id] = list(changes)
        logger.debug(f"Registered execution {execution_id} ({len(changes)} changes)")

    def get_changes(self, execution_id: str) -> list[GeneratedChange] | None:
        changes = self._executions.get(execution_id)
        return list(changes) if changes is not None else None

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._executions
