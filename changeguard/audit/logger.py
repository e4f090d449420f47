"""
Audit Logger — Structured JSON-lines audit trail.

Records every apply and rollback with: timestamp, record id, origin ids,
per-file counts, final status, and duration.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from changeguard.config import settings
from changeguard.models.record_models import AuditEntry

logger = logging.getLogger("changeguard.audit")


class AuditLogger:
    """Writes structured audit entries to a JSON-lines file."""

    def __init__(self, log_path: str | Path | None = None, enabled: bool | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)
        self.enabled = settings.audit_enabled if enabled is None else enabled

    def log(self, entry: AuditEntry) -> None:
        """Append an audit entry to the log file."""
        if not self.enabled:
            return

        record = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            **entry.model_dump(),
        }

        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")

    def read_recent(self, count: int = 50, event: str | None = None) -> list[dict]:
        """Read the most recent N audit entries, optionally of one event kind."""
        if not self.log_path.exists():
            return []

        entries: list[dict] = []
        try:
            with open(self.log_path) as f:
                for raw in f:
                    raw = raw.strip()
                    if not raw:
                        continue
                    try:
                        entry = json.loads(raw)
                    except json.JSONDecodeError:
                        continue
                    if event is None or entry.get("event") == event:
                        entries.append(entry)
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        return entries[-count:]
