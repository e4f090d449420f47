"""
Ledger — SQLite-backed keyed store of application and rollback records.

One row per record ID holding the record's JSON document. Every read goes to
the database, so a record is visible as soon as save_* returns and nothing is
scanned at startup.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from changeguard.config import settings
from changeguard.models.record_models import ApplicationRecord, RollbackRecord

logger = logging.getLogger("changeguard.ledger")


class Ledger:
    """Repository boundary for application and rollback records."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path or settings.ledger_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS applications (
                    application_id TEXT PRIMARY KEY,
                    execution_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    body TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rollbacks (
                    rollback_id TEXT PRIMARY KEY,
                    application_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    body TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_applications_execution "
                "ON applications(execution_id)"
            )
            conn.commit()

    # ── Applications ──

    def save_application(self, record: ApplicationRecord) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO applications
                (application_id, execution_id, started_at, body)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record.application_id,
                    record.execution_id,
                    record.started_at.isoformat(),
                    record.model_dump_json(by_alias=True),
                ),
            )
            conn.commit()
        logger.debug(f"Persisted application {record.application_id}")

    def get_application(self, application_id: str) -> ApplicationRecord | None:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT body FROM applications WHERE application_id = ?",
                (application_id,),
            ).fetchone()
        return ApplicationRecord.model_validate_json(row[0]) if row else None

    def list_applications(self, execution_id: str | None = None) -> list[ApplicationRecord]:
        """All applications, newest first, optionally for one execution."""
        query = "SELECT body FROM applications"
        params: tuple[str, ...] = ()
        if execution_id is not None:
            query += " WHERE execution_id = ?"
            params = (execution_id,)
        query += " ORDER BY started_at DESC"
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [ApplicationRecord.model_validate_json(row[0]) for row in rows]

    # ── Rollbacks ──

    def save_rollback(self, record: RollbackRecord) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO rollbacks
                (rollback_id, application_id, started_at, body)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record.rollback_id,
                    record.application_id,
                    record.started_at.isoformat(),
                    record.model_dump_json(by_alias=True),
                ),
            )
            conn.commit()
        logger.debug(f"Persisted rollback {record.rollback_id}")

    def get_rollback(self, rollback_id: str) -> RollbackRecord | None:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT body FROM rollbacks WHERE rollback_id = ?",
                (rollback_id,),
            ).fetchone()
        return RollbackRecord.model_validate_json(row[0]) if row else None

    def list_rollbacks(self, application_id: str) -> list[RollbackRecord]:
        """Rollbacks of one application, newest first."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT body FROM rollbacks
                WHERE application_id = ?
                ORDER BY started_at DESC
                """,
                (application_id,),
            ).fetchall()
        return [RollbackRecord.model_validate_json(row[0]) for row in rows]
