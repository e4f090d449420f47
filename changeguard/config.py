"""
ChangeGuard Configuration — pydantic-settings based.

All settings are read from environment variables or .env file.
Every value has a default, so the engine can run without any configuration.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Storage ──
    backup_root: str = Field(
        default="./backups",
        description="Root of the per-application backup tree",
    )
    ledger_path: str = Field(
        default="./applications/ledger.db",
        description="SQLite file holding application and rollback records",
    )

    # ── Apply ──
    default_target_directory: str | None = Field(
        default=None,
        description="Target tree used when a request names none (None → cwd)",
    )
    raw_diff_policy: Literal["write", "reject"] = Field(
        default="write",
        description=(
            "What to do with diff content when diff mode is disabled: "
            "'write' stores it verbatim (logged), 'reject' fails the file"
        ),
    )
    patch_max_offset: int = Field(
        default=1000,
        description="Max line distance searched around a hunk's declared position",
    )

    # ── Server ──
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="0.0.0.0", description="Server bind host")
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )

    # ── Audit ──
    audit_enabled: bool = Field(default=True, description="Write the audit trail")
    audit_log_path: str = Field(
        default="audit.jsonl", description="Path to JSON-lines audit log file"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "CHANGEGUARD_",
        "case_sensitive": False,
    }


# Singleton instance, imported by other modules
settings = Settings()
