"""
Change Data Models — the edits handed to the engine by the execution layer.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FileOperation(str, Enum):
    CREATE = "CREATE"
    MODIFY = "MODIFY"
    DELETE = "DELETE"


class ContentType(str, Enum):
    FULL = "full"
    DIFF = "diff"


class PatchStage(str, Enum):
    """Which step of the two-stage diff strategy produced the content."""

    STRUCTURED = "STRUCTURED"
    LINE_EXTRACTION = "LINE_EXTRACTION"
    FAILED = "FAILED"


def normalize_file_path(value: str) -> str:
    """Canonical relative form: forward slashes, no leading './'."""
    value = value.strip().replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    return value


class GeneratedChange(BaseModel):
    """A single proposed edit to one file."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    file_path: str = Field(..., description="Path relative to the target directory")
    operation: FileOperation
    content: str = Field(default="", description="Full file content or unified diff text")
    content_type: ContentType = ContentType.FULL

    @field_validator("file_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        value = normalize_file_path(value)
        if not value:
            raise ValueError("file_path must not be empty")
        return value
