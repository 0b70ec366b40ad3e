"""Pydantic schemas for board cards and task persistence payloads.

Raw task records coming back from the persistence layer are loosely shaped:
the card text may live under ``text`` or ``title``, keys may be snake_case or
camelCase, and kanban fields may be missing entirely on older schemas. Every
raw record is passed through ``normalize_card`` before it may enter a board.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..columns import DEFAULT_COLUMN_ID, column_ids, is_valid_column

logger = logging.getLogger(__name__)


class InvalidRecordError(ValueError):
    """Exception raised when a raw task record cannot become a card."""
    pass


class CardRecord(BaseModel):
    """Canonical in-memory representation of one card.

    Instances are mutated in place by the sync engine so the render layer
    can keep locating the same card object across edits and moves.
    """
    id: str = Field(..., description="Task identifier (UUID or synthetic id)")
    project_id: str = Field(..., description="Identifier of the owning project")
    title: str = Field("", description="Display text of the card")
    description: Optional[str] = Field(None, description="Optional card description")
    status: Optional[str] = Field(None, description="Column id the card belongs to")
    position: Optional[int] = Field(None, description="Explicit position within the column")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    @field_validator('position', mode='before')
    @classmethod
    def validate_position(cls, v: Any) -> Optional[int]:
        """Drop positions that are not integers instead of rejecting the card."""
        if v is None or isinstance(v, bool):
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @field_validator('created_at', mode='before')
    @classmethod
    def validate_created_at(cls, v: Any) -> Optional[datetime]:
        """Parse ISO strings, assume UTC for naive values, drop anything unparseable."""
        if v is None:
            return None
        if isinstance(v, str):
            try:
                v = datetime.fromisoformat(v.replace('Z', '+00:00'))
            except ValueError:
                return None
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=timezone.utc)
            return v
        return None


class TaskFields(BaseModel):
    """Fields sent to the Task Service on create and update.

    Only explicitly set fields end up in the payload, so an update carries
    exactly the fields the caller wants changed.
    """
    text: Optional[str] = Field(None, description="Card text (title)")
    description: Optional[str] = Field(None, description="Card description")
    status: Optional[str] = Field(None, description="Target column id")
    position: Optional[int] = Field(None, ge=0, description="Position within the column")

    @field_validator('text')
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        """Validate that text is non-empty after stripping whitespace."""
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace, convert empty descriptions to None."""
        if v is None:
            return v
        stripped = v.strip()
        return stripped if stripped else None

    @field_validator('status')
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        """Validate status is one of the board columns if provided."""
        if v is None:
            return v
        if not is_valid_column(v):
            raise ValueError(f"Invalid status '{v}'. Must be one of: {list(column_ids())}")
        return v

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _first_present(raw: Mapping, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_card(raw: Mapping, project_id: str) -> CardRecord:
    """Map a raw, partially-unknown task record onto a CardRecord.

    - the card text is taken from ``title`` or ``text``
    - ``project_id`` is forced to the owning board's project
    - an absent or unrecognized status is corrected to ``todo``

    Args:
        raw: Task record as returned by the Task Service
        project_id: Project of the board the card is loaded into

    Returns:
        The normalized CardRecord

    Raises:
        InvalidRecordError: When the record is not a mapping or has no id
    """
    if not isinstance(raw, Mapping):
        raise InvalidRecordError(f"Task record must be a mapping, got: {type(raw).__name__}")

    task_id = raw.get("id")
    if task_id is None or str(task_id).strip() == "":
        raise InvalidRecordError("Task record has no id")

    status = raw.get("status")
    if not is_valid_column(status):
        if status is not None:
            logger.warning(f"Task {task_id} has unknown status: {status}, placing it in {DEFAULT_COLUMN_ID}")
        status = DEFAULT_COLUMN_ID

    title = _first_present(raw, "title", "text")

    return CardRecord(
        id=str(task_id),
        project_id=str(project_id),
        title=str(title) if title is not None else "",
        description=_first_present(raw, "description"),
        status=status,
        position=raw.get("position"),
        created_at=_first_present(raw, "created_at", "createdAt"),
    )


def merge_task_record(raw: Mapping, requested: Mapping) -> Dict[str, Any]:
    """Fill the gaps of a record echoed back by the Task Service.

    The service may drop fields its schema does not support; the values the
    engine asked for stand in for anything the echo lacks. A status the
    board does not recognize is replaced by the requested one as well.
    """
    merged = dict(requested)
    for key, value in raw.items():
        if value is not None:
            merged[key] = value
    if not is_valid_column(raw.get("status")) and is_valid_column(requested.get("status")):
        merged["status"] = requested["status"]
    return merged
