"""Pydantic schemas for the kanban_sync application.

This package contains the canonical card model, the task payload model and
the normalization applied to raw task records.
"""

from .card import CardRecord, InvalidRecordError, TaskFields, merge_task_record, normalize_card

__all__ = ["CardRecord", "InvalidRecordError", "TaskFields", "merge_task_record", "normalize_card"]
