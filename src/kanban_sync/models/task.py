"""Task SQLAlchemy ORM model declaring the current tasks table schema.

Older deployments may still run a tasks table without the kanban columns
(status, position, parent_task_id). The model describes the full schema used
when the table is created from scratch; the Task Service reflects the live
table instead of trusting this declaration.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from .base import Base


def _new_task_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    """One task row; top-level tasks (no parent) are the cards of a board."""
    __tablename__ = 'tasks'

    __table_args__ = (
        Index('idx_task_project', 'project_id'),
        Index('idx_task_project_status', 'project_id', 'status'),
    )

    id = Column(String(36), primary_key=True, default=_new_task_id, nullable=False)
    project_id = Column(String, nullable=False)
    parent_task_id = Column(String(36), nullable=True)
    text = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=True)
    position = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<Task(id={self.id}, text='{self.text}', status='{self.status}')>"
