"""SQLAlchemy ORM models for the kanban_sync persistence layer.

This package contains the tasks table model and the base declarative class.
"""

from .base import Base
from .task import Task

__all__ = ["Base", "Task"]
