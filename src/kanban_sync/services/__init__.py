"""Service layer for the kanban_sync application.

This package contains the Task Service persistence contract with its
SQLAlchemy implementation, and the board synchronization engine.
"""

from .task_service import (
    TaskService,
    SqlTaskService,
    ServiceError,
    SchemaFieldUnsupported,
    TaskNotFoundError
)

from .sync_engine import (
    SyncEngine,
    Outcome,
    OperationResult
)

__all__ = [
    "TaskService",
    "SqlTaskService",
    "ServiceError",
    "SchemaFieldUnsupported",
    "TaskNotFoundError",
    "SyncEngine",
    "Outcome",
    "OperationResult"
]
