"""Pytest configuration and fixtures for testing.

This module provides in-memory SQLite fixtures for the SQLAlchemy Task
Service, plus an in-memory Task Service double and a recording render
adapter for driving the sync engine without a database or a UI.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import kanban_sync.database
from kanban_sync.models.base import Base
from kanban_sync.registry import BoardRegistry
from kanban_sync.services.sync_engine import SyncEngine
from kanban_sync.services.task_service import SchemaFieldUnsupported


class FakeTaskService:
    """In-memory Task Service recording every call.

    ``failures`` maps a method name to an exception raised on the next call
    of that method. ``hold`` maps a method name to an asyncio.Event the call
    waits on, which keeps the call in flight until the test sets the event.
    """

    def __init__(self, tasks: Optional[List[Dict[str, Any]]] = None):
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.hold: Dict[str, asyncio.Event] = {}
        # Fields the fake persistence schema does not have
        self.unsupported_fields: set = set()
        self.echo_fields: Optional[set] = None
        self._ids = itertools.count(1)
        self.seed(tasks or [])

    def seed(self, tasks: List[Dict[str, Any]]) -> None:
        for task in tasks:
            self.tasks[str(task["id"])] = dict(task)

    async def _enter(self, name: str) -> None:
        if name in self.hold:
            await self.hold[name].wait()
        if name in self.failures:
            raise self.failures.pop(name)

    async def list_tasks(self, project_id):
        self.calls.append(("list_tasks", project_id))
        await self._enter("list_tasks")
        return [dict(task) for task in self.tasks.values() if task.get("project_id") == project_id]

    async def create_task(self, project_id, fields):
        self.calls.append(("create_task", project_id, dict(fields)))
        await self._enter("create_task")
        for name in fields:
            if name in self.unsupported_fields:
                raise SchemaFieldUnsupported(name)
        task = {"id": f"task-{next(self._ids)}", "project_id": project_id, **fields}
        self.tasks[task["id"]] = task
        if self.echo_fields is not None:
            return {key: value for key, value in task.items() if key in self.echo_fields}
        return dict(task)

    async def update_task(self, project_id, task_id, fields):
        self.calls.append(("update_task", project_id, task_id, dict(fields)))
        await self._enter("update_task")
        for name in fields:
            if name in self.unsupported_fields:
                raise SchemaFieldUnsupported(name)
        task = self.tasks.setdefault(task_id, {"id": task_id, "project_id": project_id})
        task.update(fields)
        return dict(task)

    async def delete_task(self, project_id, task_id):
        self.calls.append(("delete_task", project_id, task_id))
        await self._enter("delete_task")
        self.tasks.pop(task_id, None)

    def calls_to(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class RecordingRenderAdapter:
    """Render adapter remembering every hook the engine called."""

    def __init__(self):
        self.repainted_columns: List[tuple] = []
        self.repainted_cards: List[tuple] = []
        self.drag_marks: List[tuple] = []
        self.notifications: List[tuple] = []

    def repaint_column(self, instance, column_id):
        self.repainted_columns.append((instance.key, column_id))

    def repaint_card(self, instance, card_id):
        self.repainted_cards.append((instance.key, card_id))

    def mark_dragging(self, card_id, dragging):
        self.drag_marks.append((card_id, dragging))

    def notify(self, instance, level, message):
        self.notifications.append((instance.key, level.value, message))

    def messages(self, level: str) -> List[str]:
        return [message for _, note_level, message in self.notifications if note_level == level]


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite engine with the current tasks schema.

    Yields:
        SQLAlchemy Engine instance configured for in-memory SQLite.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session bound to the in-memory engine."""
    SessionLocal = sessionmaker(
        bind=db_engine,
        autoflush=False,
        expire_on_commit=False
    )

    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def clean_db_state():
    """Reset the module-level database state before and after each test."""
    kanban_sync.database._reset_db_state()

    yield

    kanban_sync.database._reset_db_state()


@pytest.fixture
def task_service():
    return FakeTaskService()


@pytest.fixture
def render():
    return RecordingRenderAdapter()


@pytest.fixture
def registry():
    registry = BoardRegistry()
    yield registry
    registry.clear()


@pytest.fixture
def engine(task_service, render):
    return SyncEngine(task_service, render, timeout=1.0)
