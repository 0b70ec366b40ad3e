"""Unit tests for state management module.

These tests verify session state initialization, board opening and closing,
and the notification and repaint queues using a mocked Streamlit module.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from kanban_sync.registry import BoardMode, BoardRegistry
from kanban_sync.render import NotificationLevel
from kanban_sync.services.sync_engine import SyncEngine
from kanban_sync.drag_session import DragSession
from kanban_sync.state_management import (
    StreamlitRenderAdapter,
    close_board,
    dismiss_notification,
    initialize_session_state,
    open_board,
    reload_board,
    take_notifications,
    take_repaints,
)


class SessionState(dict):
    """Dict with attribute access, like st.session_state."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __setattr__(self, name, value):
        self[name] = value


@pytest.fixture
def mock_st(monkeypatch):
    mock_st = MagicMock()
    mock_st.session_state = SessionState()
    monkeypatch.setattr('kanban_sync.state_management.st', mock_st)
    return mock_st


@pytest.fixture
def session(mock_st, task_service):
    """Session state wired to the in-memory Task Service."""
    registry = BoardRegistry()
    engine = SyncEngine(task_service, StreamlitRenderAdapter(), timeout=1.0)
    mock_st.session_state.update(
        initialized=True,
        board_registry=registry,
        sync_engine=engine,
        drag_session=DragSession(registry, engine),
        notifications=[],
        pending_repaints=set(),
        dragging_card_id=None,
        editing_card_id=None,
    )
    return mock_st.session_state


class TestInitializeSessionState:
    """Test cases for the initialize_session_state function."""

    def test_first_run_sets_defaults(self, mock_st, monkeypatch, db_engine):
        """Test that first run creates registry, engine and drag session."""
        monkeypatch.setattr('kanban_sync.state_management.get_engine', lambda: db_engine)

        initialize_session_state()

        state = mock_st.session_state
        assert state.initialized is True
        assert isinstance(state.board_registry, BoardRegistry)
        assert isinstance(state.sync_engine, SyncEngine)
        assert isinstance(state.sync_engine.render, StreamlitRenderAdapter)
        assert state.drag_session.registry is state.board_registry
        assert state.notifications == []
        assert state.pending_repaints == set()
        assert state.dragging_card_id is None
        assert state.editing_card_id is None

    def test_idempotent(self, mock_st, monkeypatch):
        """Test that subsequent calls do not re-initialize if already done."""
        mock_st.session_state.initialized = True
        mock_get_engine = MagicMock()
        monkeypatch.setattr('kanban_sync.state_management.get_engine', mock_get_engine)

        initialize_session_state()

        mock_get_engine.assert_not_called()
        assert "board_registry" not in mock_st.session_state

    def test_database_error_propagates(self, mock_st, monkeypatch):
        monkeypatch.setattr('kanban_sync.state_management.get_engine',
                            MagicMock(side_effect=RuntimeError("no database")))

        with pytest.raises(RuntimeError):
            initialize_session_state()
        assert "initialized" not in mock_st.session_state


class TestBoards:
    """Test cases for opening, reloading and closing boards."""

    def test_open_board_registers_and_loads(self, session, task_service):
        task_service.seed([{"id": "1", "project_id": "P1", "text": "a", "status": "doing"}])

        instance = open_board("embedded:P1", "P1")

        assert session.board_registry.lookup("embedded:P1") is instance
        assert instance.state.column_of("1") == "doing"
        assert ("embedded:P1", "doing") in session.pending_repaints

    def test_open_board_reuses_existing_instance(self, session, task_service):
        first = open_board("embedded:P1", "P1")

        second = open_board("embedded:P1", "P1")

        assert second is first
        assert len(task_service.calls_to("list_tasks")) == 1

    def test_open_board_with_other_project_replaces_instance(self, session):
        first = open_board("embedded", "P1")

        second = open_board("embedded", "P2")

        assert second is not first
        assert second.project_id == "P2"
        assert len(session.board_registry) == 1

    def test_reload_board(self, session, task_service):
        instance = open_board("embedded:P1", "P1")
        task_service.seed([{"id": "9", "project_id": "P1", "text": "new", "status": "done"}])

        result = reload_board("embedded:P1")

        assert result.succeeded
        assert instance.state.column_of("9") == "done"
        assert reload_board("unknown") is None

    def test_close_board_unregisters_and_ends_its_drag(self, session, task_service):
        task_service.seed([{"id": "1", "project_id": "P1", "text": "a", "status": "todo"}])
        open_board("focus-view", "P1", BoardMode.MODAL)
        session.drag_session.drag_start("focus-view", "1")
        assert session.dragging_card_id == "1"

        close_board("focus-view")

        assert session.board_registry.lookup("focus-view") is None
        assert not session.drag_session.is_dragging
        assert session.dragging_card_id is None
        assert [note for note in session.notifications if note["board"] == "focus-view"] == []


class TestQueues:
    """Test cases for the notification and repaint queues."""

    def test_info_is_shown_once_and_errors_stay(self, session):
        instance = open_board("a", "P1")
        adapter = session.sync_engine.render
        session.notifications.clear()
        adapter.notify(instance, NotificationLevel.INFO, "hello")
        adapter.notify(instance, NotificationLevel.ERROR, "broken")

        first = take_notifications("a")
        second = take_notifications("a")

        assert [note["message"] for note in first] == ["hello", "broken"]
        assert [note["message"] for note in second] == ["broken"]

        dismiss_notification(second[0])
        dismiss_notification(second[0])
        assert take_notifications("a") == []

    def test_notifications_are_per_board(self, session):
        open_board("a", "P1")
        open_board("b", "P1")

        notes = take_notifications("a")

        assert {note["board"] for note in notes} == {"a"}
        assert any(note["board"] == "b" for note in session.notifications)

    def test_take_repaints_clears_only_that_board(self, session):
        session.pending_repaints = {("a", "todo"), ("a", "done"), ("b", "todo")}

        assert take_repaints("a") == {"todo", "done"}
        assert session.pending_repaints == {("b", "todo")}
        assert take_repaints("a") == set()

    def test_repaint_card_records_its_column(self, session, task_service):
        task_service.seed([{"id": "1", "project_id": "P1", "text": "a", "status": "waiting"}])
        instance = open_board("a", "P1")
        session.pending_repaints = set()

        asyncio.run(session.sync_engine.edit_card(instance, "1", "renamed"))

        assert session.pending_repaints == {("a", "waiting")}
