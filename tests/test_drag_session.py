"""Unit tests for the drag-and-drop state machine."""

import asyncio

import pytest

from kanban_sync.drag_session import DragSession, DragState
from kanban_sync.services.sync_engine import Outcome


@pytest.fixture
def board(engine, registry, task_service):
    task_service.seed([
        {"id": "1", "project_id": "P1", "text": "First", "status": "todo"},
        {"id": "2", "project_id": "P1", "text": "Second", "status": "doing"},
    ])
    instance = registry.register("board", "P1")
    asyncio.run(engine.load_board(instance))
    return instance


@pytest.fixture
def drag(registry, engine):
    return DragSession(registry, engine)


class TestDragSession:
    """Test cases for DragSession transitions."""

    def test_starts_idle(self, drag):
        assert drag.state is DragState.IDLE
        assert drag.dragged_card_id is None

    def test_drag_start_records_source_and_marks_card(self, drag, board, render):
        assert drag.drag_start("board", "1") is True

        assert drag.state is DragState.DRAGGING
        assert (drag.dragged_card_id, drag.source_column, drag.instance_key) == ("1", "todo", "board")
        assert render.drag_marks == [("1", True)]

    def test_drag_start_on_unknown_board_or_card_is_ignored(self, drag, board, render):
        assert drag.drag_start("nowhere", "1") is False
        assert drag.drag_start("board", "missing") is False
        assert drag.state is DragState.IDLE
        assert render.drag_marks == []

    def test_drag_end_cancels_without_touching_board(self, drag, board, render, task_service):
        drag.drag_start("board", "1")

        drag.drag_end()

        assert drag.state is DragState.IDLE
        assert render.drag_marks == [("1", True), ("1", False)]
        assert board.state.column_of("1") == "todo"
        assert task_service.calls_to("update_task") == []

    def test_drop_on_other_column_moves_card(self, drag, board, task_service):
        drag.drag_start("board", "1")

        result = asyncio.run(drag.drop("waiting"))

        assert result.outcome is Outcome.OK
        assert board.state.column_of("1") == "waiting"
        assert drag.state is DragState.IDLE
        assert task_service.calls_to("update_task") == [
            ("update_task", "P1", "1", {"status": "waiting", "position": 0})
        ]

    def test_session_is_cleared_before_move_is_issued(self, drag, board, task_service, monkeypatch):
        seen = []
        engine = drag.engine
        original = engine.move_card

        async def spy(instance, card_id, target_column):
            seen.append(drag.state)
            return await original(instance, card_id, target_column)
        monkeypatch.setattr(engine, "move_card", spy)
        drag.drag_start("board", "1")

        asyncio.run(drag.drop("done"))

        assert seen == [DragState.IDLE]

    def test_drop_on_source_column_is_a_cancel(self, drag, board, task_service):
        drag.drag_start("board", "1")

        assert asyncio.run(drag.drop("todo")) is None
        assert drag.state is DragState.IDLE
        assert task_service.calls_to("update_task") == []

    def test_drop_outside_a_column_is_a_cancel(self, drag, board, task_service):
        drag.drag_start("board", "1")

        assert asyncio.run(drag.drop("sidebar")) is None
        assert drag.state is DragState.IDLE
        assert board.state.column_of("1") == "todo"

    def test_drop_without_drag_is_ignored(self, drag, board, task_service):
        assert asyncio.run(drag.drop("done")) is None
        assert task_service.calls_to("update_task") == []

    def test_new_drag_replaces_active_one(self, drag, board, render):
        drag.drag_start("board", "1")
        drag.drag_start("board", "2")

        assert drag.dragged_card_id == "2"
        assert drag.source_column == "doing"
        assert render.drag_marks == [("1", True), ("1", False), ("2", True)]

    def test_drop_after_board_closed_is_a_cancel(self, drag, board, registry, task_service):
        drag.drag_start("board", "1")
        registry.unregister("board")

        assert asyncio.run(drag.drop("done")) is None
        assert task_service.calls_to("update_task") == []

    def test_failing_drag_mark_still_starts_drag(self, drag, board, render, monkeypatch):
        def mark_dragging(card_id, dragging):
            raise RuntimeError("render target gone")
        monkeypatch.setattr(render, "mark_dragging", mark_dragging)

        assert drag.drag_start("board", "1") is True

        assert drag.state is DragState.DRAGGING
        assert (drag.dragged_card_id, drag.source_column) == ("1", "todo")
