"""Streamlit session wiring for the board engine.

Each browser session gets its own board registry, sync engine and drag
session, created once and kept in ``st.session_state``. Streamlit runs the
page script synchronously, so engine coroutines are driven to completion
with ``run_engine``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Dict, Hashable, List, Optional

import streamlit as st

from .database import get_engine, init_db
from .drag_session import DragSession
from .registry import BoardInstance, BoardMode, BoardRegistry
from .render import NotificationLevel
from .services.sync_engine import OperationResult, SyncEngine
from .services.task_service import SqlTaskService

logger = logging.getLogger(__name__)


class StreamlitRenderAdapter:
    """Render adapter recording repaints, drag marks and notifications in session state.

    Streamlit repaints the whole page on every rerun; the recorded repaint
    requests tell the board component which columns changed since the last
    paint.
    """

    def repaint_column(self, instance: BoardInstance, column_id: str) -> None:
        st.session_state.pending_repaints.add((instance.key, column_id))

    def repaint_card(self, instance: BoardInstance, card_id: str) -> None:
        column_id = instance.state.column_of(card_id)
        if column_id is not None:
            st.session_state.pending_repaints.add((instance.key, column_id))

    def mark_dragging(self, card_id: str, dragging: bool) -> None:
        st.session_state.dragging_card_id = card_id if dragging else None

    def notify(self, instance: BoardInstance, level: NotificationLevel, message: str) -> None:
        st.session_state.notifications.append({
            "board": instance.key,
            "level": level.value,
            "message": message,
        })


def initialize_session_state() -> None:
    """Create the per-session registry, engine and drag session.

    The function is idempotent - subsequent calls will not re-initialize if
    already done.
    """
    if st.session_state.get("initialized", False):
        return

    logger.info("Initializing Streamlit session state")
    try:
        engine = get_engine()
        init_db(engine)

        registry = BoardRegistry()
        sync_engine = SyncEngine(SqlTaskService(engine), StreamlitRenderAdapter())

        st.session_state.board_registry = registry
        st.session_state.sync_engine = sync_engine
        st.session_state.drag_session = DragSession(registry, sync_engine)
        st.session_state.notifications = []
        st.session_state.pending_repaints = set()
        st.session_state.dragging_card_id = None
        st.session_state.editing_card_id = None
        st.session_state.initialized = True

        logger.info("Session state initialization completed successfully")

    except Exception as e:
        logger.error(f"Error during session state initialization: {e}", exc_info=True)
        raise


def run_engine(awaitable: Awaitable[Any]) -> Any:
    """Drive an engine coroutine to completion from the page script."""
    return asyncio.run(awaitable)


def open_board(key: Hashable, project_id: str, mode: BoardMode = BoardMode.EMBEDDED) -> BoardInstance:
    """Return the board registered under key, registering and loading it when needed.

    A target that now shows a different project gets a fresh instance.
    """
    registry: BoardRegistry = st.session_state.board_registry
    instance = registry.lookup(key)
    if instance is not None and instance.project_id == project_id and instance.mode is mode:
        return instance

    instance = registry.register(key, project_id, mode)
    run_engine(st.session_state.sync_engine.load_board(instance))
    return instance


def reload_board(key: Hashable) -> Optional[OperationResult]:
    instance = st.session_state.board_registry.lookup(key)
    if instance is None:
        return None
    return run_engine(st.session_state.sync_engine.load_board(instance))


def close_board(key: Hashable) -> None:
    """Close a board: a drag started on it is cancelled, the instance is unregistered."""
    drag_session: DragSession = st.session_state.drag_session
    if drag_session.instance_key == key:
        drag_session.drag_end()
    st.session_state.board_registry.unregister(key)
    st.session_state.notifications = [
        note for note in st.session_state.notifications if note["board"] != key
    ]


def take_notifications(key: Hashable) -> List[Dict[str, Any]]:
    """Return the notifications of one board; info and warnings are shown once.

    Errors stay queued until ``dismiss_notification`` removes them.
    """
    notes = [note for note in st.session_state.notifications if note["board"] == key]
    st.session_state.notifications = [
        note for note in st.session_state.notifications
        if note["board"] != key or note["level"] == NotificationLevel.ERROR.value
    ]
    return notes


def dismiss_notification(note: Dict[str, Any]) -> None:
    try:
        st.session_state.notifications.remove(note)
    except ValueError:
        logger.debug(f"Notification already dismissed: {note.get('message')}")


def take_repaints(key: Hashable) -> set:
    """Return and clear the columns of one board repainted since the last paint."""
    columns = {column for board, column in st.session_state.pending_repaints if board == key}
    st.session_state.pending_repaints = {
        entry for entry in st.session_state.pending_repaints if entry[0] != key
    }
    return columns
