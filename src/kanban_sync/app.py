"""Streamlit page showing the kanban board of one project.

The project id comes from the ``project`` query parameter (project CRUD and
sign-in live outside this package). The board is embedded in the page; the
sidebar can open a second, focused rendering of the same project, which is
an independent board instance closed with its own button.
"""

import logging

import streamlit as st

from kanban_sync import config
from kanban_sync.components.kanban_board import render_kanban_board
from kanban_sync.registry import BoardMode
from kanban_sync.state_management import close_board, initialize_session_state, open_board, reload_board

st.set_page_config(page_title="Kanban Board", layout="wide")

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

FOCUS_VIEW_KEY = "focus-view"


def _open_focus_view() -> None:
    st.session_state.focus_view_open = True


def _close_focus_view() -> None:
    st.session_state.focus_view_open = False
    close_board(FOCUS_VIEW_KEY)


def render_ui() -> None:
    """Render the page: embedded board plus the optional focus view."""
    try:
        initialize_session_state()
    except Exception as e:
        logger.error(e, exc_info=True)
        st.error("Unable to connect to the task database. Please refresh the page.")
        return

    project_id = st.query_params.get("project", "default")
    embedded_key = f"embedded:{project_id}"

    with st.sidebar:
        st.header(f"Project {project_id}")
        if st.button("Reload board"):
            reload_board(embedded_key)
        st.button("Open focus view", on_click=_open_focus_view,
                  disabled=st.session_state.get("focus_view_open", False))

    if st.session_state.get("focus_view_open", False):
        with st.container(border=True):
            title_col, close_col = st.columns([6, 1])
            with title_col:
                st.subheader(f"{project_id} - Kanban Board")
            with close_col:
                st.button("Close", key="close-focus-view", on_click=_close_focus_view)
            focus_instance = open_board(FOCUS_VIEW_KEY, project_id, BoardMode.MODAL)
            render_kanban_board(focus_instance)

    st.title("Kanban Board")
    instance = open_board(embedded_key, project_id, BoardMode.EMBEDDED)
    render_kanban_board(instance)


# Render the main UI
render_ui()
