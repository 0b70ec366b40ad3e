"""Kanban board component painting one board instance.

This module lays out the four board columns side by side, each with a
header showing the column title and card count, an "Add Card" form and the
column's cards. While a card is being moved, every other column of the
board offers a "Drop here" target and the board offers "Cancel move".
"""

import logging

import streamlit as st

from ..columns import BOARD_COLUMNS
from ..registry import BoardInstance
from ..state_management import dismiss_notification, run_engine, take_notifications, take_repaints
from .card_form import render_add_card_form
from .task_card import render_task_card

logger = logging.getLogger(__name__)


def _drop(column_id: str) -> None:
    run_engine(st.session_state.drag_session.drop(column_id))


def _cancel_drag() -> None:
    st.session_state.drag_session.drag_end()


def render_notifications(instance: BoardInstance) -> None:
    """Show the board's pending notifications; errors carry a dismiss button."""
    for index, note in enumerate(take_notifications(instance.key)):
        if note["level"] == "error":
            message_col, dismiss_col = st.columns([6, 1])
            with message_col:
                st.error(note["message"])
            with dismiss_col:
                st.button("✖", key=f"dismiss:{instance.key}:{index}", help="Dismiss",
                          on_click=dismiss_notification, args=(note,))
        elif note["level"] == "warning":
            st.warning(note["message"])
        else:
            st.info(note["message"])


def render_kanban_board(instance: BoardInstance) -> None:
    """Render a four-column kanban board for one board instance.

    Errors while painting one card or column are logged and shown in place;
    the rest of the board keeps rendering.
    """
    logger.info(f"Rendering kanban board {instance.key!r} for project {instance.project_id}")

    render_notifications(instance)

    drag_session = st.session_state.drag_session
    dragging_here = drag_session.is_dragging and drag_session.instance_key == instance.key
    if dragging_here:
        st.button("Cancel move", key=f"cancel-drag:{instance.key}", on_click=_cancel_drag)

    repainted = take_repaints(instance.key)
    logger.debug(f"Columns repainted since last paint: {sorted(repainted)}")

    cols = st.columns(len(BOARD_COLUMNS))
    for idx, column in enumerate(BOARD_COLUMNS):
        with cols[idx]:
            try:
                cards = instance.state.cards(column.id)
                st.markdown(
                    f'<div style="background-color: {column.display_color}; padding: 4px 8px; '
                    f'border-radius: 4px;"><strong>{column.title}</strong> ({len(cards)})</div>',
                    unsafe_allow_html=True,
                )

                if dragging_here and column.id != drag_session.source_column:
                    st.button("Drop here", key=f"drop:{instance.key}:{column.id}",
                              on_click=_drop, args=(column.id,), use_container_width=True)

                render_add_card_form(instance, column.id)

                for card in cards:
                    try:
                        render_task_card(instance, card)
                    except Exception as card_error:
                        logger.error(f"Error rendering card {card.id}: {card_error}", exc_info=True)
                        continue

            except Exception as column_error:
                logger.error(f"Error rendering column '{column.id}': {column_error}", exc_info=True)
                st.error(f"Error loading {column.title} cards")
                continue
