"""Card component for one board card.

A card shows its title, description and creation date, and offers the card
actions: edit, delete and move. "Move" picks the card up (drag start); the
board component offers the drop targets.
"""

import logging

import streamlit as st

from ..registry import BoardInstance
from ..schemas.card import CardRecord
from ..state_management import run_engine
from .card_form import render_edit_form

logger = logging.getLogger(__name__)


def format_card_date(card: CardRecord) -> str:
    if card.created_at is None:
        return ""
    return card.created_at.strftime("%Y-%m-%d")


def _start_drag(instance: BoardInstance, card_id: str) -> None:
    st.session_state.drag_session.drag_start(instance.key, card_id)


def _start_edit(card_id: str) -> None:
    st.session_state.editing_card_id = card_id


def _delete_card(instance: BoardInstance, card_id: str) -> None:
    run_engine(st.session_state.sync_engine.delete_card(instance, card_id))


def render_task_card(instance: BoardInstance, card: CardRecord) -> None:
    """Render one card with its actions.

    Args:
        instance: Board the card belongs to
        card: Card to render
    """
    logger.debug(f"Rendering card {card.id} on board {instance.key!r}")
    dragging = st.session_state.get("dragging_card_id") == card.id
    widget_key = f"{instance.key}:{card.id}"

    with st.container(border=True):
        title = card.title or "Untitled"
        if dragging:
            st.markdown(f"**{title}** ✋ _moving…_")
        else:
            st.markdown(f"**{title}**")

        if card.description:
            st.caption(card.description)

        created = format_card_date(card)
        if created:
            st.caption(created)

        if st.session_state.get("editing_card_id") == card.id:
            render_edit_form(instance, card)
            return

        edit_col, delete_col, move_col = st.columns(3)
        with edit_col:
            st.button("✏️", key=f"edit:{widget_key}", help="Edit",
                      on_click=_start_edit, args=(card.id,))
        with delete_col:
            st.button("🗑️", key=f"delete:{widget_key}", help="Delete",
                      on_click=_delete_card, args=(instance, card.id))
        with move_col:
            st.button("↔️", key=f"move:{widget_key}", help="Move", disabled=dragging,
                      on_click=_start_drag, args=(instance, card.id))
