"""Forms for adding and editing cards.

Both forms hand their input to the sync engine; input the engine rejects
(a blank title) is shown next to the form instead of reaching the board.
"""

import logging

import streamlit as st

from ..columns import get_column
from ..registry import BoardInstance
from ..schemas.card import CardRecord
from ..state_management import run_engine

logger = logging.getLogger(__name__)


def render_add_card_form(instance: BoardInstance, column_id: str) -> None:
    """Render the "Add Card" form of one column.

    Args:
        instance: Board to add the card to
        column_id: Column the new card goes into
    """
    column = get_column(column_id)
    form_key = f"add:{instance.key}:{column_id}"

    with st.expander("+ Add Card", expanded=False):
        with st.form(form_key, clear_on_submit=True):
            title = st.text_input("Title *", placeholder="Enter card title", key=f"{form_key}:title")
            description = st.text_area("Description", placeholder="Optional", key=f"{form_key}:description")
            submitted = st.form_submit_button(f"Add to {column.title}")

        if submitted:
            try:
                run_engine(st.session_state.sync_engine.create_card(instance, column_id, title, description))
            except ValueError as e:
                logger.warning(f"Rejected new card for column '{column_id}': {e}")
                st.error("Title cannot be empty")
                return
            st.rerun()


def render_edit_form(instance: BoardInstance, card: CardRecord) -> None:
    """Render the inline edit form of a card being edited."""
    form_key = f"edit-form:{instance.key}:{card.id}"

    with st.form(form_key):
        title = st.text_input("Title *", value=card.title, key=f"{form_key}:title")
        description = st.text_area("Description", value=card.description or "", key=f"{form_key}:description")
        save_col, cancel_col = st.columns(2)
        with save_col:
            saved = st.form_submit_button("Save")
        with cancel_col:
            cancelled = st.form_submit_button("Cancel")

    if cancelled:
        st.session_state.editing_card_id = None
        st.rerun()
    if saved:
        try:
            run_engine(st.session_state.sync_engine.edit_card(instance, card.id, title, description))
        except ValueError as e:
            logger.warning(f"Rejected edit of card {card.id}: {e}")
            st.error("Title cannot be empty")
            return
        st.session_state.editing_card_id = None
        st.rerun()
