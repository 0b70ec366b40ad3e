"""Streamlit components painting board instances.

This package contains the board, card and form widgets. They read board
state and route every user action back into the sync engine.
"""

from .kanban_board import render_kanban_board

__all__ = [
    "render_kanban_board"
]
