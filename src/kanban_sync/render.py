"""Contract between the sync engine and whatever paints the board.

The engine calls these hooks after it changes board state; the render layer
reads board state to paint and routes user input back into the engine. It
never mutates board state itself.
"""

from enum import Enum
from typing import Protocol

from .registry import BoardInstance


class NotificationLevel(Enum):
    """Severity of a user-facing notification."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RenderAdapter(Protocol):
    def repaint_column(self, instance: BoardInstance, column_id: str) -> None:
        ...

    def repaint_card(self, instance: BoardInstance, card_id: str) -> None:
        ...

    def mark_dragging(self, card_id: str, dragging: bool) -> None:
        ...

    def notify(self, instance: BoardInstance, level: NotificationLevel, message: str) -> None:
        ...


class NullRenderAdapter:
    """Render adapter that paints nothing, for headless use."""

    def repaint_column(self, instance: BoardInstance, column_id: str) -> None:
        pass

    def repaint_card(self, instance: BoardInstance, card_id: str) -> None:
        pass

    def mark_dragging(self, card_id: str, dragging: bool) -> None:
        pass

    def notify(self, instance: BoardInstance, level: NotificationLevel, message: str) -> None:
        pass
