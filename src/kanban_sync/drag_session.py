"""Drag-and-drop state machine.

A single pointing device means at most one drag is active at a time, so the
session is owned state of one ``DragSession`` object rather than a global.
The session ends at the drop: the resulting move is issued after the
session is already cleared, whatever the move's outcome turns out to be.
"""

import logging
from enum import Enum
from typing import Hashable, Optional

from .columns import is_valid_column
from .registry import BoardRegistry
from .services.sync_engine import OperationResult, SyncEngine

logger = logging.getLogger(__name__)


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragSession:
    """Tracks the one in-flight drag gesture.

    Starting a drag while another one is active replaces the earlier
    session; the earlier card's drag mark is cleared first.
    """

    def __init__(self, registry: BoardRegistry, engine: SyncEngine):
        self.registry = registry
        self.engine = engine
        self.dragged_card_id: Optional[str] = None
        self.source_column: Optional[str] = None
        self.instance_key: Optional[Hashable] = None

    @property
    def state(self) -> DragState:
        return DragState.IDLE if self.dragged_card_id is None else DragState.DRAGGING

    @property
    def is_dragging(self) -> bool:
        return self.state is DragState.DRAGGING

    def drag_start(self, instance_key: Hashable, card_id: str) -> bool:
        """Begin dragging a card of the board registered under instance_key.

        Returns:
            True when a drag session started, False when the board or card is unknown
        """
        instance = self.registry.lookup(instance_key)
        if instance is None:
            logger.warning(f"Ignoring drag start: no board registered under {instance_key!r}")
            return False
        source_column = instance.state.column_of(card_id)
        if source_column is None:
            logger.warning(f"Ignoring drag start: card {card_id} is not on board {instance_key!r}")
            return False

        if self.is_dragging:
            logger.info(f"Drag of card {self.dragged_card_id} replaced by drag of card {card_id}")
            self._clear()

        self.dragged_card_id = str(card_id)
        self.source_column = source_column
        self.instance_key = instance_key
        try:
            self.engine.render.mark_dragging(self.dragged_card_id, True)
        except Exception as e:
            logger.error(f"Error marking card {card_id} as dragged: {e}", exc_info=True)
        logger.debug(f"Drag started: card {card_id} from '{source_column}' on board {instance_key!r}")
        return True

    def drag_end(self) -> None:
        """Release outside any drop target: a cancel, board state is untouched."""
        if not self.is_dragging:
            return
        logger.debug(f"Drag of card {self.dragged_card_id} cancelled")
        self._clear()

    async def drop(self, target_column: str) -> Optional[OperationResult]:
        """Drop the dragged card onto a column.

        The session is cleared before the move is issued. A drop on the
        source column or on something that is not a column only ends the
        drag.

        Returns:
            The move result, or None when no move was issued
        """
        if not self.is_dragging:
            logger.debug("Drop without an active drag, ignoring")
            return None

        card_id, source_column, instance_key = self.dragged_card_id, self.source_column, self.instance_key
        self._clear()

        if not is_valid_column(target_column):
            logger.debug(f"Drop target {target_column!r} is not a column, treating as cancel")
            return None
        if target_column == source_column:
            logger.debug(f"Card {card_id} dropped on its own column '{source_column}'")
            return None
        instance = self.registry.lookup(instance_key)
        if instance is None:
            logger.warning(f"Board {instance_key!r} was closed during the drag of card {card_id}")
            return None

        return await self.engine.move_card(instance, card_id, target_column)

    def _clear(self) -> None:
        card_id = self.dragged_card_id
        self.dragged_card_id = None
        self.source_column = None
        self.instance_key = None
        if card_id is not None:
            try:
                self.engine.render.mark_dragging(card_id, False)
            except Exception as e:
                logger.error(f"Error clearing drag mark of card {card_id}: {e}", exc_info=True)
