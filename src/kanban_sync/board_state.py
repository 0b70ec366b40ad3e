"""Per-instance board state: the column to card-list mapping.

Only the sync engine mutates a BoardState. Every mutation keeps the two
board invariants: all four column keys are always present, and a card id
lives in exactly one column bucket.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .columns import column_ids, get_column
from .schemas.card import CardRecord

logger = logging.getLogger(__name__)


class DuplicateCardError(ValueError):
    """Exception raised when a card id is already present on the board."""
    pass


class BoardState:
    """Ordered card buckets for one project, keyed by column id."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        self.columns: Dict[str, List[CardRecord]] = {}
        self.reset()

    def reset(self) -> None:
        """Drop every card, leaving four empty columns."""
        self.columns = {column_id: [] for column_id in column_ids()}

    def cards(self, column_id: str) -> List[CardRecord]:
        get_column(column_id)
        return self.columns[column_id]

    def all_cards(self) -> Iterator[CardRecord]:
        for column_id in column_ids():
            yield from self.columns[column_id]

    def card_count(self) -> int:
        return sum(len(cards) for cards in self.columns.values())

    def counts(self) -> Dict[str, int]:
        return {column_id: len(self.columns[column_id]) for column_id in column_ids()}

    def locate(self, card_id: str) -> Optional[Tuple[str, int, CardRecord]]:
        """Find a card across all columns.

        Returns:
            Tuple of (column id, index within the column, card), or None
        """
        card_id = str(card_id)
        for column_id in column_ids():
            for index, card in enumerate(self.columns[column_id]):
                if card.id == card_id:
                    return column_id, index, card
        return None

    def find_card(self, card_id: str) -> Optional[CardRecord]:
        found = self.locate(card_id)
        return found[2] if found else None

    def column_of(self, card_id: str) -> Optional[str]:
        found = self.locate(card_id)
        return found[0] if found else None

    def append(self, card: CardRecord) -> None:
        """Append a card to the column named by its status.

        Raises:
            DuplicateCardError: When a card with the same id is already on the board
            InvalidColumnError: When the card status is not a board column
        """
        bucket = self.cards(card.status)
        if self.locate(card.id) is not None:
            raise DuplicateCardError(f"Card {card.id} is already on the board")
        bucket.append(card)

    def remove(self, card_id: str) -> Optional[CardRecord]:
        found = self.locate(card_id)
        if found is None:
            return None
        column_id, index, card = found
        del self.columns[column_id][index]
        return card

    def sort_by_position(self) -> None:
        """Order every column by explicit position.

        The sort is stable, so cards without a position keep their
        insertion order after the positioned ones.
        """
        for column_id in column_ids():
            self.columns[column_id].sort(
                key=lambda card: (card.position is None, card.position or 0)
            )

    def apply_move(self, card_id: str, target_column: str) -> Callable[[], None]:
        """Move a card to the end of another column and return its undo.

        The card's status follows the move and its position becomes the end
        of the target column. Calling the returned closure puts the card back
        at its original index in the source column and restores its previous
        status and position.

        Raises:
            KeyError: When the card is not on the board
            InvalidColumnError: When target_column is not a board column
        """
        target_bucket = self.cards(target_column)
        found = self.locate(card_id)
        if found is None:
            raise KeyError(card_id)
        source_column, source_index, card = found
        previous_status, previous_position = card.status, card.position

        del self.columns[source_column][source_index]
        card.position = max(
            [len(target_bucket)] + [other.position + 1 for other in target_bucket if other.position is not None]
        )
        target_bucket.append(card)
        card.status = target_column
        logger.debug(f"Moved card {card.id} from '{source_column}' to '{target_column}'")

        def undo() -> None:
            current = self.locate(card.id)
            if current is not None:
                del self.columns[current[0]][current[1]]
            source_bucket = self.columns[source_column]
            source_bucket.insert(min(source_index, len(source_bucket)), card)
            card.status = previous_status
            card.position = previous_position
            logger.debug(f"Restored card {card.id} to '{source_column}' at index {source_index}")

        return undo
