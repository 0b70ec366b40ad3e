"""Static column configuration for the kanban board.

The four status buckets and their display order are engine configuration:
they are never persisted.
"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict


class InvalidColumnError(ValueError):
    """Exception raised when a column id is not one of the board columns."""
    pass


class Column(BaseModel):
    """One status bucket of the board."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    display_color: str


TODO = "todo"
DOING = "doing"
WAITING = "waiting"
DONE = "done"

DEFAULT_COLUMN_ID = TODO

BOARD_COLUMNS: Tuple[Column, ...] = (
    Column(id=TODO, title="To Do", display_color="#e3f2fd"),
    Column(id=DOING, title="Doing", display_color="#fff3e0"),
    Column(id=WAITING, title="Waiting Feedback", display_color="#fce4ec"),
    Column(id=DONE, title="Done", display_color="#e8f5e8"),
)

_COLUMNS_BY_ID = {column.id: column for column in BOARD_COLUMNS}


def column_ids() -> Tuple[str, ...]:
    """Return the column ids in display order."""
    return tuple(column.id for column in BOARD_COLUMNS)


def is_valid_column(column_id) -> bool:
    return isinstance(column_id, str) and column_id in _COLUMNS_BY_ID


def get_column(column_id: str) -> Column:
    """Look up a column by id.

    Raises:
        InvalidColumnError: When the id is not one of the four board columns
    """
    if not is_valid_column(column_id):
        raise InvalidColumnError(f"Invalid column '{column_id}'. Must be one of: {list(column_ids())}")
    return _COLUMNS_BY_ID[column_id]
