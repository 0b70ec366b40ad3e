"""Registry of live board instances.

A board instance is one rendering of a project's board into a render
target. The registry is an explicit handle created at application start and
cleared at stop; it is never module-level state.
"""

import logging
import threading
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Set

from .board_state import BoardState

logger = logging.getLogger(__name__)


class BoardMode(Enum):
    """How a board instance is displayed."""
    EMBEDDED = "embedded"
    MODAL = "modal"


class BoardInstance:
    """One live board: render target, project and its own board state.

    Two instances for the same project never share state.
    """

    def __init__(self, key: Hashable, project_id: str, mode: BoardMode, target: Any = None):
        self.key = key
        self.project_id = project_id
        self.mode = mode
        self.target = key if target is None else target
        self.state = BoardState(project_id)
        # Card ids with an edit, delete or move awaiting the Task Service
        self.in_flight: Set[str] = set()

    def __repr__(self):
        return f"<BoardInstance(key={self.key!r}, project_id='{self.project_id}', mode='{self.mode.value}')>"


class BoardRegistry:
    """Table of board instances keyed by render target."""

    def __init__(self):
        self._instances: Dict[Hashable, BoardInstance] = {}
        self._lock = threading.Lock()

    def register(self, key: Hashable, project_id: str, mode: BoardMode = BoardMode.EMBEDDED,
                 target: Any = None) -> BoardInstance:
        """Create and store a new board instance.

        An instance already registered under ``key`` is replaced, never
        merged, so nothing leaks from an earlier render of the same target.
        """
        instance = BoardInstance(key, project_id, BoardMode(mode), target)
        with self._lock:
            replaced = self._instances.pop(key, None)
            self._instances[key] = instance
        if replaced is not None:
            logger.info(f"Replaced board instance {key!r} (project {replaced.project_id} -> {project_id})")
        else:
            logger.info(f"Registered board instance {key!r} for project {project_id} ({instance.mode.value})")
        return instance

    def lookup(self, key: Hashable) -> Optional[BoardInstance]:
        with self._lock:
            return self._instances.get(key)

    def lookup_by_project_id(self, project_id: str) -> Optional[BoardInstance]:
        """Return the first registered instance showing ``project_id``."""
        with self._lock:
            for instance in self._instances.values():
                if instance.project_id == project_id:
                    return instance
        return None

    def unregister(self, key: Hashable) -> bool:
        with self._lock:
            instance = self._instances.pop(key, None)
        if instance is None:
            logger.info(f"No board instance registered under {key!r}, nothing to unregister")
            return False
        logger.info(f"Unregistered board instance {key!r} for project {instance.project_id}")
        return True

    def instances(self) -> List[BoardInstance]:
        with self._lock:
            return list(self._instances.values())

    def clear(self) -> None:
        with self._lock:
            count = len(self._instances)
            self._instances.clear()
        logger.info(f"Cleared {count} board instances")

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._instances
