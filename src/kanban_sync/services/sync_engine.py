"""Board synchronization engine.

The engine is the only writer of board state. It loads cards from the Task
Service, applies card moves optimistically before the service confirms
them, tolerates schema drift as a soft failure and rolls a move back when
persistence fails for any other reason.

Every operation is a coroutine with exactly one suspension point, the Task
Service call. Board state changes before and after that await are atomic
with respect to other handlers on the same event loop. No operation lets a
persistence failure escape: each one returns an ``OperationResult`` and
tells the render layer what to repaint and what to show the user.
"""

import asyncio
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from .. import config
from ..columns import column_ids, get_column
from ..registry import BoardInstance
from ..render import NotificationLevel, NullRenderAdapter, RenderAdapter
from ..schemas.card import CardRecord, InvalidRecordError, TaskFields, merge_task_record, normalize_card
from ..board_state import DuplicateCardError
from .task_service import SchemaFieldUnsupported, ServiceError, TaskNotFoundError, TaskService

logger = logging.getLogger(__name__)

STATUS_FIELD = "status"
POSITION_FIELD = "position"


class Outcome(Enum):
    """How an engine operation ended."""
    OK = "ok"
    # Persisted partially: the schema lacks a field, the board keeps the change
    DEGRADED = "degraded"
    NOOP = "noop"
    NOT_FOUND = "not_found"
    # Another edit, delete or move on the same card is still in flight
    CARD_BUSY = "card_busy"
    LOAD_FAILURE = "load_failure"
    SERVICE_ERROR = "service_error"


class OperationResult(BaseModel):
    """Result handed back to the render layer for every engine operation."""
    outcome: Outcome = Field(..., description="How the operation ended")
    message: str = Field("", description="User-facing description of the outcome")
    card: Optional[CardRecord] = Field(None, description="Card the operation touched, if any")

    @property
    def succeeded(self) -> bool:
        return self.outcome in (Outcome.OK, Outcome.DEGRADED, Outcome.NOOP)


class SyncEngine:
    """Orchestrates load, create, edit, delete and move against board state."""

    def __init__(self, task_service: TaskService, render: RenderAdapter | None = None,
                 timeout: float | None = None):
        self.task_service = task_service
        self.render = render if render is not None else NullRenderAdapter()
        self.timeout = config.TASK_SERVICE_TIMEOUT if timeout is None else timeout

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        """Await a Task Service call, turning a timeout into a hard failure."""
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise ServiceError(f"Task Service did not answer within {self.timeout} seconds") from e

    async def _call_with_field_retry(
        self,
        make_call: Callable[[Dict[str, Any]], Awaitable[Any]],
        payload: Mapping[str, Any],
    ) -> Tuple[Any, Optional[str]]:
        """Call the Task Service, retrying once without a field the schema lacks.

        Returns:
            Tuple of (service response or None when nothing was left to send,
            name of the dropped field or None)
        """
        try:
            return await self._call(make_call(dict(payload))), None
        except SchemaFieldUnsupported as e:
            if e.field_name not in payload or e.field_name == "text":
                raise
            logger.warning(f"Tasks schema has no '{e.field_name}' field, retrying without it")
            retry_payload = {name: value for name, value in payload.items() if name != e.field_name}
            if not retry_payload:
                return None, e.field_name
            return await self._call(make_call(retry_payload)), e.field_name

    @contextmanager
    def _claim(self, instance: BoardInstance, card_id: str):
        instance.in_flight.add(card_id)
        try:
            yield
        finally:
            instance.in_flight.discard(card_id)

    def _notify(self, instance: BoardInstance, level: NotificationLevel, message: str) -> None:
        try:
            self.render.notify(instance, level, message)
        except Exception as e:
            logger.error(f"Error showing notification for board {instance.key!r}: {e}", exc_info=True)

    def _repaint_columns(self, instance: BoardInstance, *columns: str) -> None:
        for column_id in dict.fromkeys(columns):
            try:
                self.render.repaint_column(instance, column_id)
            except Exception as e:
                logger.error(f"Error repainting column '{column_id}' of board {instance.key!r}: {e}", exc_info=True)

    def _repaint_card(self, instance: BoardInstance, card_id: str) -> None:
        try:
            self.render.repaint_card(instance, card_id)
        except Exception as e:
            logger.error(f"Error repainting card {card_id} of board {instance.key!r}: {e}", exc_info=True)

    def _not_found(self, instance: BoardInstance, card_id: str) -> OperationResult:
        message = f"Card {card_id} not found on this board"
        logger.warning(message)
        self._notify(instance, NotificationLevel.WARNING, message)
        return OperationResult(outcome=Outcome.NOT_FOUND, message=message)

    def _busy(self, instance: BoardInstance, card: CardRecord) -> OperationResult:
        message = f"Card '{card.title}' is still being saved, try again in a moment"
        logger.warning(f"Rejected operation on card {card.id}: another operation is in flight")
        self._notify(instance, NotificationLevel.WARNING, message)
        return OperationResult(outcome=Outcome.CARD_BUSY, message=message, card=card)

    def _service_error(self, instance: BoardInstance, action: str, error: Exception,
                       card: Optional[CardRecord] = None) -> OperationResult:
        message = f"Error {action}: {str(error) or type(error).__name__}"
        self._notify(instance, NotificationLevel.ERROR, message)
        return OperationResult(outcome=Outcome.SERVICE_ERROR, message=message, card=card)

    async def load_board(self, instance: BoardInstance) -> OperationResult:
        """Fetch the project's top-level tasks and rebuild the board from them.

        On failure the board is reset to four empty columns so it stays
        usable for adding new cards.
        """
        logger.info(f"Loading board {instance.key!r} for project {instance.project_id}")
        state = instance.state

        try:
            raw_tasks = await self._call(self.task_service.list_tasks(instance.project_id))
        except Exception as e:
            logger.error(f"Error loading tasks for project {instance.project_id}: {e}", exc_info=True)
            state.reset()
            self._repaint_columns(instance, *column_ids())
            message = f"Error loading tasks: {str(e) or type(e).__name__} - you can still add new cards"
            self._notify(instance, NotificationLevel.ERROR, message)
            return OperationResult(outcome=Outcome.LOAD_FAILURE, message=message)

        state.reset()
        loaded = 0
        for raw in raw_tasks or []:
            try:
                card = normalize_card(raw, instance.project_id)
                state.append(card)
                loaded += 1
            except (InvalidRecordError, DuplicateCardError) as e:
                logger.warning(f"Skipping task record while loading project {instance.project_id}: {e}")
        state.sort_by_position()

        logger.info(f"Loaded {loaded} cards for project {instance.project_id}: {state.counts()}")
        self._repaint_columns(instance, *column_ids())
        if loaded:
            message = f"Loaded {loaded} cards"
        else:
            message = "No tasks found - you can add new ones using the Add Card buttons"
        self._notify(instance, NotificationLevel.INFO, message)
        return OperationResult(outcome=Outcome.OK, message=message)

    async def create_card(self, instance: BoardInstance, column_id: str, title: str,
                          description: Optional[str] = None) -> OperationResult:
        """Create a card at the end of a column once the Task Service accepts it.

        Raises:
            InvalidColumnError: When column_id is not a board column
            ValueError: When the title is blank
        """
        get_column(column_id)
        fields = TaskFields(
            text=title,
            description=description,
            status=column_id,
            position=len(instance.state.cards(column_id)),
        )
        requested = fields.to_payload()
        logger.info(f"Creating card '{fields.text}' in '{column_id}' for project {instance.project_id}")

        try:
            raw, dropped = await self._call_with_field_retry(
                lambda payload: self.task_service.create_task(instance.project_id, payload),
                requested,
            )
            if raw is None:
                raise ServiceError("Task Service returned no record")
            card = normalize_card(merge_task_record(raw, requested), instance.project_id)
            instance.state.append(card)
        except Exception as e:
            logger.error(f"Error creating card in project {instance.project_id}: {e}", exc_info=True)
            return self._service_error(instance, "creating card", e)

        self._repaint_columns(instance, card.status)
        if dropped:
            message = f"Card created (the '{dropped}' field is kept on this board only)"
            self._notify(instance, NotificationLevel.INFO, message)
            return OperationResult(outcome=Outcome.DEGRADED, message=message, card=card)
        logger.info(f"Created card {card.id} in '{card.status}'")
        self._notify(instance, NotificationLevel.INFO, "Card created successfully")
        return OperationResult(outcome=Outcome.OK, message="Card created successfully", card=card)

    async def edit_card(self, instance: BoardInstance, card_id: str, new_title: Optional[str] = None,
                        new_description: Optional[str] = None) -> OperationResult:
        """Change a card's title and description.

        ``None`` keeps the current value. The card object is updated in place
        only after the Task Service confirms, so a failure leaves every field
        as it was.

        Raises:
            ValueError: When the new title is blank
        """
        card = instance.state.find_card(card_id)
        if card is None:
            return self._not_found(instance, card_id)
        if card.id in instance.in_flight:
            return self._busy(instance, card)

        updates = {}
        if new_title is not None:
            updates["text"] = new_title
        if new_description is not None:
            updates["description"] = new_description
        fields = TaskFields(**updates)
        changed = (
            ("text" in updates and fields.text != card.title)
            or ("description" in updates and fields.description != card.description)
        )
        if not changed:
            return OperationResult(outcome=Outcome.NOOP, message="No changes", card=card)

        logger.info(f"Updating card {card.id} in project {instance.project_id}")
        with self._claim(instance, card.id):
            try:
                _, dropped = await self._call_with_field_retry(
                    lambda payload: self.task_service.update_task(instance.project_id, card.id, payload),
                    fields.to_payload(),
                )
            except Exception as e:
                logger.error(f"Error updating card {card.id}: {e}", exc_info=True)
                return self._service_error(instance, "updating card", e, card)

        if "text" in updates:
            card.title = fields.text
        if "description" in updates:
            card.description = fields.description
        self._repaint_card(instance, card.id)
        if dropped:
            message = f"Card updated (the '{dropped}' field is kept on this board only)"
            self._notify(instance, NotificationLevel.INFO, message)
            return OperationResult(outcome=Outcome.DEGRADED, message=message, card=card)
        self._notify(instance, NotificationLevel.INFO, "Card updated successfully")
        return OperationResult(outcome=Outcome.OK, message="Card updated successfully", card=card)

    async def delete_card(self, instance: BoardInstance, card_id: str) -> OperationResult:
        """Delete a card; it leaves the board only once the Task Service confirms."""
        card = instance.state.find_card(card_id)
        if card is None:
            return self._not_found(instance, card_id)
        if card.id in instance.in_flight:
            return self._busy(instance, card)

        logger.info(f"Deleting card {card.id} from project {instance.project_id}")
        with self._claim(instance, card.id):
            try:
                await self._call(self.task_service.delete_task(instance.project_id, card.id))
            except TaskNotFoundError:
                logger.warning(f"Card {card.id} was already gone from the Task Service, removing it")
            except Exception as e:
                logger.error(f"Error deleting card {card.id}: {e}", exc_info=True)
                return self._service_error(instance, "deleting card", e, card)

        column_id = instance.state.column_of(card.id)
        instance.state.remove(card.id)
        if column_id is not None:
            self._repaint_columns(instance, column_id)
        self._notify(instance, NotificationLevel.INFO, "Card deleted successfully")
        return OperationResult(outcome=Outcome.OK, message="Card deleted successfully", card=card)

    async def move_card(self, instance: BoardInstance, card_id: str, target_column: str) -> OperationResult:
        """Move a card to another column, optimistically.

        The board changes and both columns repaint before the Task Service is
        called with the new status and position. A schema without a position
        field only loses the order; without a status field the move stays a
        board-only change. Any other failure puts the card back where it was.

        Raises:
            InvalidColumnError: When target_column is not a board column
        """
        get_column(target_column)
        found = instance.state.locate(card_id)
        if found is None:
            return self._not_found(instance, card_id)
        source_column, _, card = found
        if source_column == target_column:
            return OperationResult(outcome=Outcome.NOOP, message="Card already in that column", card=card)
        if card.id in instance.in_flight:
            return self._busy(instance, card)

        logger.info(f"Moving card {card.id} from '{source_column}' to '{target_column}'")
        undo = instance.state.apply_move(card.id, target_column)
        self._repaint_columns(instance, source_column, target_column)

        with self._claim(instance, card.id):
            try:
                _, dropped = await self._call_with_field_retry(
                    lambda payload: self.task_service.update_task(instance.project_id, card.id, payload),
                    {STATUS_FIELD: target_column, POSITION_FIELD: card.position},
                )
            except SchemaFieldUnsupported as e:
                if e.field_name not in (STATUS_FIELD, POSITION_FIELD):
                    return self._roll_back_move(instance, card, undo, source_column, target_column, e)
                # The retry failed too: neither status nor position is stored
                dropped = STATUS_FIELD
            except Exception as e:
                return self._roll_back_move(instance, card, undo, source_column, target_column, e)

        if dropped == STATUS_FIELD:
            logger.warning(f"Tasks schema has no status field, keeping move of card {card.id} on the board only")
            message = "Card moved (visual only - status is not stored by the database)"
            self._notify(instance, NotificationLevel.INFO, message)
            return OperationResult(outcome=Outcome.DEGRADED, message=message, card=card)
        if dropped == POSITION_FIELD:
            logger.info(f"Tasks schema has no position field, card {card.id} keeps its order on the board only")

        logger.info(f"Card {card.id} moved to '{target_column}'")
        self._notify(instance, NotificationLevel.INFO, "Card moved successfully")
        return OperationResult(outcome=Outcome.OK, message="Card moved successfully", card=card)

    def _roll_back_move(self, instance: BoardInstance, card: CardRecord, undo: Callable[[], None],
                        source_column: str, target_column: str, error: Exception) -> OperationResult:
        logger.error(f"Error moving card {card.id}, rolling back: {error}", exc_info=True)
        if instance.state.find_card(card.id) is card:
            undo()
            self._repaint_columns(instance, source_column, target_column)
        else:
            # Board was reloaded while the call was in flight
            logger.warning(f"Card {card.id} is no longer on board {instance.key!r}, nothing to roll back")
        return self._service_error(instance, "moving card", error, card)
