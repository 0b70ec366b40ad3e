"""Task Service: the persistence contract the sync engine consumes.

``TaskService`` is the narrow async contract. ``SqlTaskService`` implements
it on top of SQLAlchemy against the live ``tasks`` table. The table is
reflected rather than taken from the ORM model because deployed databases
may predate the kanban columns; fields the live schema lacks are dropped
silently on create and reported as ``SchemaFieldUnsupported`` on update.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import Integer, MetaData, Table, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..database import get_engine

logger = logging.getLogger(__name__)

# Fields a create may carry beyond the card text; dropped when the schema lacks them
OPTIONAL_CREATE_FIELDS = ("description", "status", "position", "completed", "parent_task_id")


class ServiceError(Exception):
    """Exception raised when a Task Service call fails (network, auth, validation)."""
    pass


class SchemaFieldUnsupported(ServiceError):
    """Exception raised when a targeted field does not exist in the persistence schema."""

    def __init__(self, field_name: str, message: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message or f"Field '{field_name}' is not supported by the tasks schema")


class TaskNotFoundError(ServiceError):
    """Exception raised when a task with the specified ID is not found."""
    pass


class TaskService(Protocol):
    async def list_tasks(self, project_id: str) -> List[Dict[str, Any]]:
        ...

    async def create_task(self, project_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def update_task(self, project_id: str, task_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    async def delete_task(self, project_id: str, task_id: str) -> None:
        ...


class SqlTaskService:
    """SQLAlchemy-backed Task Service.

    Blocking database work runs in a worker thread so the event loop driving
    the sync engine stays responsive while a call is in flight.
    """

    def __init__(self, engine: Engine | None = None, table_name: str = "tasks"):
        self.engine = engine if engine is not None else get_engine()
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.table_name = table_name
        self._table: Table | None = None

    def refresh_schema(self) -> None:
        """Forget the reflected table so the next call sees schema changes."""
        self._table = None

    def _get_table(self) -> Table:
        if self._table is None:
            try:
                self._table = Table(self.table_name, MetaData(), autoload_with=self.engine)
            except NoSuchTableError as e:
                raise ServiceError(f"Table '{self.table_name}' does not exist") from e
            except SQLAlchemyError as e:
                logger.error(e, exc_info=True)
                raise ServiceError(f"Unable to read the '{self.table_name}' schema: {e}") from e
            logger.info(f"Reflected '{self.table_name}' columns: {list(self._table.c.keys())}")
        return self._table

    @staticmethod
    def _text_column(table: Table) -> str:
        for name in ("text", "title"):
            if name in table.c:
                return name
        raise SchemaFieldUnsupported("text", f"Table '{table.name}' has neither a 'text' nor a 'title' column")

    @staticmethod
    def _coerce_id(table: Table, task_id: Any) -> Any:
        if isinstance(table.c.id.type, Integer):
            try:
                return int(task_id)
            except (TypeError, ValueError) as e:
                raise TaskNotFoundError(f"Task with ID {task_id} not found") from e
        return str(task_id)

    @staticmethod
    def _scope(table: Table, project_id: str):
        if "project_id" in table.c:
            return [table.c.project_id == project_id]
        return []

    def _fetch_row(self, db: Session, table: Table, task_id: Any) -> Dict[str, Any]:
        row = db.execute(select(table).where(table.c.id == task_id)).first()
        if row is None:
            raise TaskNotFoundError(f"Task with ID {task_id} not found")
        return dict(row._mapping)

    def _list_tasks(self, project_id: str) -> List[Dict[str, Any]]:
        logger.info(f"Listing top-level tasks for project {project_id}")
        table = self._get_table()

        conditions = self._scope(table, project_id)
        if "parent_task_id" in table.c:
            conditions.append(table.c.parent_task_id.is_(None))
        else:
            logger.info(f"No parent_task_id column on '{table.name}', listing all tasks of the project")

        stmt = select(table)
        if conditions:
            stmt = stmt.where(*conditions)
        if "created_at" in table.c:
            stmt = stmt.order_by(table.c.created_at.asc())

        try:
            with self.session_factory() as db:
                rows = db.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error(e, exc_info=True)
            raise ServiceError(f"Error listing tasks for project {project_id}: {e}") from e

        tasks = [dict(row._mapping) for row in rows]
        logger.info(f"Retrieved {len(tasks)} tasks for project {project_id}")
        return tasks

    def _create_task(self, project_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        logger.info(f"Creating task for project {project_id}")
        table = self._get_table()

        values: Dict[str, Any] = {self._text_column(table): fields.get("text") or fields.get("title") or "Untitled"}
        if "project_id" in table.c:
            values["project_id"] = project_id
        for name in OPTIONAL_CREATE_FIELDS:
            if name not in fields:
                continue
            if name in table.c:
                values[name] = fields[name]
            else:
                logger.info(f"Column '{name}' missing from '{table.name}', creating task without it")
        if "completed" in table.c:
            values.setdefault("completed", False)
        if "created_at" in table.c:
            values["created_at"] = datetime.now(timezone.utc)
        if not isinstance(table.c.id.type, Integer):
            values["id"] = str(uuid.uuid4())

        with self.session_factory() as db:
            try:
                result = db.execute(insert(table).values(**values))
                task_id = values.get("id")
                if task_id is None:
                    task_id = result.inserted_primary_key[0]
                db.commit()
                task = self._fetch_row(db, table, task_id)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(e, exc_info=True)
                raise ServiceError(f"Error creating task for project {project_id}: {e}") from e

        logger.info(f"Successfully created task with ID: {task['id']}")
        return task

    def _update_task(self, project_id: str, task_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        logger.info(f"Updating task {task_id} in project {project_id}: {sorted(fields)}")
        table = self._get_table()

        values: Dict[str, Any] = {}
        for name, value in fields.items():
            column_name = self._text_column(table) if name in ("text", "title") else name
            if column_name not in table.c:
                logger.warning(f"Column '{name}' missing from '{table.name}', cannot update it")
                raise SchemaFieldUnsupported(name)
            values[column_name] = value

        row_id = self._coerce_id(table, task_id)
        with self.session_factory() as db:
            try:
                if values:
                    result = db.execute(
                        update(table)
                        .where(table.c.id == row_id, *self._scope(table, project_id))
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        raise TaskNotFoundError(f"Task with ID {task_id} not found")
                    db.commit()
                task = self._fetch_row(db, table, row_id)
            except TaskNotFoundError:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(e, exc_info=True)
                raise ServiceError(f"Error updating task {task_id}: {e}") from e

        logger.info(f"Successfully updated task with ID: {task_id}")
        return task

    def _delete_task(self, project_id: str, task_id: str) -> None:
        logger.info(f"Deleting task {task_id} from project {project_id}")
        table = self._get_table()

        row_id = self._coerce_id(table, task_id)
        with self.session_factory() as db:
            try:
                result = db.execute(delete(table).where(table.c.id == row_id, *self._scope(table, project_id)))
                if result.rowcount == 0:
                    raise TaskNotFoundError(f"Task with ID {task_id} not found")
                db.commit()
            except TaskNotFoundError:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(e, exc_info=True)
                raise ServiceError(f"Error deleting task {task_id}: {e}") from e

        logger.info(f"Successfully deleted task with ID: {task_id}")

    async def list_tasks(self, project_id: str) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._list_tasks, project_id)

    async def create_task(self, project_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._create_task, project_id, dict(fields))

    async def update_task(self, project_id: str, task_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._update_task, project_id, task_id, dict(fields))

    async def delete_task(self, project_id: str, task_id: str) -> None:
        await asyncio.to_thread(self._delete_task, project_id, task_id)
