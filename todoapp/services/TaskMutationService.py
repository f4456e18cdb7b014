"""
Task mutation service.

Every public operation resolves the current user first, runs the
repository call inside one database transaction with that user's id, and
signals "data changed" for the task list view once the transaction has
committed. Callers never pass a user id.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from todoapp.core.database import session_manager
from todoapp.core.exceptions import InvalidTaskOperation, Unauthorized
from todoapp.repositories.TaskRepository import TaskRepository
from todoapp.schemas.taskSchema import (
    RelationshipResponse,
    SequenceItem,
    TaskDetailResponse,
    TaskDetailsUpdateRequest,
    TaskResponse,
    TextItem,
)
from todoapp.services.ChangeNotifier import TODO_VIEW, ChangeNotifier, change_notifier
from todoapp.services.S3Service import S3BlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def _as_models(items: Iterable[Union[M, Dict[str, Any]]], model: Type[M]) -> List[M]:
    try:
        return [item if isinstance(item, model) else model.model_validate(item) for item in items]
    except ValidationError as e:
        raise InvalidTaskOperation(f"Invalid {model.__name__}: {e.errors()}") from e


class TaskMutationService:
    """The operations the task list UI calls."""

    def __init__(
        self,
        identity,
        session_scope: Optional[Callable] = None,
        blob_store=None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self.identity = identity
        self.session_scope = session_scope or session_manager.get_session
        self.blob_store = blob_store or S3BlobStore()
        self.notifier = notifier or change_notifier

    async def _user_id(self) -> str:
        user = await self.identity.get_current_user()
        if user is None:
            raise Unauthorized()
        return user.id

    @asynccontextmanager
    async def _repository(self):
        async with self.session_scope() as session:
            yield TaskRepository(session, self.blob_store)

    async def _mutate(self, user_id: str, operation: Callable[[TaskRepository], Awaitable[T]]) -> T:
        async with self._repository() as repo:
            result = await operation(repo)
        # Only reached once the session has committed
        await self.notifier.data_changed(user_id, TODO_VIEW)
        return result

    # ------------------------------
    # Reads
    # ------------------------------
    async def list_tasks(self) -> List[TaskResponse]:
        user_id = await self._user_id()
        async with self._repository() as repo:
            tasks = await repo.list_for_user(user_id)
            return [TaskResponse.model_validate(task) for task in tasks]

    async def get_task(self, task_id: int) -> Optional[TaskDetailResponse]:
        user_id = await self._user_id()
        async with self._repository() as repo:
            task = await repo.get(user_id, task_id)
            if task is None:
                return None
            parents, children = await repo.linked_ids(user_id, task_id)
            detail = TaskDetailResponse.model_validate(task)
            detail.linked_parent_ids = parents
            detail.linked_child_ids = children
            return detail

    async def list_relationships(self) -> List[RelationshipResponse]:
        user_id = await self._user_id()
        async with self._repository() as repo:
            rows = await repo.list_relationships(user_id)
            return [RelationshipResponse.model_validate(row) for row in rows]

    async def revision(self) -> int:
        user_id = await self._user_id()
        return self.notifier.revision(user_id, TODO_VIEW)

    # ------------------------------
    # Mutations
    # ------------------------------
    async def create(self, text: str) -> TaskResponse:
        """Create a task at the top of the list and return it with its new id."""
        user_id = await self._user_id()

        async def operation(repo: TaskRepository) -> TaskResponse:
            task = await repo.create(user_id, text)
            return TaskResponse.model_validate(task)

        return await self._mutate(user_id, operation)

    async def delete(self, task_id: int) -> None:
        user_id = await self._user_id()
        await self._mutate(user_id, lambda repo: repo.delete(user_id, task_id))

    async def bulk_delete(self, ids: List[int]) -> None:
        user_id = await self._user_id()
        if not ids:
            return
        await self._mutate(user_id, lambda repo: repo.bulk_delete(user_id, ids))

    async def update_sequence(self, items: Iterable[Union[SequenceItem, Dict[str, Any]]]) -> None:
        user_id = await self._user_id()
        items = _as_models(items, SequenceItem)
        if not items:
            return
        await self._mutate(user_id, lambda repo: repo.update_sequence(user_id, items))

    async def update_texts(self, items: Iterable[Union[TextItem, Dict[str, Any]]]) -> None:
        user_id = await self._user_id()
        items = _as_models(items, TextItem)
        if not items:
            return
        await self._mutate(user_id, lambda repo: repo.update_texts(user_id, items))

    async def toggle_done(self, ids: List[int]) -> None:
        user_id = await self._user_id()
        if not ids:
            return
        await self._mutate(user_id, lambda repo: repo.toggle_done(user_id, ids))

    async def update_details(
        self,
        task_id: int,
        fields: Union[TaskDetailsUpdateRequest, Dict[str, Any]],
    ) -> None:
        """Apply only the fields that were sent."""
        user_id = await self._user_id()
        if isinstance(fields, TaskDetailsUpdateRequest):
            fields = fields.model_dump(exclude_unset=True)
        else:
            fields = dict(fields)
        if not fields:
            return
        await self._mutate(user_id, lambda repo: repo.update_details(user_id, task_id, fields))

    async def link(self, parent_id: int, child_id: int) -> None:
        user_id = await self._user_id()
        await self._mutate(user_id, lambda repo: repo.link(user_id, parent_id, child_id))

    async def unlink(self, parent_id: int, child_id: int) -> None:
        user_id = await self._user_id()
        await self._mutate(user_id, lambda repo: repo.unlink(user_id, parent_id, child_id))

    async def set_links(self, task_id: int, child_ids: List[int]) -> None:
        """Replace the set of tasks linked under ``task_id``."""
        user_id = await self._user_id()
        await self._mutate(user_id, lambda repo: repo.set_links(user_id, task_id, list(child_ids)))
