"""
Task repository for the todo service.

Every query here is filtered by the owning ``user_id``. Lookups that match
zero rows are silent no-ops: a task that does not exist and a task that
belongs to someone else look the same to the caller.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from pydantic import ValidationError
from sqlalchemy import bindparam, delete, func, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from todoapp.core.exceptions import InvalidTaskOperation, StorageCleanupFailure, Unauthorized
from todoapp.models.relationship import TaskRelationship
from todoapp.models.task import Task
from todoapp.schemas.taskSchema import FileAttachment, FileList, ImageList, SequenceItem, TextItem
from todoapp.utils.attachments import blob_paths, is_user_blob_path, removed_files, removed_images
from todoapp.utils.ordering import top_sequence

logger = logging.getLogger(__name__)

DETAIL_FIELDS = {"text", "description", "images", "files", "parent_id"}

# Longest parent chain walked when checking a new parent pointer for cycles
MAX_PARENT_DEPTH = 1000


class BlobStore(Protocol):
    async def remove(self, paths: List[str]) -> None:
        ...


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def _require_text(text: Optional[str]) -> str:
    if text is None or not str(text).strip():
        raise InvalidTaskOperation("Task text must not be empty")
    return text


def images_of(task: Task) -> List[str]:
    """Stored images, dropping anything that is not a URL string."""
    return [url for url in (task.images or []) if isinstance(url, str) and url]


def files_of(task: Task) -> List[FileAttachment]:
    """Stored files as validated records; malformed entries are skipped."""
    files = []
    for raw in task.files or []:
        try:
            files.append(FileAttachment.model_validate(raw))
        except ValidationError:
            logger.warning(f"Skipping malformed file attachment on task {task.id}: {raw!r}")
    return files


class TaskRepository:
    """SQLAlchemy implementation of the per-user task store.

    The repository works inside the caller's session; committing or
    rolling back is the session owner's job, so a batch of statements
    issued here lands or fails together.
    """

    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store

    # ------------------------------
    # Reads
    # ------------------------------
    async def list_for_user(self, user_id: str) -> List[Task]:
        """All of a user's tasks, in display order."""
        user_id = _require_user(user_id)
        result = await self.db.execute(
            select(Task)
            .where(Task.user_id == user_id)
            .order_by(Task.sequence, Task.created_at, Task.id)
        )
        return list(result.scalars().all())

    async def get(self, user_id: str, task_id: int) -> Optional[Task]:
        user_id = _require_user(user_id)
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def linked_ids(self, user_id: str, task_id: int) -> Tuple[List[int], List[int]]:
        """Ids linked to a task as (parents, children) through relationship rows."""
        user_id = _require_user(user_id)
        parents = await self.db.execute(
            select(TaskRelationship.parent_id)
            .where(TaskRelationship.child_id == task_id, TaskRelationship.user_id == user_id)
            .order_by(TaskRelationship.created_at, TaskRelationship.parent_id)
        )
        children = await self.db.execute(
            select(TaskRelationship.child_id)
            .where(TaskRelationship.parent_id == task_id, TaskRelationship.user_id == user_id)
            .order_by(TaskRelationship.created_at, TaskRelationship.child_id)
        )
        return list(parents.scalars().all()), list(children.scalars().all())

    async def list_relationships(self, user_id: str) -> List[TaskRelationship]:
        user_id = _require_user(user_id)
        result = await self.db.execute(
            select(TaskRelationship)
            .where(TaskRelationship.user_id == user_id)
            .order_by(TaskRelationship.parent_id, TaskRelationship.child_id)
        )
        return list(result.scalars().all())

    # ------------------------------
    # Mutations
    # ------------------------------
    async def create(self, user_id: str, text: str) -> Task:
        """Insert a task above every task the user already has."""
        user_id = _require_user(user_id)
        text = _require_text(text)

        result = await self.db.execute(
            select(func.min(Task.sequence)).where(Task.user_id == user_id)
        )
        new_sequence = top_sequence(result.scalar_one_or_none())

        task = Task(
            user_id=user_id,
            text=text,
            done=False,
            images=[],
            files=[],
            sequence=new_sequence,
        )
        self.db.add(task)
        await self.db.flush()
        await self.db.refresh(task)
        logger.info(f"Created task {task.id} for user {user_id} at sequence {new_sequence}")
        return task

    async def delete(self, user_id: str, task_id: int) -> bool:
        """Delete one owned task and its attachments. Returns False when nothing matched."""
        user_id = _require_user(user_id)
        task = await self.get(user_id, task_id)
        if task is None:
            return False

        await self._cleanup_blobs(user_id, blob_paths(images_of(task), files_of(task)))
        await self._detach(user_id, [task.id])
        await self.db.execute(
            delete(Task)
            .where(Task.id == task.id, Task.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        self.db.expunge(task)
        logger.info(f"Deleted task {task_id} for user {user_id}")
        return True

    async def bulk_delete(self, user_id: str, ids: Sequence[int]) -> int:
        """Delete every owned task in ``ids`` along with its attachments."""
        user_id = _require_user(user_id)
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0

        result = await self.db.execute(
            select(Task).where(Task.id.in_(ids), Task.user_id == user_id)
        )
        tasks = list(result.scalars().all())
        if not tasks:
            return 0

        images: List[str] = []
        files: List[FileAttachment] = []
        for task in tasks:
            images.extend(images_of(task))
            files.extend(files_of(task))
        await self._cleanup_blobs(user_id, blob_paths(images, files))

        owned_ids = [task.id for task in tasks]
        await self._detach(user_id, owned_ids)
        await self.db.execute(
            delete(Task)
            .where(Task.id.in_(owned_ids), Task.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        for task in tasks:
            self.db.expunge(task)
        logger.info(f"Bulk deleted {len(owned_ids)} task(s) for user {user_id}")
        return len(owned_ids)

    async def update_sequence(self, user_id: str, items: Iterable[SequenceItem]) -> None:
        """Set ``sequence`` on each owned task in one multi-row statement.

        Items naming another user's task match no row and are skipped.
        """
        user_id = _require_user(user_id)
        params = [{"b_id": item.id, "b_sequence": item.sequence} for item in items]
        if not params:
            return

        table = Task.__table__
        conn = await self.db.connection()
        await conn.execute(
            update(table)
            .where(table.c.id == bindparam("b_id"), table.c.user_id == user_id)
            .values(sequence=bindparam("b_sequence")),
            params,
        )
        logger.info(f"Resequenced {len(params)} task(s) for user {user_id}")

    async def update_texts(self, user_id: str, items: Iterable[TextItem]) -> None:
        """Set ``text`` on each owned task in one multi-row statement."""
        user_id = _require_user(user_id)
        params = [{"b_id": item.id, "b_text": _require_text(item.text)} for item in items]
        if not params:
            return

        table = Task.__table__
        conn = await self.db.connection()
        await conn.execute(
            update(table)
            .where(table.c.id == bindparam("b_id"), table.c.user_id == user_id)
            .values(text=bindparam("b_text")),
            params,
        )
        logger.info(f"Updated text of {len(params)} task(s) for user {user_id}")

    async def toggle_done(self, user_id: str, ids: Sequence[int]) -> int:
        """Flip ``done`` on every owned task in ``ids``; calling twice restores the original state."""
        user_id = _require_user(user_id)
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0

        result = await self.db.execute(
            update(Task)
            .where(Task.id.in_(ids), Task.user_id == user_id)
            .values(done=not_(Task.done))
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Toggled done on {result.rowcount} task(s) for user {user_id}")
        return result.rowcount

    async def update_details(self, user_id: str, task_id: int, fields: Dict[str, Any]) -> bool:
        """
        Partially update a task's details.

        Only keys present in ``fields`` change. When ``images`` or ``files``
        are replaced, blobs that are no longer referenced are removed from
        storage before the row is written.
        """
        user_id = _require_user(user_id)
        unknown = set(fields) - DETAIL_FIELDS
        if unknown:
            raise InvalidTaskOperation(f"Unknown task fields: {', '.join(sorted(unknown))}")

        task = await self.get(user_id, task_id)
        if task is None:
            return False

        changes: Dict[str, Any] = {}
        images = images_of(task)
        files = files_of(task)
        stale_images: List[str] = []
        stale_files: List[FileAttachment] = []

        if "text" in fields:
            changes["text"] = _require_text(fields["text"])
        if "description" in fields:
            changes["description"] = fields["description"]
        if "images" in fields:
            new_images = self._validate_images(fields["images"])
            stale_images = removed_images(images, new_images)
            images = new_images
            changes["images"] = new_images
        if "files" in fields:
            new_files = self._validate_files(fields["files"])
            stale_files = removed_files(files, new_files)
            files = new_files
            changes["files"] = [f.model_dump() for f in new_files]
        if "parent_id" in fields:
            await self._check_parent(user_id, task.id, fields["parent_id"])
            changes["parent_id"] = fields["parent_id"]

        # A blob dropped from one list may still be referenced by the other
        still_referenced = set(blob_paths(images, files))
        stale = [p for p in blob_paths(stale_images, stale_files) if p not in still_referenced]
        await self._cleanup_blobs(user_id, stale)

        for field, value in changes.items():
            setattr(task, field, value)
        await self.db.flush()
        logger.info(f"Updated {sorted(changes)} on task {task_id} for user {user_id}")
        return True

    # ------------------------------
    # Relationships
    # ------------------------------
    async def link(self, user_id: str, parent_id: int, child_id: int) -> bool:
        """Link two owned tasks. Returns False when either task is not the caller's."""
        user_id = _require_user(user_id)
        if parent_id == child_id:
            raise InvalidTaskOperation("A task cannot be linked to itself")

        if await self._owned_ids(user_id, [parent_id, child_id]) != {parent_id, child_id}:
            return False

        existing = await self.db.get(TaskRelationship, (parent_id, child_id))
        if existing is None:
            self.db.add(TaskRelationship(parent_id=parent_id, child_id=child_id, user_id=user_id))
            await self.db.flush()
        return True

    async def unlink(self, user_id: str, parent_id: int, child_id: int) -> int:
        user_id = _require_user(user_id)
        result = await self.db.execute(
            delete(TaskRelationship)
            .where(
                TaskRelationship.parent_id == parent_id,
                TaskRelationship.child_id == child_id,
                TaskRelationship.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def set_links(self, user_id: str, task_id: int, child_ids: Sequence[int]) -> bool:
        """Make ``child_ids`` the exact set of tasks linked under ``task_id``.

        Ids the caller does not own are dropped from the new set.
        """
        user_id = _require_user(user_id)
        if task_id in child_ids:
            raise InvalidTaskOperation("A task cannot be linked to itself")
        if not await self._owned_ids(user_id, [task_id]):
            return False

        wanted = await self._owned_ids(user_id, child_ids)
        result = await self.db.execute(
            select(TaskRelationship.child_id)
            .where(TaskRelationship.parent_id == task_id, TaskRelationship.user_id == user_id)
        )
        current = set(result.scalars().all())

        dropped = current - wanted
        if dropped:
            await self.db.execute(
                delete(TaskRelationship)
                .where(
                    TaskRelationship.parent_id == task_id,
                    TaskRelationship.child_id.in_(dropped),
                    TaskRelationship.user_id == user_id,
                )
                .execution_options(synchronize_session=False)
            )
        for child_id in child_ids:
            if child_id in wanted and child_id not in current:
                self.db.add(TaskRelationship(parent_id=task_id, child_id=child_id, user_id=user_id))
                current.add(child_id)
        await self.db.flush()
        return True

    # ------------------------------
    # Internals
    # ------------------------------
    async def _owned_ids(self, user_id: str, ids: Iterable[int]) -> Set[int]:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return set()
        result = await self.db.execute(
            select(Task.id).where(Task.id.in_(ids), Task.user_id == user_id)
        )
        return set(result.scalars().all())

    async def _detach(self, user_id: str, ids: List[int]) -> None:
        """Drop relationship rows and parent pointers that reference tasks about to be deleted."""
        await self.db.execute(
            delete(TaskRelationship)
            .where(
                or_(TaskRelationship.parent_id.in_(ids), TaskRelationship.child_id.in_(ids)),
                TaskRelationship.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Task)
            .where(Task.parent_id.in_(ids), Task.user_id == user_id)
            .values(parent_id=None)
            .execution_options(synchronize_session=False)
        )

    async def _check_parent(self, user_id: str, task_id: int, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        if parent_id == task_id:
            raise InvalidTaskOperation("A task cannot be its own parent")

        # Walk up from the proposed parent; meeting task_id means a cycle
        seen = set()
        current = parent_id
        for _ in range(MAX_PARENT_DEPTH):
            result = await self.db.execute(
                select(Task.parent_id).where(Task.id == current, Task.user_id == user_id)
            )
            row = result.first()
            if row is None:
                if current == parent_id:
                    raise InvalidTaskOperation("Parent task not found")
                return
            seen.add(current)
            current = row.parent_id
            if current is None or current in seen:
                return
            if current == task_id:
                raise InvalidTaskOperation("Parent assignment would create a cycle")
        raise InvalidTaskOperation("Parent chain is too deep")

    @staticmethod
    def _validate_images(value) -> List[str]:
        try:
            return ImageList.validate_python(value or [])
        except ValidationError as e:
            raise InvalidTaskOperation(f"Invalid images: {e.errors()}") from e

    @staticmethod
    def _validate_files(value) -> List[FileAttachment]:
        try:
            return FileList.validate_python(value or [])
        except ValidationError as e:
            raise InvalidTaskOperation(f"Invalid files: {e.errors()}") from e

    async def _cleanup_blobs(self, user_id: str, paths: List[str]) -> None:
        """Best-effort removal of the user's own blobs; failures are logged, never raised.

        Attachment URLs come from the client, so only paths under the
        user's upload folders are removed. Anything else stays in storage.
        """
        foreign = [p for p in paths if not is_user_blob_path(p, user_id)]
        if foreign:
            logger.warning(f"Skipping cleanup of {len(foreign)} blob(s) not owned by user {user_id}: {foreign}")
        paths = [p for p in paths if is_user_blob_path(p, user_id)]
        if not paths:
            return
        try:
            await self.blob_store.remove(paths)
        except StorageCleanupFailure as e:
            logger.warning(f"⚠️ Attachment cleanup failed for {e.paths}: {e.cause}")
        except Exception as e:
            logger.error(f"⚠️ Unexpected error removing attachments {paths}: {str(e)}", exc_info=True)
