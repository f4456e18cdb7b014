"""Interaction-mode state machine for a task list editing session."""

import logging
from typing import Any, Iterable, Optional

from todoapp.constants.constants import EditMode
from todoapp.core.exceptions import InvalidModeTransition
from todoapp.services.TaskMutationService import TaskMutationService
from todoapp.utils.ordering import sequence_for_order

logger = logging.getLogger(__name__)


class EditSession:
    """
    Drives one task list through ``idle -> <mode> -> idle``.

    ``save`` runs the mutation that belongs to the active mode and only
    returns to idle once it succeeded; on failure the mode stays active so
    the caller can retry or discard. ``discard`` returns to idle without
    touching the service.

    While a save is in flight the list is ahead of the database, so
    ``accepts_authoritative_state`` is False and a fresh server read should
    not overwrite local state yet.
    """

    def __init__(self, service: TaskMutationService):
        self.service = service
        self.mode = EditMode.idle
        self._in_flight = 0

    @property
    def is_saving(self) -> bool:
        return self._in_flight > 0

    def accepts_authoritative_state(self) -> bool:
        return not self.is_saving

    def enter(self, mode) -> None:
        mode = EditMode(mode)
        if mode is EditMode.idle:
            raise InvalidModeTransition("Use save() or discard() to return to idle")
        if self.mode is not EditMode.idle:
            raise InvalidModeTransition(
                f"Cannot enter {mode.value} while {self.mode.value} is active"
            )
        self.mode = mode

    def discard(self) -> None:
        if self.is_saving:
            raise InvalidModeTransition("Cannot discard while a save is in flight")
        self.mode = EditMode.idle

    async def save(self, payload: Any = None) -> Any:
        """
        Commit the active mode.

        Payload per mode:
            creating: the new task's text
            editing: iterable of ``{"id", "text"}`` items that changed
            reordering: task ids in their new display order
            selecting_done / selecting_delete: selected task ids
        """
        if self.mode is EditMode.idle:
            raise InvalidModeTransition("Nothing to save while idle")
        if self.is_saving:
            raise InvalidModeTransition("A save is already in flight")

        handler = {
            EditMode.creating: self._save_created,
            EditMode.editing: self._save_edited,
            EditMode.reordering: self._save_order,
            EditMode.selecting_done: self._save_done,
            EditMode.selecting_delete: self._save_deleted,
        }[self.mode]

        self._in_flight += 1
        try:
            result = await handler(payload)
        finally:
            self._in_flight -= 1

        logger.debug(f"Saved {self.mode.value}, returning to idle")
        self.mode = EditMode.idle
        return result

    async def _save_created(self, text: Optional[str]):
        if not text or not text.strip():
            return None
        return await self.service.create(text.strip())

    async def _save_edited(self, items: Optional[Iterable]):
        items = list(items or [])
        if items:
            await self.service.update_texts(items)

    async def _save_order(self, ordered_ids: Optional[Iterable[int]]):
        items = sequence_for_order(ordered_ids or [])
        if items:
            await self.service.update_sequence(items)

    async def _save_done(self, ids: Optional[Iterable[int]]):
        ids = list(ids or [])
        if ids:
            await self.service.toggle_done(ids)

    async def _save_deleted(self, ids: Optional[Iterable[int]]):
        ids = list(ids or [])
        if ids:
            await self.service.bulk_delete(ids)
