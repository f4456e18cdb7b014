"""Per-user "data changed" signal for task list views."""

import asyncio
import itertools
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List, Tuple

logger = logging.getLogger(__name__)

TODO_VIEW = "/todo"

# Most (user, view) revisions kept in memory at once
MAX_TRACKED_VIEWS = 10_000

Listener = Callable[[str, str, int], Awaitable[None]]


class ChangeNotifier:
    """
    Tracks a revision number per (user, view).

    Every successful mutation bumps the revision of the view it touched.
    Readers compare the revision they rendered against the current one to
    know their copy is stale; listeners are awaited after each bump.

    Revisions come from one process-wide counter, so they only grow and
    are never handed out twice. At most ``max_entries`` views are kept;
    the least recently changed is dropped first and reads as 0 until its
    next change. A reader holding an older revision therefore still sees
    a difference and refetches.
    """

    def __init__(self, max_entries: int = MAX_TRACKED_VIEWS):
        self.max_entries = max_entries
        self._counter = itertools.count(1)
        self._revisions: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self._revisions)

    def revision(self, user_id: str, view: str = TODO_VIEW) -> int:
        return self._revisions.get((user_id, view), 0)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(user_id, view, revision)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def data_changed(self, user_id: str, view: str = TODO_VIEW) -> int:
        key = (user_id, view)
        revision = next(self._counter)
        self._revisions[key] = revision
        self._revisions.move_to_end(key)
        while len(self._revisions) > self.max_entries:
            self._revisions.popitem(last=False)

        if self._listeners:
            results = await asyncio.gather(
                *(listener(user_id, view, revision) for listener in list(self._listeners)),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Change listener failed for {view}: {str(result)}")
        return revision


# Shared by every request in the process
change_notifier = ChangeNotifier()
