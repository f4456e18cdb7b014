"""Helpers for the manual ordering of a user's tasks."""

from typing import Iterable, List, Optional

from todoapp.schemas.taskSchema import SequenceItem


def top_sequence(current_min: Optional[int]) -> int:
    """Sequence that places a new task above every existing one.

    Going below the current minimum means no other row has to be renumbered.
    """
    if current_min is None:
        return 0
    return int(current_min) - 1


def sequence_for_order(ordered_ids: Iterable[int], start: int = 0) -> List[SequenceItem]:
    """Sequence items for a full list of ids as the user arranged them."""
    return [SequenceItem(id=task_id, sequence=start + i) for i, task_id in enumerate(ordered_ids)]
