"""Drag-based reordering of lists and sequence timelines.

A drop lands on a target element. Dropping on its upper half inserts
before it, on its lower half after it. Items are always addressed by list
index, never by id, so duplicate sequence items stay distinguishable.
"""

import logging
from typing import Sequence as SequenceType, TypeVar

from .errors import PersistenceFailure
from .models import Signal
from .persistence import Persistence
from .store import FormationStore

T = TypeVar('T')
logger = logging.getLogger('courtplay.reorder')

OPERATION = 'reorder'
COLLECTIONS = ('players', 'positions', 'scenarios', 'sequences')


def drop_index(target_index: int, offset: float, extent: float) -> int:
    """
    Insertion index for a drop on the element at ``target_index``.

    Args:
        target_index: Index of the element under the pointer
        offset: Pointer offset from the element's leading edge
        extent: The element's height (or width for horizontal lists)

    Returns:
        ``target_index`` when dropped on the leading half, else ``target_index + 1``
    """
    return target_index + (1 if offset > extent / 2 else 0)


def move_item(items: SequenceType[T], from_index: int, insert_index: int) -> list[T]:
    """
    Extract the item at ``from_index`` and reinsert it at ``insert_index``.

    ``insert_index`` is expressed in the original list (0..len). Because
    removing the item shifts everything after it, the index is adjusted down
    by one when moving forward.

    Example:
        >>> move_item(['A', 'B', 'C', 'D'], 0, 3)
        ['B', 'C', 'A', 'D']
    """
    if not 0 <= from_index < len(items):
        raise IndexError(f'from_index {from_index} out of range for {len(items)} items')
    if not 0 <= insert_index <= len(items):
        raise IndexError(f'insert_index {insert_index} out of range for {len(items)} items')

    result = list(items)
    item = result.pop(from_index)
    if from_index < insert_index:
        insert_index -= 1
    result.insert(insert_index, item)
    return result


def reorder(items: SequenceType[T], from_index: int, target_index: int, place_after: bool) -> list[T]:
    """Move ``items[from_index]`` before or after the element at ``target_index``."""
    return move_item(items, from_index, target_index + (1 if place_after else 0))


class ReorderEngine:
    """Applies reorders to the store, one at a time."""

    def __init__(self, store: FormationStore, persistence: Persistence):
        self.store = store
        self.persistence = persistence

    def reorder_collection(
        self, kind: str, from_index: int, target_index: int, place_after: bool
    ) -> Signal:
        """Reorder one of the store's entity lists in memory."""
        if kind not in COLLECTIONS:
            raise ValueError(f'Unknown collection: {kind}')
        if not self.store.begin_operation(OPERATION):
            return Signal.CONCURRENT_OPERATION_REJECTED
        try:
            items = getattr(self.store, kind)
            setattr(self.store, kind, reorder(items, from_index, target_index, place_after))
        finally:
            self.store.end_operation(OPERATION)
        return Signal.OK

    async def reorder_sequence_items(
        self, sequence_id: str, from_index: int, target_index: int, place_after: bool
    ) -> Signal:
        """
        Reorder a sequence's timeline and persist the sequence.

        Raises:
            ReferenceNotFound: If the sequence does not exist
            PersistenceFailure: If saving fails (the store keeps the old order)
        """
        if not self.store.begin_operation(OPERATION):
            return Signal.CONCURRENT_OPERATION_REJECTED
        try:
            sequence = self.store.get_sequence(sequence_id)
            items = reorder(sequence.items, from_index, target_index, place_after)
            updated = sequence.model_copy(update={'items': items})
            try:
                await self.persistence.sequences.save(updated)
            except Exception as e:
                logger.error(f'Error saving sequence "{sequence.name}": {e}')
                raise PersistenceFailure('reorder sequence', e) from e
            self.store.upsert_sequence(updated)
        finally:
            self.store.end_operation(OPERATION)
        return Signal.OK
