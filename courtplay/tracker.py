"""Detect when the live court has drifted from the loaded item's saved state."""

from typing import Mapping, Optional

from .models import Coordinate
from .schemas import LoadedItem
from .store import FormationStore


def is_dirty(
    loaded_item: Optional[LoadedItem],
    live_court: Mapping[str, Coordinate],
    store: FormationStore,
) -> bool:
    """
    Compare the current editor state against the loaded item's saved state.

    Rules:
    - Nothing loaded: clean
    - Unsaved item (no id): always dirty
    - Position: dirty if the token count differs from the saved placements,
      or any token's whole-unit (x, y) differs from its saved value
    - Scenario: dirty if a drop zone holds a different position than the
      saved start/end (an empty drop zone counts as clean)
    - Sequence: never dirty

    Runs in O(tokens), cheap enough for every pointer-move tick.
    """
    if loaded_item is None:
        return False
    if loaded_item.id is None:
        return True

    if loaded_item.type == 'position':
        position = store.find_position(loaded_item.id)
        if position is None:
            return True
        saved = {
            p.player_id: (p.x, p.y)
            for p in position.player_positions
            if store.find_player(p.player_id) is not None
        }
        live = {
            player_id: (round(c.x), round(c.y))
            for player_id, c in live_court.items()
            if store.find_player(player_id) is not None
        }
        if len(saved) != len(live):
            return True
        return any(saved.get(player_id) != xy for player_id, xy in live.items())

    if loaded_item.type == 'scenario':
        start_id, end_id = store.selected_start_id, store.selected_end_id
        if not start_id or not end_id:
            return False
        scenario = store.find_scenario(loaded_item.id)
        if scenario is None:
            return True
        return scenario.start_position_id != start_id or scenario.end_position_id != end_id

    return False


class ModificationTracker:
    """Keeps ``store.is_modified`` in step with the live court."""

    def __init__(self, store: FormationStore):
        self.store = store
        self._attached = False

    def check(self) -> bool:
        dirty = is_dirty(self.store.loaded_item, self.store.live_court, self.store)
        self.store.set_modified(dirty)
        return dirty

    def attach(self) -> None:
        """Re-check after every court, loaded-item or drop-zone change."""
        if not self._attached:
            self.store.add_change_listener(self.check)
            self._attached = True
