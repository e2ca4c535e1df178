"""In-memory projection of players, formations and the live court.

The store is the single owner of session state. Components route every
mutation through it: the editor after a persistence call succeeds, the
playback controller while a transition is in flight, the reorder engine
while a reorder is in flight. At most one of those logical operations may
hold the store at a time (see ``begin_operation``).
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from .config import get_config
from .coordinates import clamp
from .errors import ReferenceNotFound
from .models import Coordinate
from .schemas import (
    CourtConfig,
    CurrentBundle,
    LoadedItem,
    PlacedPlayer,
    Player,
    Position,
    Scenario,
    Sequence,
)

logger = logging.getLogger('courtplay.store')

ModifiedListener = Callable[[bool], None]
ChangeListener = Callable[[], None]


def _upsert(items: list, entity) -> list:
    """Replace the entity with the same id in place, or append it."""
    for index, existing in enumerate(items):
        if existing.id == entity.id:
            items = list(items)
            items[index] = entity
            return items
    return [*items, entity]


class FormationStore:
    """Session state shared by the formation core components."""

    def __init__(self, config: Optional[CourtConfig] = None):
        self.config = config or get_config()

        self.players: list[Player] = []
        self.positions: list[Position] = []
        self.scenarios: list[Scenario] = []
        self.sequences: list[Sequence] = []

        # player_id -> top-left corner of that player's token
        self.live_court: dict[str, Coordinate] = {}

        self.loaded_item: Optional[LoadedItem] = None
        self.is_modified = False

        # Drop zones used to assemble a scenario
        self.selected_start_id: Optional[str] = None
        self.selected_end_id: Optional[str] = None

        self.rotation = 0

        self._operation: Optional[str] = None
        self._modified_listeners: list[ModifiedListener] = []
        self._change_listeners: list[ChangeListener] = []
        self._batch_depth = 0
        self._batch_dirty = False

    # ==================== Lookups ====================

    def find_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def find_position(self, position_id: Optional[str]) -> Optional[Position]:
        return next((p for p in self.positions if p.id == position_id), None)

    def find_scenario(self, scenario_id: Optional[str]) -> Optional[Scenario]:
        return next((s for s in self.scenarios if s.id == scenario_id), None)

    def find_sequence(self, sequence_id: Optional[str]) -> Optional[Sequence]:
        return next((s for s in self.sequences if s.id == sequence_id), None)

    def get_position(self, position_id: Optional[str]) -> Position:
        """Like find_position, but a missing id raises ReferenceNotFound."""
        position = self.find_position(position_id)
        if position is None:
            raise ReferenceNotFound('position', position_id)
        return position

    def get_scenario(self, scenario_id: Optional[str]) -> Scenario:
        scenario = self.find_scenario(scenario_id)
        if scenario is None:
            raise ReferenceNotFound('scenario', scenario_id)
        return scenario

    def get_sequence(self, sequence_id: Optional[str]) -> Sequence:
        sequence = self.find_sequence(sequence_id)
        if sequence is None:
            raise ReferenceNotFound('sequence', sequence_id)
        return sequence

    # ==================== Event hooks ====================

    def add_modified_listener(self, listener: ModifiedListener) -> None:
        """Call ``listener(is_modified)`` whenever the dirty flag flips."""
        self._modified_listeners.append(listener)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Call ``listener()`` after the court, loaded item or drop zones change."""
        self._change_listeners.append(listener)

    def _notify_change(self) -> None:
        if self._batch_depth:
            self._batch_dirty = True
            return
        for listener in self._change_listeners:
            listener()

    @contextmanager
    def batched_changes(self) -> Iterator[None]:
        """
        Hold change notifications until the block exits, then send one.

        Used when several pointers move together (court and loaded item),
        so listeners never see the half-applied state in between.
        """
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if not self._batch_depth and self._batch_dirty:
                self._batch_dirty = False
                self._notify_change()

    def set_modified(self, value: bool) -> None:
        if value == self.is_modified:
            return
        self.is_modified = value
        for listener in self._modified_listeners:
            listener(value)

    # ==================== Operation gate ====================

    @property
    def operation_in_flight(self) -> Optional[str]:
        return self._operation

    def begin_operation(self, name: str) -> bool:
        """
        Claim the store for a long-running logical operation.

        Returns False (claim rejected) if another operation is in flight.
        """
        if self._operation is not None:
            logger.debug(f'Rejected {name}: {self._operation} in flight')
            return False
        self._operation = name
        return True

    def end_operation(self, name: str) -> None:
        if self._operation == name:
            self._operation = None

    # ==================== Live court ====================

    def place_token(self, player_id: str, x: float, y: float) -> Coordinate:
        """
        Put a player's token on the court, replacing any token it already has.

        Coordinates are clamped to the token bounds.

        Raises:
            ReferenceNotFound: If the player does not exist
        """
        if self.find_player(player_id) is None:
            raise ReferenceNotFound('player', player_id)
        cx, cy = clamp(
            x, y, self.config.court_size, self.config.token_size, self.config.net_offset
        )
        coordinate = Coordinate(cx, cy)
        self.live_court[player_id] = coordinate
        self._notify_change()
        return coordinate

    def remove_token(self, player_id: str) -> bool:
        if self.live_court.pop(player_id, None) is None:
            return False
        self._notify_change()
        return True

    def clear_court(self) -> None:
        if self.live_court:
            self.live_court.clear()
            self._notify_change()

    def load_position_onto_court(self, position: Position) -> int:
        """
        Replace every token on court with the placements of ``position``.

        Placements whose player no longer exists are skipped.

        Returns:
            Number of tokens placed
        """
        self.live_court.clear()
        placed = 0
        for placement in position.player_positions:
            if self.find_player(placement.player_id) is None:
                logger.warning(
                    f'Skipping stale player {placement.player_id} in position "{position.name}"'
                )
                continue
            cx, cy = clamp(
                placement.x,
                placement.y,
                self.config.court_size,
                self.config.token_size,
                self.config.net_offset,
            )
            self.live_court[placement.player_id] = Coordinate(cx, cy)
            placed += 1
        self._notify_change()
        return placed

    def snapshot_live_court(self) -> list[PlacedPlayer]:
        """Current tokens joined with player metadata, in whole logical units."""
        snapshot = []
        for player_id, coordinate in self.live_court.items():
            player = self.find_player(player_id)
            if player is None:
                continue
            snapshot.append(
                PlacedPlayer(
                    player_id=player_id,
                    jersey=player.jersey,
                    name=player.name,
                    x=round(coordinate.x),
                    y=round(coordinate.y),
                )
            )
        return snapshot

    # ==================== Editor pointers ====================

    def set_loaded_item(self, item: Optional[LoadedItem]) -> None:
        self.loaded_item = item
        self._notify_change()

    def select_drop_zones(self, start_id: Optional[str], end_id: Optional[str]) -> None:
        self.selected_start_id = start_id
        self.selected_end_id = end_id
        self._notify_change()

    def set_rotation(self, rotation: int) -> None:
        if rotation % 90 != 0:
            raise ValueError(f'Unsupported court rotation: {rotation}')
        self.rotation = rotation % 360

    # ==================== Collections ====================

    def replace_all(self, bundle: CurrentBundle) -> None:
        """Swap in a complete set of entities and reset session pointers."""
        self.players = list(bundle.players)
        self.positions = list(bundle.positions)
        self.scenarios = list(bundle.scenarios)
        self.sequences = list(bundle.sequences)
        self.live_court.clear()
        self.loaded_item = None
        self.selected_start_id = None
        self.selected_end_id = None
        self._notify_change()
        self.set_modified(False)

    def to_bundle(self) -> CurrentBundle:
        return CurrentBundle(
            players=list(self.players),
            positions=list(self.positions),
            scenarios=list(self.scenarios),
            sequences=list(self.sequences),
        )

    def upsert_player(self, player: Player) -> None:
        self.players = _upsert(self.players, player)

    def upsert_position(self, position: Position) -> None:
        self.positions = _upsert(self.positions, position)

    def upsert_scenario(self, scenario: Scenario) -> None:
        self.scenarios = _upsert(self.scenarios, scenario)

    def upsert_sequence(self, sequence: Sequence) -> None:
        self.sequences = _upsert(self.sequences, sequence)

    def remove_player(self, player_id: str) -> None:
        """Delete a player from the roster, every saved position and the court."""
        self.players = [p for p in self.players if p.id != player_id]
        self.positions = [prune_player(position, player_id) for position in self.positions]
        if player_id in self.live_court:
            del self.live_court[player_id]
            self._notify_change()

    def remove_position(self, position_id: str) -> list[str]:
        """
        Delete a position and everything that depends on it.

        Scenarios starting or ending at the position are deleted; sequence
        items referencing the position or a deleted scenario are pruned.

        Returns:
            Ids of the scenarios deleted by the cascade
        """
        dropped = [
            s.id
            for s in self.scenarios
            if position_id in (s.start_position_id, s.end_position_id)
        ]
        self.positions = [p for p in self.positions if p.id != position_id]
        self.scenarios = [s for s in self.scenarios if s.id not in dropped]
        self.sequences = [
            prune_sequence(sequence, {position_id}, set(dropped)) for sequence in self.sequences
        ]
        return dropped

    def remove_scenario(self, scenario_id: str) -> None:
        self.scenarios = [s for s in self.scenarios if s.id != scenario_id]
        self.sequences = [
            prune_sequence(sequence, set(), {scenario_id}) for sequence in self.sequences
        ]

    def remove_sequence(self, sequence_id: str) -> None:
        self.sequences = [s for s in self.sequences if s.id != sequence_id]


def prune_player(position: Position, player_id: str) -> Position:
    """Copy of ``position`` without any placement for ``player_id``."""
    kept = [p for p in position.player_positions if p.player_id != player_id]
    if len(kept) == len(position.player_positions):
        return position
    return position.model_copy(update={'player_positions': kept})


def prune_sequence(sequence: Sequence, position_ids: set[str], scenario_ids: set[str]) -> Sequence:
    """Copy of ``sequence`` without items referencing the given ids."""
    kept = [
        item
        for item in sequence.items
        if not (
            (item.type == 'position' and item.id in position_ids)
            or (item.type == 'scenario' and item.id in scenario_ids)
        )
    ]
    if len(kept) == len(sequence.items):
        return sequence
    return sequence.model_copy(update={'items': kept})
