"""Editor workflow: entity CRUD with cascades on top of the formation core.

Every mutating operation follows the same order:

1. validate (raise ValidationError, nothing touched)
2. persist (raise PersistenceFailure, store untouched)
3. apply to the in-memory store

Cascades (deleting a player, position or scenario) persist the dependent
changes before the primary delete.
"""

import logging
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from .coordinates import classify_drop, client_to_court
from .errors import PersistenceFailure, ReferenceNotFound, ValidationError
from .flattener import scenario_steps
from .migration import migrate_document
from .models import ItemType, Signal
from .persistence import Persistence
from .playback import PlaybackController
from .reorder import ReorderEngine
from .schemas import (
    CourtConfig,
    CurrentBundle,
    LoadedItem,
    Player,
    Position,
    Scenario,
    Sequence,
    SequenceItem,
)
from .store import FormationStore, prune_player, prune_sequence
from .tracker import ModificationTracker
from .utils import all_tags, filter_items, generate_id
from .validators import (
    validate_bundle,
    validate_player,
    validate_position_name,
    validate_scenario,
    validate_sequence_name,
)

logger = logging.getLogger('courtplay.editor')

R = TypeVar('R')

UNSAVED_SCENARIO_NAME = 'Unsaved scenario'


def _raise_if(errors: list[str]) -> None:
    if errors:
        raise ValidationError(errors)


class CourtEditor:
    """Session facade wiring the store, playback, tracker and reorder engine."""

    def __init__(
        self,
        persistence: Persistence,
        store: Optional[FormationStore] = None,
        config: Optional[CourtConfig] = None,
    ):
        self.persistence = persistence
        self.store = store or FormationStore(config)
        self.playback = PlaybackController(self.store)
        self.tracker = ModificationTracker(self.store)
        self.tracker.attach()
        self.reorder = ReorderEngine(self.store, persistence)

    async def _persist(self, operation: str, call: Awaitable[R]) -> R:
        try:
            return await call
        except Exception as e:
            logger.error(f'Error during {operation}: {e}')
            raise PersistenceFailure(operation, e) from e

    def _busy(self) -> bool:
        return self.playback.is_animating or self.store.operation_in_flight is not None

    def _is_loaded(self, item_type: str, item_id: Optional[str]) -> bool:
        loaded = self.store.loaded_item
        return loaded is not None and loaded.type == item_type and loaded.id == item_id

    # ==================== Startup / bundles ====================

    async def bootstrap(self) -> bool:
        """
        Fill the store from persistence.

        Returns:
            False if persistence holds no data yet (store left empty)
        """
        if not await self._persist('bootstrap', self.persistence.has_data()):
            logger.info('No stored data found')
            return False
        bundle = CurrentBundle(
            players=await self._persist('bootstrap', self.persistence.players.get_all()),
            positions=await self._persist('bootstrap', self.persistence.positions.get_all()),
            scenarios=await self._persist('bootstrap', self.persistence.scenarios.get_all()),
            sequences=await self._persist('bootstrap', self.persistence.sequences.get_all()),
        )
        self.playback.unload()
        self.store.replace_all(bundle)
        logger.info(
            f'Loaded {len(bundle.players)} players, {len(bundle.positions)} positions, '
            f'{len(bundle.scenarios)} scenarios, {len(bundle.sequences)} sequences'
        )
        return True

    async def import_bundle(self, raw: Any) -> CurrentBundle:
        """
        Replace all data with a raw document (either version).

        Raises:
            ValidationError: If the document cannot be parsed or breaks an invariant
            PersistenceFailure: If the import could not be stored
        """
        try:
            bundle = migrate_document(raw)
        except ValueError as e:
            raise ValidationError([str(e)]) from e
        errors, warnings = validate_bundle(bundle)
        _raise_if(errors)
        for warning in warnings:
            logger.warning(warning)

        await self._persist('import', self.persistence.import_all(bundle))
        self.playback.unload()
        self.store.replace_all(bundle)
        return bundle

    def export_bundle(self) -> CurrentBundle:
        return self.store.to_bundle()

    # ==================== Players ====================

    async def add_player(self, jersey: str, name: str) -> Player:
        _raise_if(validate_player(jersey, name, self.store.players))
        player = Player(id=generate_id('player'), jersey=jersey, name=name)
        saved = await self._persist('add player', self.persistence.players.save(player))
        self.store.upsert_player(saved)
        logger.info(f'Added player #{saved.jersey} {saved.name}')
        return saved

    async def update_player(self, player_id: str, jersey: str, name: str) -> Player:
        player = self.store.find_player(player_id)
        if player is None:
            raise ReferenceNotFound('player', player_id)
        _raise_if(validate_player(jersey, name, self.store.players, exclude_id=player_id))
        updated = Player(id=player_id, jersey=jersey, name=name)
        saved = await self._persist('update player', self.persistence.players.save(updated))
        self.store.upsert_player(saved)
        return saved

    async def delete_player(self, player_id: str) -> None:
        """Delete a player and remove it from every saved position and the court."""
        if self.store.find_player(player_id) is None:
            raise ReferenceNotFound('player', player_id)

        for position in self.store.positions:
            pruned = prune_player(position, player_id)
            if pruned is not position:
                await self._persist('delete player', self.persistence.positions.save(pruned))
        await self._persist('delete player', self.persistence.players.delete(player_id))

        self.store.remove_player(player_id)
        self.tracker.check()

    # ==================== Positions ====================

    async def create_position(
        self, name: str, tags: Iterable[str] = (), from_court: bool = True
    ) -> Position:
        """
        Save a new position and make it the loaded item.

        Args:
            name: Unique position name
            tags: Optional tags
            from_court: Snapshot the live court (False creates an empty shell)
        """
        _raise_if(validate_position_name(name, self.store.positions))
        position = Position(
            id=generate_id('position'),
            name=name.strip(),
            tags=list(tags),
            player_positions=self.store.snapshot_live_court() if from_court else [],
        )
        saved = await self._persist('create position', self.persistence.positions.save(position))
        self.store.upsert_position(saved)
        self.playback.last_start_position_id = saved.id
        self.store.set_loaded_item(LoadedItem(type='position', id=saved.id, name=saved.name))
        return saved

    async def save_position(self) -> Position:
        """Overwrite the loaded position with the live court."""
        loaded = self.store.loaded_item
        if loaded is None or loaded.type != 'position' or loaded.id is None:
            raise ValidationError(['No position is loaded'])
        position = self.store.get_position(loaded.id)
        updated = position.model_copy(
            update={'player_positions': self.store.snapshot_live_court()}
        )
        saved = await self._persist('save position', self.persistence.positions.save(updated))
        self.store.upsert_position(saved)
        self.tracker.check()
        return saved

    async def save_position_as(
        self, name: Optional[str] = None, tags: Optional[Iterable[str]] = None
    ) -> Position:
        """Save the live court as a new position, by default ``"<loaded name> (Copy)"``."""
        base = None
        loaded = self.store.loaded_item
        if loaded is not None and loaded.type == 'position':
            base = self.store.find_position(loaded.id)
        if name is None:
            if base is None:
                raise ValidationError(['Position name cannot be empty'])
            name = f'{base.name} (Copy)'
        if tags is None:
            tags = base.tags if base is not None else []
        return await self.create_position(name, tags)

    async def rename_position(
        self, position_id: str, name: str, tags: Optional[Iterable[str]] = None
    ) -> Position:
        position = self.store.get_position(position_id)
        _raise_if(validate_position_name(name, self.store.positions, exclude_id=position_id))
        fields: dict[str, Any] = {**position.model_dump(), 'name': name.strip()}
        if tags is not None:
            fields['tags'] = list(tags)
        updated = Position.model_validate(fields)
        saved = await self._persist('rename position', self.persistence.positions.save(updated))
        self.store.upsert_position(saved)
        if self._is_loaded('position', position_id):
            self.store.set_loaded_item(LoadedItem(type='position', id=saved.id, name=saved.name))
        return saved

    async def delete_position(self, position_id: str) -> list[str]:
        """
        Delete a position, the scenarios built on it, and timeline items using either.

        Dependents are written first (pruned sequences, then scenario deletes)
        and the position last, so a failure part way leaves storage without
        dangling references. The store only changes once every write has
        succeeded; calling again after a failure finishes the cascade.

        Returns:
            Ids of the scenarios deleted by the cascade
        """
        self.store.get_position(position_id)
        dropped = [
            s.id
            for s in self.store.scenarios
            if position_id in (s.start_position_id, s.end_position_id)
        ]

        for sequence in self.store.sequences:
            pruned = prune_sequence(sequence, {position_id}, set(dropped))
            if pruned is not sequence:
                await self._persist('delete position', self.persistence.sequences.save(pruned))
        for scenario_id in dropped:
            await self._persist('delete position', self.persistence.scenarios.delete(scenario_id))
        await self._persist('delete position', self.persistence.positions.delete(position_id))

        self.store.remove_position(position_id)
        if self._is_loaded('position', position_id) or any(
            self._is_loaded('scenario', scenario_id) for scenario_id in dropped
        ):
            self.store.set_loaded_item(None)
        if position_id in (self.store.selected_start_id, self.store.selected_end_id):
            self.store.select_drop_zones(
                None if self.store.selected_start_id == position_id else self.store.selected_start_id,
                None if self.store.selected_end_id == position_id else self.store.selected_end_id,
            )
        self._refresh_loaded_sequence()
        if dropped:
            logger.info(f'Deleting position {position_id} also deleted {len(dropped)} scenarios')
        return dropped

    def load_position(self, position_id: str) -> Signal:
        """
        Show a saved position on the court and make it the loaded item.

        Raises:
            ReferenceNotFound: If the position does not exist
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        position = self.store.get_position(position_id)
        self.playback.unload()
        with self.store.batched_changes():
            self.store.load_position_onto_court(position)
            self.store.set_loaded_item(
                LoadedItem(type='position', id=position.id, name=position.name)
            )
        self.playback.last_start_position_id = position.id
        return Signal.OK

    # ==================== Scenarios ====================

    def set_drop_zone(self, zone: str, position_id: Optional[str]) -> None:
        """
        Put a position into the ``'start'`` or ``'end'`` drop zone (None empties it).

        Once both zones are filled and no scenario is loaded, the pair becomes
        an unsaved scenario.
        """
        if zone not in ('start', 'end'):
            raise ValueError(f'Unknown drop zone: {zone}')
        if position_id is not None:
            self.store.get_position(position_id)

        start_id = position_id if zone == 'start' else self.store.selected_start_id
        end_id = position_id if zone == 'end' else self.store.selected_end_id
        self.store.select_drop_zones(start_id, end_id)

        loaded = self.store.loaded_item
        if start_id and end_id and (loaded is None or loaded.type != 'scenario'):
            self.store.set_loaded_item(
                LoadedItem(type='scenario', id=None, name=UNSAVED_SCENARIO_NAME)
            )

    def clear_scenario(self) -> None:
        """Empty both drop zones and unload any scenario."""
        self.store.select_drop_zones(None, None)
        loaded = self.store.loaded_item
        if loaded is not None and loaded.type == 'scenario':
            self.store.set_loaded_item(None)

    async def create_scenario(self, name: str, tags: Iterable[str] = ()) -> Scenario:
        """Save the two drop zones as a new scenario and make it the loaded item."""
        start_id, end_id = self.store.selected_start_id, self.store.selected_end_id
        _raise_if(
            validate_scenario(
                name, start_id, end_id, self.store.scenarios, self.store.positions
            )
        )
        scenario = Scenario(
            id=generate_id('scenario'),
            name=name.strip(),
            start_position_id=start_id,
            end_position_id=end_id,
            tags=list(tags),
        )
        saved = await self._persist('create scenario', self.persistence.scenarios.save(scenario))
        self.store.upsert_scenario(saved)
        self.store.set_loaded_item(LoadedItem(type='scenario', id=saved.id, name=saved.name))
        return saved

    async def save_scenario(self) -> Scenario:
        """Overwrite the loaded scenario's start/end with the drop zones."""
        loaded = self.store.loaded_item
        if loaded is None or loaded.type != 'scenario':
            raise ValidationError(['No scenario is loaded'])
        if loaded.id is None:
            raise ValidationError(['Scenario has not been saved yet, give it a name first'])
        scenario = self.store.get_scenario(loaded.id)
        start_id, end_id = self.store.selected_start_id, self.store.selected_end_id
        _raise_if(
            validate_scenario(
                scenario.name,
                start_id,
                end_id,
                self.store.scenarios,
                self.store.positions,
                exclude_id=scenario.id,
            )
        )
        updated = scenario.model_copy(
            update={'start_position_id': start_id, 'end_position_id': end_id}
        )
        saved = await self._persist('save scenario', self.persistence.scenarios.save(updated))
        self.store.upsert_scenario(saved)
        self.tracker.check()
        return saved

    async def delete_scenario(self, scenario_id: str) -> None:
        """Delete a scenario and prune it from every sequence."""
        self.store.get_scenario(scenario_id)
        for sequence in self.store.sequences:
            pruned = prune_sequence(sequence, set(), {scenario_id})
            if pruned is not sequence:
                await self._persist('delete scenario', self.persistence.sequences.save(pruned))
        await self._persist('delete scenario', self.persistence.scenarios.delete(scenario_id))

        self.store.remove_scenario(scenario_id)
        if self._is_loaded('scenario', scenario_id):
            self.clear_scenario()
        self._refresh_loaded_sequence()

    def load_scenario(self, scenario_id: str) -> Signal:
        """
        Fill the drop zones from a saved scenario and show its start position.

        Raises:
            ReferenceNotFound: If the scenario or one of its positions is missing
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        scenario = self.store.get_scenario(scenario_id)
        self.store.get_position(scenario.start_position_id)
        self.store.get_position(scenario.end_position_id)

        with self.store.batched_changes():
            self.store.select_drop_zones(scenario.start_position_id, scenario.end_position_id)
            signal = self.playback.load_steps(scenario_steps(scenario))
            self.store.set_loaded_item(
                LoadedItem(type='scenario', id=scenario.id, name=scenario.name)
            )
        return signal

    async def play_scenario(self, scenario_id: str) -> Signal:
        return await self.playback.play_scenario(scenario_id)

    # ==================== Sequences ====================

    async def create_sequence(self, name: str) -> Sequence:
        _raise_if(validate_sequence_name(name, self.store.sequences))
        sequence = Sequence(id=generate_id('sequence'), name=name.strip())
        saved = await self._persist('create sequence', self.persistence.sequences.save(sequence))
        self.store.upsert_sequence(saved)
        return saved

    async def rename_sequence(self, sequence_id: str, name: str) -> Sequence:
        sequence = self.store.get_sequence(sequence_id)
        _raise_if(validate_sequence_name(name, self.store.sequences, exclude_id=sequence_id))
        updated = sequence.model_copy(update={'name': name.strip()})
        saved = await self._persist('rename sequence', self.persistence.sequences.save(updated))
        self.store.upsert_sequence(saved)
        if self._is_loaded('sequence', sequence_id):
            self.store.set_loaded_item(LoadedItem(type='sequence', id=saved.id, name=saved.name))
        return saved

    async def delete_sequence(self, sequence_id: str) -> None:
        self.store.get_sequence(sequence_id)
        await self._persist('delete sequence', self.persistence.sequences.delete(sequence_id))
        self.store.remove_sequence(sequence_id)
        if self._is_loaded('sequence', sequence_id):
            self.playback.unload()
            self.store.set_loaded_item(None)

    def load_sequence(self, sequence_id: str) -> Signal:
        """
        Flatten a sequence and show its first step.

        Returns:
            Signal.EMPTY_SEQUENCE if nothing in it resolves (still loaded)
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        sequence = self.store.get_sequence(sequence_id)
        with self.store.batched_changes():
            signal = self.playback.load(sequence)
            self.store.set_loaded_item(
                LoadedItem(type='sequence', id=sequence.id, name=sequence.name)
            )
        return signal

    async def add_item_to_sequence(self, sequence_id: str, item_type: str, item_id: str) -> Sequence:
        """Append a position or scenario to a sequence's timeline (repeats allowed)."""
        sequence = self.store.get_sequence(sequence_id)
        try:
            kind = ItemType(item_type)
        except ValueError as e:
            raise ValidationError([f'Unknown sequence item type: {item_type}']) from e
        if kind is ItemType.POSITION:
            self.store.get_position(item_id)
        elif kind is ItemType.SCENARIO:
            self.store.get_scenario(item_id)
        else:
            raise ValidationError(['Sequences can only contain positions and scenarios'])

        updated = sequence.model_copy(
            update={'items': [*sequence.items, SequenceItem(type=kind.value, id=item_id)]}
        )
        saved = await self._persist('add sequence item', self.persistence.sequences.save(updated))
        self.store.upsert_sequence(saved)
        self._refresh_loaded_sequence()
        return saved

    async def remove_item_from_sequence(self, sequence_id: str, index: int) -> Sequence:
        """Remove the timeline item at ``index`` (by position, never by id)."""
        sequence = self.store.get_sequence(sequence_id)
        if not 0 <= index < len(sequence.items):
            raise IndexError(f'Sequence item {index} out of range for {len(sequence.items)} items')
        items = [item for i, item in enumerate(sequence.items) if i != index]
        updated = sequence.model_copy(update={'items': items})
        saved = await self._persist('remove sequence item', self.persistence.sequences.save(updated))
        self.store.upsert_sequence(saved)
        self._refresh_loaded_sequence()
        return saved

    async def reorder_sequence_items(
        self, sequence_id: str, from_index: int, target_index: int, place_after: bool
    ) -> Signal:
        signal = await self.reorder.reorder_sequence_items(
            sequence_id, from_index, target_index, place_after
        )
        if signal is Signal.OK:
            self._refresh_loaded_sequence()
        return signal

    def _refresh_loaded_sequence(self) -> None:
        """Re-flatten the loaded sequence after its items (or their targets) changed."""
        loaded = self.store.loaded_item
        if loaded is None or loaded.type != 'sequence' or self._busy():
            return
        sequence = self.store.find_sequence(loaded.id)
        if sequence is not None:
            self.playback.load(sequence)

    # ==================== Lists ====================

    def reorder_collection(
        self, kind: str, from_index: int, target_index: int, place_after: bool
    ) -> Signal:
        return self.reorder.reorder_collection(kind, from_index, target_index, place_after)

    def search(self, kind: str, search: str = '', tags: Iterable[str] = ()) -> list:
        """Filter players, positions, scenarios or sequences by name and tags."""
        if kind not in ('players', 'positions', 'scenarios', 'sequences'):
            raise ValueError(f'Unknown collection: {kind}')
        return filter_items(getattr(self.store, kind), search, tags)

    def tags(self) -> list[str]:
        return all_tags(self.store.positions, self.store.scenarios)

    # ==================== Court ====================

    def drop_token(self, player_id: str, x: float, y: float) -> Signal:
        """
        Drop a player's token at logical (x, y).

        Off-court drops take the token off the court; on-court drops are clamped.
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        config = self.store.config
        outcome = classify_drop(x, y, config.court_size, config.token_size, config.net_offset)
        if outcome.remove:
            self.store.remove_token(player_id)
        else:
            self.store.place_token(player_id, outcome.coordinate.x, outcome.coordinate.y)
        return Signal.OK

    def drop_token_at_client(
        self,
        player_id: str,
        relative_x: float,
        relative_y: float,
        rendered_width: float,
        rendered_height: float,
    ) -> Signal:
        """Drop at a pointer position on a rendered (possibly rotated) court."""
        x, y = client_to_court(
            relative_x,
            relative_y,
            rendered_width,
            rendered_height,
            self.store.rotation,
            self.store.config.court_size,
        )
        return self.drop_token(player_id, x, y)

    def remove_token(self, player_id: str) -> Signal:
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        self.store.remove_token(player_id)
        return Signal.OK

    def rotate_view(self, rotation: int) -> None:
        self.store.set_rotation(rotation)

    # ==================== Session ====================

    def discard_changes(self) -> Signal:
        """Reload the loaded item from its saved state."""
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        loaded = self.store.loaded_item
        if loaded is None:
            return Signal.OK
        if loaded.id is None:
            self.clear_scenario()
            return Signal.OK
        self.restore_loaded_item(loaded)
        return Signal.OK

    def restore_loaded_item(self, pointer: Optional[LoadedItem]) -> bool:
        """
        Reload a previously active item, if it still exists.

        Returns:
            True if the item was reloaded, False if it was cleared instead
        """
        if pointer is None or pointer.id is None:
            self.store.set_loaded_item(None)
            return False

        try:
            if pointer.type == 'position':
                signal = self.load_position(pointer.id)
            elif pointer.type == 'scenario':
                signal = self.load_scenario(pointer.id)
            else:
                signal = self.load_sequence(pointer.id)
        except ReferenceNotFound as e:
            logger.warning(f'Could not restore {pointer.type} "{pointer.name}": {e}')
            self.store.set_loaded_item(None)
            return False
        return signal is not Signal.CONCURRENT_OPERATION_REJECTED
