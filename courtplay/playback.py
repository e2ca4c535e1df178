"""Playback state machine for walking a formation timeline.

States:
    IDLE        nothing is being shown (edit mode)
    POSITIONED  step ``index`` is on court and nothing is moving
    ANIMATING   tokens are tweening from ``from_index`` to ``to_index``

Only one transition may be in flight. Requests made while ANIMATING are
answered with ``Signal.CONCURRENT_OPERATION_REJECTED`` and change nothing.
"""

import asyncio
import logging
from typing import Callable, Optional

from .errors import ValidationError
from .flattener import flatten, scenario_steps
from .models import (
    Coordinate,
    FormationStep,
    PlaybackSnapshot,
    PlaybackState,
    Signal,
    StepProvenance,
    StepRole,
)
from .schemas import LoadedItem, PlacedPlayer, Position, Sequence
from .store import FormationStore
from .tween import Tween, TweenJoin

logger = logging.getLogger('courtplay.playback')

StepListener = Callable[[PlaybackSnapshot, Optional[FormationStep]], None]

OPERATION = 'playback'


class PlaybackController:
    """Drives the live court through a flattened timeline."""

    def __init__(self, store: FormationStore, duration: Optional[float] = None):
        self.store = store
        self.duration = store.config.animation_duration if duration is None else duration
        self.frame_interval = store.config.frame_interval

        self.steps: list[FormationStep] = []
        self.last_start_position_id: Optional[str] = None

        self._state = PlaybackState.IDLE
        self._index = -1
        self._from_index: Optional[int] = None
        self._to_index: Optional[int] = None
        self._join: Optional[TweenJoin] = None
        self._generation = 0
        self._listeners: list[StepListener] = []

    # ==================== State ====================

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_animating(self) -> bool:
        return self._state is PlaybackState.ANIMATING

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self._state,
            index=self._index,
            from_index=self._from_index,
            to_index=self._to_index,
            length=len(self.steps),
        )

    @property
    def current_step(self) -> Optional[FormationStep]:
        if 0 <= self._index < len(self.steps):
            return self.steps[self._index]
        return None

    def on_step_changed(self, listener: StepListener) -> None:
        """Register ``listener(snapshot, current_step)`` for every state change."""
        self._listeners.append(listener)

    def _enter(
        self,
        state: PlaybackState,
        index: int,
        from_index: Optional[int] = None,
        to_index: Optional[int] = None,
    ) -> None:
        self._state = state
        self._index = index
        self._from_index = from_index
        self._to_index = to_index
        logger.debug(f'Playback -> {state.value} index={index} from={from_index} to={to_index}')
        snapshot = self.snapshot
        step = self.current_step
        for listener in self._listeners:
            listener(snapshot, step)

    # ==================== Loading ====================

    def load(self, sequence: Sequence) -> Signal:
        """Flatten ``sequence`` and show its first step instantly."""
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        steps = flatten(sequence, self.store.scenarios, self.store.positions)
        return self.load_steps(steps)

    def load_steps(self, steps: list[FormationStep]) -> Signal:
        """Adopt an already flattened timeline and show step 0 with no animation."""
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        self.steps = list(steps)
        first = self._resolvable(-1, 1)
        if first is None:
            self.steps = []
            self._enter(PlaybackState.IDLE, -1)
            return Signal.EMPTY_SEQUENCE

        position = self.store.get_position(self.steps[first].position_id)
        self.store.load_position_onto_court(position)
        self.last_start_position_id = position.id
        self._enter(PlaybackState.POSITIONED, first)
        return Signal.OK

    def unload(self) -> None:
        """Forget the timeline and return to edit mode."""
        self.cancel()
        self.steps = []

    # ==================== Stepping ====================

    async def play_next(self) -> Signal:
        """
        Animate to the next step.

        At the last step this reports SEQUENCE_COMPLETE and returns to IDLE.
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        if self._state is not PlaybackState.POSITIONED:
            return Signal.NOT_POSITIONED

        target = self._resolvable(self._index, 1)
        if target is None:
            logger.info('Sequence complete')
            self._enter(PlaybackState.IDLE, -1)
            return Signal.SEQUENCE_COMPLETE
        return await self._transition(target)

    async def play_prev(self) -> Signal:
        """Animate back to the previous step; AT_START if there is none."""
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        if self._state is not PlaybackState.POSITIONED:
            return Signal.NOT_POSITIONED

        target = self._resolvable(self._index, -1)
        if target is None:
            return Signal.AT_START
        return await self._transition(target)

    async def play_scenario(self, scenario_id: str) -> Signal:
        """
        Load a scenario's start position instantly, then animate to its end.

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
            self.store.set_loaded_item(
                LoadedItem(type='scenario', id=scenario.id, name=scenario.name)
            )
            signal = self.load_steps(scenario_steps(scenario))
        if signal is not Signal.OK:
            return signal
        return await self._transition(1)

    async def play_animation(self) -> Signal:
        """
        Animate from the start drop zone's position to the end drop zone's.

        Raises:
            ValidationError: If either drop zone is empty
            ReferenceNotFound: If a selected position no longer exists
        """
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        start_id, end_id = self.store.selected_start_id, self.store.selected_end_id
        if not start_id or not end_id:
            raise ValidationError(['Please select both start and end positions'])
        self.store.get_position(start_id)
        self.store.get_position(end_id)

        scenario_id = None
        if self.store.loaded_item is not None and self.store.loaded_item.type == 'scenario':
            scenario_id = self.store.loaded_item.id
        steps = [
            FormationStep(start_id, StepProvenance(0, StepRole.SCENARIO_START, scenario_id)),
            FormationStep(end_id, StepProvenance(0, StepRole.SCENARIO_END, scenario_id)),
        ]
        return await self._play_pair(steps)

    async def reset_to_start_position(self) -> Signal:
        """Animate the court from wherever it is back to the timeline's first step."""
        if self._busy():
            return Signal.CONCURRENT_OPERATION_REJECTED
        if not self.steps and self.last_start_position_id:
            position = self.store.find_position(self.last_start_position_id)
            if position is not None:
                self.steps = [
                    FormationStep(position.id, StepProvenance(0, StepRole.POSITION))
                ]

        target = self._resolvable(-1, 1)
        if target is None:
            return Signal.NOT_POSITIONED
        return await self._transition(target)

    def cancel(self) -> Signal:
        """
        Abort any in-flight transition and drop to IDLE immediately.

        Tweens of the aborted transition stop writing to the court.
        """
        was_animating = self.is_animating
        self._generation += 1
        if self._join is not None:
            self._join.cancel()
            self._join = None
        self.store.end_operation(OPERATION)
        if self._state is not PlaybackState.IDLE:
            self._enter(PlaybackState.IDLE, -1)
        return Signal.CANCELLED if was_animating else Signal.OK

    # ==================== Internals ====================

    def _busy(self) -> bool:
        return self.is_animating or self.store.operation_in_flight is not None

    def _resolvable(self, index: int, direction: int) -> Optional[int]:
        """Next index in ``direction`` whose position still exists."""
        candidate = index + direction
        while 0 <= candidate < len(self.steps):
            if self.store.find_position(self.steps[candidate].position_id) is not None:
                return candidate
            logger.warning(
                f'Step {candidate}: position {self.steps[candidate].position_id} not found, skipping'
            )
            candidate += direction
        return None

    async def _play_pair(self, steps: list[FormationStep]) -> Signal:
        signal = self.load_steps(steps)
        if signal is not Signal.OK:
            return signal
        return await self._transition(1)

    async def _transition(self, to_index: int) -> Signal:
        position = self.store.get_position(self.steps[to_index].position_id)
        if not self.store.begin_operation(OPERATION):
            return Signal.CONCURRENT_OPERATION_REJECTED

        self._generation += 1
        generation = self._generation
        from_index = self._index
        self._enter(PlaybackState.ANIMATING, from_index, from_index, to_index)

        try:
            completed = await self._animate_to(position, generation)
        except asyncio.CancelledError:
            # The awaiting task was cancelled from outside; settle in IDLE
            if generation == self._generation:
                logger.info(f'Transition to step {to_index} cancelled by caller')
                self.cancel()
            raise
        finally:
            if generation == self._generation:
                self._join = None
                self.store.end_operation(OPERATION)

        if generation != self._generation:
            return Signal.CANCELLED
        if not completed:
            logger.warning(f'Transition to step {to_index} finished with interrupted tweens')
        self._enter(PlaybackState.POSITIONED, to_index)
        return Signal.OK

    async def _animate_to(self, position: Position, generation: int) -> bool:
        targets: dict[str, PlacedPlayer] = {
            p.player_id: p
            for p in position.player_positions
            if self.store.find_player(p.player_id) is not None
        }

        def apply(player_id: str, x: float, y: float) -> bool:
            if generation != self._generation or player_id not in self.store.live_court:
                return False
            self.store.place_token(player_id, x, y)
            return True

        tweens = []
        for player_id, current in list(self.store.live_court.items()):
            target = targets.get(player_id)
            if target is None:
                self.store.remove_token(player_id)
                continue
            end = Coordinate(target.x, target.y)
            duration = 0.0 if current == end else self.duration
            tweens.append(
                Tween(player_id, current, end, duration, apply, self.frame_interval)
            )

        for player_id, target in targets.items():
            if player_id not in self.store.live_court:
                self.store.place_token(player_id, target.x, target.y)

        self._join = TweenJoin(tweens)
        return await self._join.wait()
