"""Tests for the playback state machine and token tweens."""

import asyncio

import pytest

from courtplay.errors import ReferenceNotFound, ValidationError
from courtplay.models import Coordinate, PlaybackState, Signal
from courtplay.playback import PlaybackController
from courtplay.schemas import Sequence, SequenceItem
from courtplay.tween import Tween, TweenJoin, ease_in_out, linear


def _court(position):
    return {p.player_id: Coordinate(p.x, p.y) for p in position.player_positions}


def _positions_sequence(*position_ids):
    return Sequence(
        id='seq_positions',
        name='Positions',
        items=[SequenceItem(type='position', id=pid) for pid in position_ids],
    )


@pytest.fixture
def controller(store):
    return PlaybackController(store)


class TestLoad:
    """Tests for loading a timeline."""

    def test_load_shows_first_step_instantly(self, controller, store, sequence, base):
        assert controller.load(sequence) is Signal.OK
        assert controller.state is PlaybackState.POSITIONED
        assert controller.index == 0
        assert store.live_court == _court(base)

    def test_load_empty_sequence(self, controller):
        """Test an empty sequence stays idle and says so."""
        empty = Sequence(id='seq_empty', name='Empty')
        assert controller.load(empty) is Signal.EMPTY_SEQUENCE
        assert controller.state is PlaybackState.IDLE
        assert controller.index == -1

    def test_load_skips_missing_scenario(self, controller, store):
        sequence = Sequence(
            id='seq_x',
            name='X',
            items=[
                SequenceItem(type='scenario', id='gone'),
                SequenceItem(type='position', id='pos_stack'),
            ],
        )
        assert controller.load(sequence) is Signal.OK
        assert len(controller.steps) == 1
        assert set(store.live_court) == {'p1', 'p3'}


class TestStepping:
    """Tests for moving forward and back through a timeline."""

    def test_end_to_end_visits_two_steps(self, controller, store, sequence, spread):
        """Test load then playNext twice reaches idle having visited exactly 2 steps."""
        visited = []
        controller.on_step_changed(
            lambda snapshot, step: visited.append(snapshot.index)
            if snapshot.state is PlaybackState.POSITIONED
            else None
        )

        async def run():
            controller.load(sequence)
            first = await controller.play_next()
            second = await controller.play_next()
            return first, second

        first, second = asyncio.run(run())

        assert first is Signal.OK
        assert second is Signal.SEQUENCE_COMPLETE
        assert controller.state is PlaybackState.IDLE
        assert visited == [0, 1]
        assert store.live_court == _court(spread)

    def test_play_next_while_animating_rejected(self, controller, store, sequence):
        """Test that a second playNext during a transition changes nothing."""
        async def run():
            controller.load(sequence)
            first = asyncio.create_task(controller.play_next())
            await asyncio.sleep(0)
            snapshot = controller.snapshot
            second = await controller.play_next()
            assert controller.snapshot == snapshot
            return snapshot, second, await first

        snapshot, second, first = asyncio.run(run())

        assert snapshot.state is PlaybackState.ANIMATING
        assert (snapshot.from_index, snapshot.to_index) == (0, 1)
        assert second is Signal.CONCURRENT_OPERATION_REJECTED
        assert first is Signal.OK
        assert controller.index == 1
        assert store.operation_in_flight is None

    def test_play_prev(self, controller, store, sequence, base):
        async def run():
            controller.load(sequence)
            at_start = await controller.play_prev()
            await controller.play_next()
            back = await controller.play_prev()
            return at_start, back

        at_start, back = asyncio.run(run())

        assert at_start is Signal.AT_START
        assert back is Signal.OK
        assert controller.index == 0
        assert store.live_court == _court(base)

    def test_play_next_when_idle(self, controller):
        assert asyncio.run(controller.play_next()) is Signal.NOT_POSITIONED

    def test_tokens_removed_and_added(self, controller, store, stack):
        """Test leaving tokens are removed and new ones appear at their target."""
        controller.load(_positions_sequence('pos_base', 'pos_stack'))

        assert asyncio.run(controller.play_next()) is Signal.OK
        assert store.live_court == _court(stack)

    def test_deleted_step_skipped(self, controller, store, spread):
        """Test that a position deleted after loading is skipped, not fatal."""
        controller.load(_positions_sequence('pos_base', 'pos_stack', 'pos_spread'))
        store.remove_position('pos_stack')

        assert asyncio.run(controller.play_next()) is Signal.OK
        assert controller.index == 2
        assert store.live_court == _court(spread)

    def test_token_removed_mid_flight_still_completes(self, controller, store):
        """Test that the join resolves when a tweening token disappears."""
        async def run():
            controller.load(_positions_sequence('pos_base', 'pos_spread'))
            task = asyncio.create_task(controller.play_next())
            await asyncio.sleep(0)
            store.remove_token('p1')
            return await asyncio.wait_for(task, timeout=1.0)

        assert asyncio.run(run()) is Signal.OK
        assert controller.state is PlaybackState.POSITIONED
        assert 'p1' not in store.live_court


class TestCancel:
    """Tests for aborting an in-flight transition."""

    def test_cancel_drops_to_idle(self, controller, store, sequence):
        async def run():
            controller.load(sequence)
            task = asyncio.create_task(controller.play_next())
            await asyncio.sleep(0)
            cancelled = controller.cancel()
            return cancelled, await task

        cancelled, result = asyncio.run(run())

        assert cancelled is Signal.CANCELLED
        assert result is Signal.CANCELLED
        assert controller.state is PlaybackState.IDLE
        assert store.operation_in_flight is None

    def test_cancelling_the_caller_task_returns_to_idle(self, controller, store, sequence):
        """A task running play_next that is cancelled from outside must not stay ANIMATING."""
        async def run():
            controller.load(sequence)
            task = asyncio.create_task(controller.play_next())
            await asyncio.sleep(0.005)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            after_cancel = (controller.state, store.operation_in_flight)
            retry = await controller.play_prev()
            controller.load(sequence)
            replay = await controller.play_next()
            return after_cancel, retry, replay

        after_cancel, retry, replay = asyncio.run(run())

        assert after_cancel == (PlaybackState.IDLE, None)
        assert retry is Signal.NOT_POSITIONED
        assert replay is Signal.OK
        assert controller.index == 1

    def test_cancel_when_not_animating(self, controller, sequence):
        controller.load(sequence)
        assert controller.cancel() is Signal.OK
        assert controller.state is PlaybackState.IDLE


class TestScenarioPlayback:
    """Tests for scenario and drop-zone animations."""

    def test_play_scenario(self, controller, store, spread):
        assert asyncio.run(controller.play_scenario('scen_bs')) is Signal.OK
        assert controller.index == 1
        assert store.loaded_item.id == 'scen_bs'
        assert (store.selected_start_id, store.selected_end_id) == ('pos_base', 'pos_spread')
        assert store.live_court == _court(spread)

    def test_play_missing_scenario(self, controller):
        with pytest.raises(ReferenceNotFound):
            asyncio.run(controller.play_scenario('gone'))

    def test_play_animation_needs_both_zones(self, controller, store):
        store.select_drop_zones('pos_base', None)
        with pytest.raises(ValidationError, match='select both'):
            asyncio.run(controller.play_animation())

    def test_play_animation(self, controller, store, stack):
        store.select_drop_zones('pos_spread', 'pos_stack')
        assert asyncio.run(controller.play_animation()) is Signal.OK
        assert store.live_court == _court(stack)

    def test_reset_to_start_position(self, controller, store, sequence, base):
        async def run():
            controller.load(sequence)
            await controller.play_next()
            store.place_token('p2', 0, 4)
            return await controller.reset_to_start_position()

        assert asyncio.run(run()) is Signal.OK
        assert controller.index == 0
        assert store.live_court == _court(base)

    def test_reset_without_timeline(self, controller):
        assert asyncio.run(controller.reset_to_start_position()) is Signal.NOT_POSITIONED

    def test_reset_uses_last_start_position(self, controller, store, base):
        controller.last_start_position_id = 'pos_base'
        store.place_token('p1', 500, 500)
        assert asyncio.run(controller.reset_to_start_position()) is Signal.OK
        assert store.live_court['p1'] == Coordinate(100, 100)


class TestTween:
    """Tests for individual tweens and the join."""

    def test_easing_endpoints(self):
        for easing in (linear, ease_in_out):
            assert easing(0.0) == 0.0
            assert easing(1.0) == 1.0
        assert ease_in_out(0.5) == 0.5

    def test_noop_tween_applies_end_once(self):
        frames = []

        def apply(player_id, x, y):
            frames.append((x, y))
            return True

        tween = Tween('p1', Coordinate(5, 5), Coordinate(5, 5), 1.0, apply)

        assert asyncio.run(tween.run()) is True
        assert frames == [(5, 5)]

    def test_tween_ends_exactly_at_target(self):
        frames = []

        def apply(player_id, x, y):
            frames.append((x, y))
            return True

        tween = Tween('p1', Coordinate(0, 0), Coordinate(100, 50), 0.02, apply, frame_interval=0.005)

        assert asyncio.run(tween.run()) is True
        assert frames[-1] == (100, 50)
        assert len(frames) > 1

    def test_stale_applier_stops_tween(self):
        tween = Tween('p1', Coordinate(0, 0), Coordinate(100, 0), 5.0, lambda *_: False)
        assert asyncio.run(asyncio.wait_for(tween.run(), timeout=1.0)) is False

    def test_join_waits_for_all(self):
        done = set()

        def apply(player_id, x, y):
            if (x, y) == (10, 10):
                done.add(player_id)
            return True

        tweens = [
            Tween(pid, Coordinate(0, 0), Coordinate(10, 10), 0.01 * (i + 1), apply, 0.002)
            for i, pid in enumerate(['a', 'b', 'c'])
        ]
        join = TweenJoin(tweens)

        assert asyncio.run(join.wait()) is True
        assert done == {'a', 'b', 'c'}
        assert join.done

    def test_empty_join(self):
        assert asyncio.run(TweenJoin([]).wait()) is True

    def test_cancelled_join_returns_false(self):
        async def run():
            join = TweenJoin(
                [Tween('a', Coordinate(0, 0), Coordinate(9, 9), 5.0, lambda *_: True)]
            )
            waiter = asyncio.create_task(join.wait())
            await asyncio.sleep(0)
            join.cancel()
            return await waiter, join.cancelled

        assert asyncio.run(run()) == (False, True)
