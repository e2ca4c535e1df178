"""Shared fixtures: a small roster, three positions, one scenario, one sequence."""

import pytest

from courtplay.editor import CourtEditor
from courtplay.persistence import InMemoryPersistence
from courtplay.schemas import (
    CourtConfig,
    CurrentBundle,
    PlacedPlayer,
    Player,
    Position,
    Scenario,
    Sequence,
    SequenceItem,
)
from courtplay.store import FormationStore


@pytest.fixture
def config():
    """Court config with millisecond transitions."""
    return CourtConfig(animation_duration=0.02, frame_interval=0.005)


@pytest.fixture
def players():
    return [
        Player(id='p1', jersey='1', name='Alex'),
        Player(id='p2', jersey='2', name='Blair'),
        Player(id='p3', jersey='3', name='Casey'),
    ]


@pytest.fixture
def base():
    return Position(
        id='pos_base',
        name='Base',
        tags=['Rotation 1'],
        player_positions=[
            PlacedPlayer(player_id='p1', jersey='1', name='Alex', x=100, y=100),
            PlacedPlayer(player_id='p2', jersey='2', name='Blair', x=300, y=100),
        ],
    )


@pytest.fixture
def spread():
    return Position(
        id='pos_spread',
        name='Spread',
        player_positions=[
            PlacedPlayer(player_id='p1', jersey='1', name='Alex', x=50, y=400),
            PlacedPlayer(player_id='p2', jersey='2', name='Blair', x=450, y=400),
        ],
    )


@pytest.fixture
def stack():
    return Position(
        id='pos_stack',
        name='Stack',
        tags=['Serve'],
        player_positions=[
            PlacedPlayer(player_id='p1', jersey='1', name='Alex', x=200, y=200),
            PlacedPlayer(player_id='p3', jersey='3', name='Casey', x=250, y=250),
        ],
    )


@pytest.fixture
def scenario():
    return Scenario(
        id='scen_bs',
        name='Base→Spread',
        start_position_id='pos_base',
        end_position_id='pos_spread',
        tags=['Serve'],
    )


@pytest.fixture
def sequence():
    return Sequence(
        id='seq_play',
        name='Play',
        items=[SequenceItem(type='scenario', id='scen_bs')],
    )


@pytest.fixture
def bundle(players, base, spread, stack, scenario, sequence):
    return CurrentBundle(
        players=players,
        positions=[base, spread, stack],
        scenarios=[scenario],
        sequences=[sequence],
    )


@pytest.fixture
def store(config, bundle):
    store = FormationStore(config)
    store.replace_all(bundle)
    return store


@pytest.fixture
def persistence(bundle):
    return InMemoryPersistence(bundle)


@pytest.fixture
def editor(persistence, config, bundle):
    editor = CourtEditor(persistence, config=config)
    editor.store.replace_all(bundle)
    return editor
