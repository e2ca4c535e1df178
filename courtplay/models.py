"""Runtime data models for the formation core."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ItemType(str, Enum):
    POSITION = 'position'
    SCENARIO = 'scenario'
    SEQUENCE = 'sequence'


class StepRole(str, Enum):
    POSITION = 'position'
    SCENARIO_START = 'scenario-start'
    SCENARIO_END = 'scenario-end'


class PlaybackState(str, Enum):
    IDLE = 'idle'
    POSITIONED = 'positioned'
    ANIMATING = 'animating'


class Signal(str, Enum):
    """Non-exceptional outcomes reported back to the caller."""
    OK = 'ok'
    EMPTY_SEQUENCE = 'empty_sequence'
    SEQUENCE_COMPLETE = 'sequence_complete'
    AT_START = 'at_start'
    NOT_POSITIONED = 'not_positioned'
    CANCELLED = 'cancelled'
    CONCURRENT_OPERATION_REJECTED = 'concurrent_operation_rejected'


@dataclass(frozen=True)
class Coordinate:
    """A point in the logical 600x600 court space."""
    x: float
    y: float


@dataclass(frozen=True)
class DropOutcome:
    """Result of dropping a token: place it at ``coordinate`` or take it off the court."""
    remove: bool
    coordinate: Optional[Coordinate] = None


@dataclass(frozen=True)
class StepProvenance:
    item_index: int  # index into sequence.items
    role: StepRole
    scenario_id: Optional[str] = None


@dataclass(frozen=True)
class FormationStep:
    """One concrete position on a flattened timeline."""
    position_id: str
    provenance: StepProvenance


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view of the playback state machine."""
    state: PlaybackState
    index: int = -1
    from_index: Optional[int] = None
    to_index: Optional[int] = None
    length: int = 0
