from .errors import CourtplayError, ValidationError, ReferenceNotFound, PersistenceFailure
from .models import (
    Coordinate,
    DropOutcome,
    FormationStep,
    ItemType,
    PlaybackSnapshot,
    PlaybackState,
    Signal,
    StepProvenance,
    StepRole,
)
from .schemas import (
    Bundle,
    CourtConfig,
    CurrentBundle,
    LegacyBundle,
    LoadedItem,
    PlacedPlayer,
    Player,
    Position,
    Scenario,
    Sequence,
    SequenceItem,
)
from .coordinates import (
    clamp,
    classify_drop,
    client_to_court,
    from_percent,
    rotate_point,
    to_percent,
    unrotate_point,
)
from .store import FormationStore
from .flattener import flatten, highlight, scenario_steps
from .playback import PlaybackController
from .tracker import ModificationTracker, is_dirty
from .reorder import ReorderEngine, drop_index, move_item, reorder
from .persistence import InMemoryPersistence, JsonFilePersistence, Persistence
from .migration import migrate, migrate_document, parse_bundle
from .editor import CourtEditor

__all__ = [
    # Errors
    'CourtplayError',
    'ValidationError',
    'ReferenceNotFound',
    'PersistenceFailure',
    # Runtime models
    'Coordinate',
    'DropOutcome',
    'FormationStep',
    'ItemType',
    'PlaybackSnapshot',
    'PlaybackState',
    'Signal',
    'StepProvenance',
    'StepRole',
    # Stored entities
    'Bundle',
    'CourtConfig',
    'CurrentBundle',
    'LegacyBundle',
    'LoadedItem',
    'PlacedPlayer',
    'Player',
    'Position',
    'Scenario',
    'Sequence',
    'SequenceItem',
    # Coordinates
    'clamp',
    'classify_drop',
    'client_to_court',
    'from_percent',
    'rotate_point',
    'to_percent',
    'unrotate_point',
    # Formation core
    'FormationStore',
    'flatten',
    'highlight',
    'scenario_steps',
    'PlaybackController',
    'ModificationTracker',
    'is_dirty',
    'ReorderEngine',
    'drop_index',
    'move_item',
    'reorder',
    # Storage
    'InMemoryPersistence',
    'JsonFilePersistence',
    'Persistence',
    'migrate',
    'migrate_document',
    'parse_bundle',
    # Editor
    'CourtEditor',
]
