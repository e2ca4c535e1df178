"""One-way conversion of legacy (v3.0) documents to the current (v4.0) shape.

A v3.0 document stores ``savedPositions``: a mapping of position name to a
list of placements. v4.0 stores positions, scenarios and sequences as lists
of entities with ids. Which shape a document has is decided by its
``version`` tag, parsed into the ``Bundle`` union.
"""

import logging
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from .constants import CURRENT_VERSION, LEGACY_ROTATION_PATTERN, LEGACY_VERSION
from .schemas import Bundle, CurrentBundle, LegacyBundle, PlacedPlayer, Player, Position
from .utils import generate_id

logger = logging.getLogger('courtplay.migration')

_bundle_adapter = TypeAdapter(Bundle)


def parse_bundle(raw: Any) -> LegacyBundle | CurrentBundle:
    """
    Parse a raw JSON document into the tagged bundle union.

    A document without a ``version`` is tagged by shape once, here: a
    ``savedPositions`` mapping without a ``positions`` list is v3.0,
    anything else v4.0. Everything downstream dispatches on the type.

    Raises:
        ValueError: If the document matches neither version
    """
    if not isinstance(raw, dict):
        raise ValueError(f'Expected a JSON object, got {type(raw).__name__}')
    if 'version' not in raw:
        legacy = isinstance(raw.get('savedPositions'), dict) and 'positions' not in raw
        raw = {**raw, 'version': LEGACY_VERSION if legacy else CURRENT_VERSION}
        logger.debug(f'Untagged document treated as version {raw["version"]}')
    try:
        return _bundle_adapter.validate_python(raw)
    except ValidationError as e:
        raise ValueError(f'Invalid data document:\n{e}') from e


def _fill_placement(placement: PlacedPlayer, roster: dict[str, Player]) -> PlacedPlayer:
    player = roster.get(placement.player_id)
    if player is None:
        return placement
    return placement.model_copy(
        update={
            'jersey': placement.jersey or player.jersey,
            'name': placement.name or player.name,
        }
    )


def rotation_tag(position_name: str) -> str | None:
    """``'Rotation 3 - serve'`` -> ``'Rotation 3'``; None when there is no prefix."""
    match = LEGACY_ROTATION_PATTERN.match(position_name)
    return match.group(1) if match else None


def migrate(
    bundle: LegacyBundle | CurrentBundle,
    id_factory: Callable[[str], str] = generate_id,
) -> CurrentBundle:
    """
    Convert a bundle to the current shape.

    Current bundles are returned unchanged, so running the migration twice
    is a no-op. Each legacy saved position becomes a Position with a fresh
    id (in the mapping's order); names starting with ``Rotation <n>`` are
    tagged ``Rotation <n>``. Scenarios and sequences start out empty.

    Args:
        bundle: Parsed document
        id_factory: Called with ``'position'`` to mint each new id

    Returns:
        CurrentBundle
    """
    if isinstance(bundle, CurrentBundle):
        return bundle

    roster = {p.id: p for p in bundle.players}
    positions = []
    for name, placements in bundle.saved_positions.items():
        tag = rotation_tag(name)
        positions.append(
            Position(
                id=id_factory('position'),
                name=name,
                tags=[tag] if tag else [],
                player_positions=[_fill_placement(p, roster) for p in placements],
            )
        )

    rotations = {tag for p in positions for tag in p.tags}
    logger.info(
        f'Migrated v{LEGACY_VERSION} document: {len(positions)} positions, '
        f'{len(rotations)} rotation groups'
    )
    return CurrentBundle(players=list(bundle.players), positions=positions)


def migrate_document(raw: Any) -> CurrentBundle:
    """Parse and migrate a raw document in one step."""
    return migrate(parse_bundle(raw))
