"""Validation functions for players, formations and whole data bundles."""

from collections import Counter
from typing import Any, Iterable, Optional

from .constants import COURT_SIZE, NET_OFFSET, TOKEN_SIZE
from .coordinates import in_bounds, is_on_court
from .schemas import CurrentBundle, Player, Position, Scenario, Sequence


def _duplicates(values: Iterable[str]) -> list[str]:
    counts = Counter(values)
    return sorted(value for value, count in counts.items() if count > 1)


def _name_taken(items: Iterable[Any], name: str, exclude_id: Optional[str]) -> bool:
    needle = name.strip().lower()
    return any(item.name.strip().lower() == needle and item.id != exclude_id for item in items)


def validate_player(
    jersey: str, name: str, players: list[Player], exclude_id: Optional[str] = None
) -> list[str]:
    """
    Validate a player about to be added or edited.

    Checks:
    - Jersey number and name both present
    - Jersey number not used by any other player

    Args:
        jersey: Jersey number as entered
        name: Player name as entered
        players: Current roster
        exclude_id: Id of the player being edited (its own jersey is fine)

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not jersey.strip() or not name.strip():
        errors.append('Please enter both jersey number and name')
        return errors

    if any(p.jersey == jersey.strip() and p.id != exclude_id for p in players):
        errors.append(f'A player with jersey number {jersey.strip()} already exists')

    return errors


def validate_position_name(
    name: str, positions: list[Position], exclude_id: Optional[str] = None
) -> list[str]:
    """Position names must be present and unique."""
    if not name.strip():
        return ['Position name cannot be empty']
    if _name_taken(positions, name, exclude_id):
        return [f'A position named "{name.strip()}" already exists']
    return []


def validate_scenario(
    name: str,
    start_id: Optional[str],
    end_id: Optional[str],
    scenarios: list[Scenario],
    positions: list[Position],
    exclude_id: Optional[str] = None,
) -> list[str]:
    """
    Validate a scenario assembled from the two drop zones.

    Checks:
    - Name present and unique among scenarios
    - Both start and end positions selected, existing, and different

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not name.strip():
        errors.append('Please enter a scenario name')
    elif _name_taken(scenarios, name, exclude_id):
        errors.append('A scenario with this name already exists')

    if not start_id or not end_id:
        errors.append('Please select both start and end positions')
        return errors

    if start_id == end_id:
        errors.append('Start and end positions must be different')

    known = {p.id for p in positions}
    for label, position_id in (('Start', start_id), ('End', end_id)):
        if position_id not in known:
            errors.append(f'{label} position not found: {position_id}')

    return errors


def validate_sequence_name(
    name: str, sequences: list[Sequence], exclude_id: Optional[str] = None
) -> list[str]:
    if not name.strip():
        return ['Please enter a sequence name']
    if _name_taken(sequences, name, exclude_id):
        return ['A sequence with this name already exists']
    return []


def validate_raw_placements(
    raw: Any,
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
    net_offset: int = NET_OFFSET,
) -> list[str]:
    """
    Report placements outside the token bounds in an unparsed document.

    Parsing clamps coordinates silently, so this looks at the raw JSON.
    Handles both the current (``positions``) and legacy (``savedPositions``)
    layouts.

    Returns:
        List of warning messages
    """
    warnings: list[str] = []
    if not isinstance(raw, dict):
        return warnings

    groups: list[tuple[str, list]] = []
    for position in raw.get('positions') or []:
        if isinstance(position, dict):
            groups.append((str(position.get('name', '?')), position.get('playerPositions') or []))
    saved = raw.get('savedPositions')
    if isinstance(saved, dict):
        groups.extend((str(name), placements or []) for name, placements in saved.items())

    for position_name, placements in groups:
        for placement in placements:
            if not isinstance(placement, dict):
                continue
            x, y = placement.get('x'), placement.get('y')
            if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
                continue
            if not in_bounds(x, y, court_size, token_size, net_offset):
                where = 'off court' if not is_on_court(x, y, court_size) else 'outside bounds'
                warnings.append(
                    f'Position "{position_name}": player {placement.get("playerId")} '
                    f'at ({x}, {y}) is {where}'
                )
    return warnings


def validate_bundle(bundle: CurrentBundle) -> tuple[list[str], list[str]]:
    """
    Validate a complete data bundle before import.

    Returns:
        Tuple of (errors, warnings)
        - errors: Broken invariants (duplicate jerseys/names, scenarios whose
          positions are missing or identical)
        - warnings: Stale references that load tolerates (placements of
          deleted players, sequence items that no longer resolve)
    """
    errors: list[str] = []
    warnings: list[str] = []

    for jersey in _duplicates(p.jersey for p in bundle.players):
        errors.append(f'Duplicate jersey number: {jersey}')
    for name in _duplicates(p.name.strip().lower() for p in bundle.positions):
        errors.append(f'Duplicate position name: {name}')
    for name in _duplicates(s.name.strip().lower() for s in bundle.scenarios):
        errors.append(f'Duplicate scenario name: {name}')
    for entity_id in _duplicates(
        e.id for e in [*bundle.players, *bundle.positions, *bundle.scenarios, *bundle.sequences]
    ):
        errors.append(f'Duplicate id: {entity_id}')

    player_ids = {p.id for p in bundle.players}
    position_ids = {p.id for p in bundle.positions}
    scenario_ids = {s.id for s in bundle.scenarios}

    for position in bundle.positions:
        for placement in position.player_positions:
            if placement.player_id not in player_ids:
                warnings.append(
                    f'Position "{position.name}" places unknown player {placement.player_id}'
                )

    for scenario in bundle.scenarios:
        for label, position_id in (
            ('start', scenario.start_position_id),
            ('end', scenario.end_position_id),
        ):
            if position_id not in position_ids:
                errors.append(
                    f'Scenario "{scenario.name}" {label} position not found: {position_id}'
                )

    for sequence in bundle.sequences:
        for index, item in enumerate(sequence.items):
            known = position_ids if item.type == 'position' else scenario_ids
            if item.id not in known:
                warnings.append(
                    f'Sequence "{sequence.name}" item {index}: {item.type} {item.id} not found'
                )

    return errors, warnings
