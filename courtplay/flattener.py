"""Flatten a sequence into a linear timeline of formation steps."""

import logging
from typing import Iterable, Optional

from .models import FormationStep, StepProvenance, StepRole
from .schemas import Position, Scenario, Sequence

logger = logging.getLogger('courtplay.flattener')


def flatten(
    sequence: Sequence,
    scenarios: Iterable[Scenario],
    positions: Optional[Iterable[Position]] = None,
) -> list[FormationStep]:
    """
    Turn a sequence's items into concrete formation steps.

    A position item yields one step. A scenario item yields two steps (its
    start position, then its end position) sharing the item's index. Items
    whose scenario no longer exists contribute nothing. When ``positions`` is
    given, steps whose position no longer exists are skipped as well.

    The result depends only on the arguments, so equal inputs always produce
    equal timelines.

    Args:
        sequence: Sequence to flatten
        scenarios: Scenarios available for resolving scenario items
        positions: Optional positions used to drop steps with dangling ids

    Returns:
        Ordered list of FormationStep
    """
    scenario_map = {scenario.id: scenario for scenario in scenarios}
    known_positions = None if positions is None else {p.id for p in positions}

    steps: list[FormationStep] = []
    for item_index, item in enumerate(sequence.items):
        if item.type == 'scenario':
            scenario = scenario_map.get(item.id)
            if scenario is None:
                logger.warning(
                    f'Sequence "{sequence.name}" item {item_index}: scenario {item.id} not found, skipping'
                )
                continue
            candidates = scenario_steps(scenario, item_index)
        else:
            candidates = [
                FormationStep(item.id, StepProvenance(item_index, StepRole.POSITION))
            ]

        for step in candidates:
            if known_positions is not None and step.position_id not in known_positions:
                logger.warning(
                    f'Sequence "{sequence.name}" item {item_index}: '
                    f'position {step.position_id} not found, skipping'
                )
                continue
            steps.append(step)

    logger.debug(f'Flattened "{sequence.name}": {len(sequence.items)} items -> {len(steps)} steps')
    return steps


def scenario_steps(scenario: Scenario, item_index: int = 0) -> list[FormationStep]:
    """The two-step timeline (start, end) of a single scenario."""
    return [
        FormationStep(
            scenario.start_position_id,
            StepProvenance(item_index, StepRole.SCENARIO_START, scenario.id),
        ),
        FormationStep(
            scenario.end_position_id,
            StepProvenance(item_index, StepRole.SCENARIO_END, scenario.id),
        ),
    ]


def highlight(steps: list[FormationStep], index: int) -> Optional[tuple[int, StepRole]]:
    """Which timeline item (and which card of a scenario) the step at ``index`` belongs to."""
    if not 0 <= index < len(steps):
        return None
    provenance = steps[index].provenance
    return provenance.item_index, provenance.role
