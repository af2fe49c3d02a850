"""Pure predicates over player state."""
from __future__ import annotations

from typing import List, Sequence

from eshara.domain.defs import BranchConditionDef, BranchDef, StoryChoiceDef, StoryNodeDef
from eshara.domain.state import PlayerState


def evaluate_condition(condition: BranchConditionDef, state: PlayerState) -> bool:
    """Return True when every requirement in ``condition`` holds.

    A default condition always holds. Missing requirements are vacuously
    true; stats nobody has set read as the neutral value.
    """
    if condition.default:
        return True
    if any(not state.has_flag(flag) for flag in condition.flags):
        return False
    if any(state.has_flag(flag) for flag in condition.flags_absent):
        return False
    for name, minimum in condition.min_stats.items():
        if state.get_stat(name) < minimum:
            return False
    for name, maximum in condition.max_stats.items():
        if state.get_stat(name) > maximum:
            return False
    return True


def select_branch(branches: Sequence[BranchDef], state: PlayerState) -> BranchDef | None:
    """Return the first branch whose condition holds, in declaration order."""
    for branch in branches:
        if evaluate_condition(branch.condition, state):
            return branch
    return None


def available_choices(node: StoryNodeDef, state: PlayerState) -> List[StoryChoiceDef]:
    return [
        choice
        for choice in node.choices
        if choice.condition is None or evaluate_condition(choice.condition, state)
    ]
