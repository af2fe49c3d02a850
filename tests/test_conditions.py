from eshara.domain.conditions import available_choices, evaluate_condition, select_branch
from eshara.domain.defs import (
    BranchConditionDef,
    BranchDef,
    LocalizedText,
    StoryChoiceDef,
    StoryNodeDef,
)
from eshara.domain.state import PlayerState
from eshara.domain.stats import Stats


def _state(**stats: int) -> PlayerState:
    return PlayerState(current_node="start", stats=Stats.from_dict(stats))


def test_default_condition_always_holds() -> None:
    state = _state()
    condition = BranchConditionDef(flags=("missing",), min_stats={"trust": 99}, default=True)
    assert evaluate_condition(condition, state)


def test_empty_condition_is_vacuously_true() -> None:
    assert evaluate_condition(BranchConditionDef(), _state())


def test_all_flags_must_be_present() -> None:
    state = _state()
    state.set_flag("a")
    condition = BranchConditionDef(flags=("a", "b"))
    assert not evaluate_condition(condition, state)
    state.set_flag("b")
    assert evaluate_condition(condition, state)


def test_absent_flags_must_be_missing() -> None:
    state = _state()
    condition = BranchConditionDef(flags_absent=("betrayed",))
    assert evaluate_condition(condition, state)
    state.set_flag("betrayed")
    assert not evaluate_condition(condition, state)


def test_stat_bounds_are_inclusive() -> None:
    state = _state(trust=4)
    assert evaluate_condition(BranchConditionDef(min_stats={"trust": 4}), state)
    assert evaluate_condition(BranchConditionDef(max_stats={"trust": 4}), state)
    assert not evaluate_condition(BranchConditionDef(min_stats={"trust": 5}), state)
    assert not evaluate_condition(BranchConditionDef(max_stats={"trust": 3}), state)


def test_unknown_stat_reads_as_neutral_zero() -> None:
    state = _state()
    assert evaluate_condition(BranchConditionDef(max_stats={"courage": 0}), state)
    assert not evaluate_condition(BranchConditionDef(min_stats={"courage": 1}), state)


def test_select_branch_takes_first_match_in_order() -> None:
    state = _state(trust=5)
    branches = (
        BranchDef(condition=BranchConditionDef(min_stats={"trust": 8}), next_node_id="a"),
        BranchDef(condition=BranchConditionDef(min_stats={"trust": 5}), next_node_id="b"),
        BranchDef(condition=BranchConditionDef(default=True), next_node_id="c"),
    )
    assert select_branch(branches, state).next_node_id == "b"


def test_select_branch_returns_none_without_match() -> None:
    branches = (BranchDef(condition=BranchConditionDef(flags=("x",)), next_node_id="a"),)
    assert select_branch(branches, _state()) is None


def test_available_choices_filters_and_keeps_order() -> None:
    state = _state()
    state.set_flag("key")
    node = StoryNodeDef(
        id="door",
        choices=(
            StoryChoiceDef(label=LocalizedText("Knock"), next_node_id="a"),
            StoryChoiceDef(
                label=LocalizedText("Pick the lock"),
                next_node_id="b",
                condition=BranchConditionDef(flags=("lockpick",)),
            ),
            StoryChoiceDef(
                label=LocalizedText("Use the key"),
                next_node_id="c",
                condition=BranchConditionDef(flags=("key",)),
            ),
        ),
    )
    labels = [choice.label.en for choice in available_choices(node, state)]
    assert labels == ["Knock", "Use the key"]
