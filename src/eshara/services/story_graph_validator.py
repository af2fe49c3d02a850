"""Static story graph validation utilities."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Mapping, MutableMapping, Sequence

from eshara.domain.defs import BranchConditionDef, EffectsDef, StoryGraph, StoryNodeDef


Severity = str


@dataclass(frozen=True, slots=True)
class Issue:
    severity: Severity
    code: str
    message: str
    context: dict[str, str]


def format_issue(issue: Issue) -> str:
    context = " ".join(f"{key}={value}" for key, value in issue.context.items())
    suffix = f" ({context})" if context else ""
    return f"[{issue.severity}] {issue.code}: {issue.message}{suffix}"


def errors_only(issues: Iterable[Issue]) -> list[Issue]:
    return [issue for issue in issues if issue.severity == "ERROR"]


def validate_graph(graph: StoryGraph, *, error_on_autoadvance_cycle: bool = True) -> list[Issue]:
    """Validate a loaded graph using its own metadata for roots and stats."""
    return validate_story_graph(
        graph.nodes,
        graph.start_node_id,
        override_targets=graph.override_targets(),
        declared_stats=graph.metadata.stats.keys(),
        endings=graph.endings.keys(),
        global_override_condition=(
            graph.global_override.condition if graph.global_override is not None else None
        ),
        error_on_autoadvance_cycle=error_on_autoadvance_cycle,
    )


def validate_story_graph(
    story_nodes: Mapping[str, StoryNodeDef],
    start_node_id: str,
    *,
    override_targets: Sequence[str] = (),
    declared_stats: Iterable[str] | None = None,
    endings: Iterable[str] | None = None,
    global_override_condition: BranchConditionDef | None = None,
    error_on_autoadvance_cycle: bool = True,
) -> list[Issue]:
    """Return every integrity problem found in ``story_nodes``.

    A missing start node is reported alone: nothing else can be checked
    meaningfully without a root.
    """
    issues: list[Issue] = []
    node_ids = set(story_nodes.keys())
    if start_node_id not in node_ids:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_START_NODE",
                message="Start node does not exist.",
                context={"referenced_id": start_node_id},
            )
        )
        return issues

    for target in override_targets:
        if target not in node_ids:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="MISSING_OVERRIDE_TARGET",
                    message="Override or entry point references missing node.",
                    context={"referenced_id": target},
                )
            )

    for node in story_nodes.values():
        _validate_node_references(node, node_ids, issues)
        _validate_way_forward(node, issues)
        _validate_branch_defaults(node, issues)

    _validate_reachability(story_nodes, start_node_id, override_targets, issues)
    _validate_has_endings(story_nodes, issues)
    _validate_auto_advance_cycles(
        story_nodes, issues, error_on_autoadvance_cycle=error_on_autoadvance_cycle
    )
    if declared_stats is not None:
        _warn_on_unknown_stats(story_nodes, set(declared_stats), global_override_condition, issues)
    if endings is not None:
        _warn_on_missing_ending_info(story_nodes, set(endings), issues)
    return issues


def _validate_node_references(node: StoryNodeDef, node_ids: set[str], issues: list[Issue]) -> None:
    if node.next_node_id and node.next_node_id not in node_ids:
        issues.append(
            Issue(
                severity="ERROR",
                code="MISSING_NODE_REF",
                message="Node references missing next node.",
                context={
                    "node_id": node.id,
                    "field_path": "next_node",
                    "referenced_id": node.next_node_id,
                },
            )
        )
    for index, choice in enumerate(node.choices):
        if choice.next_node_id not in node_ids:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="MISSING_NODE_REF",
                    message="Choice references missing node.",
                    context={
                        "node_id": node.id,
                        "field_path": f"choices[{index}].next_node",
                        "referenced_id": choice.next_node_id,
                    },
                )
            )
    for index, branch in enumerate(node.branches):
        if branch.next_node_id not in node_ids:
            issues.append(
                Issue(
                    severity="ERROR",
                    code="MISSING_NODE_REF",
                    message="Branch references missing node.",
                    context={
                        "node_id": node.id,
                        "field_path": f"branches[{index}].next_node",
                        "referenced_id": branch.next_node_id,
                    },
                )
            )


def _validate_way_forward(node: StoryNodeDef, issues: list[Issue]) -> None:
    if not node.has_way_forward:
        issues.append(
            Issue(
                severity="ERROR",
                code="DEAD_END_NODE",
                message="Node has no choices, next node, branches or ending.",
                context={"node_id": node.id},
            )
        )
        return
    if node.delay is not None and node.ending is None and not node.choices and not node.next_node_id:
        issues.append(
            Issue(
                severity="ERROR",
                code="DELAY_WITHOUT_TARGET",
                message="Delay node needs a choice or next node to resume into.",
                context={"node_id": node.id},
            )
        )


def _validate_branch_defaults(node: StoryNodeDef, issues: list[Issue]) -> None:
    if not node.branches:
        return
    default_indexes = [index for index, branch in enumerate(node.branches) if branch.condition.default]
    if not default_indexes:
        issues.append(
            Issue(
                severity="ERROR",
                code="BRANCH_WITHOUT_DEFAULT",
                message="Branch list has no default branch.",
                context={"node_id": node.id},
            )
        )
        return
    if default_indexes[0] != len(node.branches) - 1:
        issues.append(
            Issue(
                severity="WARN",
                code="DEFAULT_BRANCH_NOT_LAST",
                message="Branches after the default branch can never be taken.",
                context={"node_id": node.id, "field_path": f"branches[{default_indexes[0]}]"},
            )
        )


def _validate_reachability(
    story_nodes: Mapping[str, StoryNodeDef],
    start_node_id: str,
    override_targets: Sequence[str],
    issues: list[Issue],
) -> None:
    node_ids = set(story_nodes.keys())
    # Override targets count as visited but are not expanded.
    reachable: set[str] = {target for target in override_targets if target in node_ids}
    queue: deque[str] = deque([start_node_id])
    reachable.add(start_node_id)
    while queue:
        node_id = queue.popleft()
        for next_id in story_nodes[node_id].outgoing_ids():
            if next_id in node_ids and next_id not in reachable:
                reachable.add(next_id)
                queue.append(next_id)
    for node_id in sorted(node_ids - reachable):
        issues.append(
            Issue(
                severity="ERROR",
                code="UNREACHABLE_NODE",
                message="Node is unreachable from the start node.",
                context={"node_id": node_id},
            )
        )


def _validate_has_endings(story_nodes: Mapping[str, StoryNodeDef], issues: list[Issue]) -> None:
    if any(node.ending for node in story_nodes.values()):
        return
    issues.append(
        Issue(
            severity="ERROR",
            code="NO_ENDINGS",
            message="Story graph has no ending nodes.",
            context={},
        )
    )


def _validate_auto_advance_cycles(
    story_nodes: Mapping[str, StoryNodeDef],
    issues: list[Issue],
    *,
    error_on_autoadvance_cycle: bool,
) -> None:
    candidate_ids = {
        node_id
        for node_id, node in story_nodes.items()
        if node.next_node_id
        and not node.choices
        and not node.branches
        and node.delay is None
        and node.ending is None
    }
    adjacency: MutableMapping[str, str] = {}
    for node_id in candidate_ids:
        next_node_id = story_nodes[node_id].next_node_id
        if next_node_id in candidate_ids:
            adjacency[node_id] = next_node_id

    visited: set[str] = set()
    stack: list[str] = []
    stack_set: set[str] = set()
    cycles: list[list[str]] = []

    def dfs(current: str) -> None:
        visited.add(current)
        stack.append(current)
        stack_set.add(current)
        next_node = adjacency.get(current)
        if next_node:
            if next_node not in visited:
                dfs(next_node)
            elif next_node in stack_set:
                cycle = stack[stack.index(next_node) :]
                cycles.append(cycle)
        stack.pop()
        stack_set.remove(current)

    for node_id in sorted(candidate_ids):
        if node_id not in visited:
            dfs(node_id)

    if not cycles:
        return
    severity = "ERROR" if error_on_autoadvance_cycle else "WARN"
    for cycle in cycles:
        cycle_path = " -> ".join(cycle + [cycle[0]])
        issues.append(
            Issue(
                severity=severity,
                code="AUTOADVANCE_CYCLE",
                message="Auto-advance cycle detected.",
                context={"cycle": cycle_path},
            )
        )


def _warn_on_unknown_stats(
    story_nodes: Mapping[str, StoryNodeDef],
    declared_stats: set[str],
    override_condition: BranchConditionDef | None,
    issues: list[Issue],
) -> None:
    def check(names: Iterable[str], node_id: str, field_path: str) -> None:
        for name in sorted(set(names) - declared_stats):
            issues.append(
                Issue(
                    severity="WARN",
                    code="UNKNOWN_STAT",
                    message="Stat is not declared in metadata and uses default bounds.",
                    context={"node_id": node_id, "field_path": field_path, "stat": name},
                )
            )

    def effect_stats(effects: EffectsDef | None) -> Iterable[str]:
        return effects.stats.keys() if effects is not None else ()

    for node in story_nodes.values():
        check(effect_stats(node.on_enter), node.id, "on_enter")
        for index, choice in enumerate(node.choices):
            check(effect_stats(choice.effects), node.id, f"choices[{index}].effects")
            if choice.condition is not None:
                check(choice.condition.referenced_stats(), node.id, f"choices[{index}].conditions")
        for index, branch in enumerate(node.branches):
            check(branch.condition.referenced_stats(), node.id, f"branches[{index}].condition")
    if override_condition is not None:
        check(override_condition.referenced_stats(), "global_override", "condition")


def _warn_on_missing_ending_info(
    story_nodes: Mapping[str, StoryNodeDef], endings: set[str], issues: list[Issue]
) -> None:
    for node in story_nodes.values():
        if node.ending and node.ending not in endings:
            issues.append(
                Issue(
                    severity="WARN",
                    code="MISSING_ENDING_INFO",
                    message="Ending key has no title or description.",
                    context={"node_id": node.id, "ending": node.ending},
                )
            )
