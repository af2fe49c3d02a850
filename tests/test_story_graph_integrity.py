"""Checks on the story that ships with the package."""
from __future__ import annotations

from eshara.data.paths import get_definitions_path
from eshara.data.repositories import StoryRepository
from eshara.services.story_graph_validator import format_issue, validate_graph


def _bundled_repo() -> StoryRepository:
    return StoryRepository(base_path=get_definitions_path())


def test_bundled_story_has_no_issues() -> None:
    issues = validate_graph(_bundled_repo().graph())
    assert issues == [], "\n".join(format_issue(issue) for issue in issues)


def test_load_validated_graph_accepts_bundled_story() -> None:
    graph = _bundled_repo().load_validated_graph()
    assert graph.global_override is not None


def test_every_ending_is_used_and_described() -> None:
    graph = _bundled_repo().graph()
    used = {node.ending for node in graph.nodes.values() if node.ending}
    assert used == set(graph.endings)
    for ending in graph.endings.values():
        assert ending.title.get("fr") != ""
        assert ending.description.fr is not None


def test_every_message_is_translated() -> None:
    graph = _bundled_repo().graph()
    untranslated = [
        node.id
        for node in graph.nodes.values()
        for message in node.messages
        if message.fr is None
    ]
    assert untranslated == []
