"""Repository for the story graph."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from eshara.data import paths
from eshara.data.errors import DataValidationError, StoryGraphError
from eshara.data.repositories.base import RepositoryBase
from eshara.domain.defs import (
    BranchConditionDef,
    BranchDef,
    DelayDef,
    EffectsDef,
    EndingDef,
    GlobalOverrideDef,
    LocalizedText,
    StoryChoiceDef,
    StoryGraph,
    StoryMetadataDef,
    StoryNodeDef,
)
from eshara.domain.stats import NEUTRAL_STAT_VALUE, StatBounds

logger = logging.getLogger(__name__)

_DEFAULT_TITLE = LocalizedText(en="Eshara")
_DEFAULT_DELAY_MESSAGE = LocalizedText(
    en="The line goes quiet.",
    fr="La ligne devient silencieuse.",
)
_NODE_KEYS = {"messages", "choices", "next_node", "delay", "ending", "on_enter", "branches"}
_CHOICE_KEYS = {"label", "next_node", "effects", "conditions"}
_EFFECT_KEYS = {"stats", "set_flags", "unset_flags", "advance_day"}


class StoryRepository(RepositoryBase[StoryNodeDef]):
    """Loads the story graph, preferring an external override file.

    Lookup order: explicit ``story_path``, then ``$ESHARA_STORY`` or
    ``./data/story.json``, then the copy bundled with the package.
    """

    def __init__(
        self,
        base_path: Path | str | None = None,
        *,
        story_path: Path | str | None = None,
    ) -> None:
        if story_path is None and base_path is None:
            story_path = paths.get_story_override_path()
        super().__init__(paths.STORY_FILENAME, base_path, source_path=story_path)
        self._graph: StoryGraph | None = None
        self._validated = False

    @classmethod
    def from_document(cls, raw: Mapping[str, object]) -> "StoryRepository":
        """Build a repository from an in-memory document instead of a file."""
        repo = cls(base_path=Path("."))
        repo._definitions = repo._build(dict(raw))
        return repo

    def graph(self) -> StoryGraph:
        self._ensure_loaded()
        assert self._graph is not None
        return self._graph

    def load_validated_graph(self) -> StoryGraph:
        """Return the graph, raising StoryGraphError if integrity checks fail."""
        from eshara.services.story_graph_validator import errors_only, format_issue, validate_graph

        graph = self.graph()
        if self._validated:
            return graph
        issues = validate_graph(graph)
        for issue in issues:
            if issue.severity != "ERROR":
                logger.warning("Story graph: %s", format_issue(issue))
        if errors_only(issues):
            for issue in errors_only(issues):
                logger.error("Story graph: %s", format_issue(issue))
            raise StoryGraphError(issues)
        self._validated = True
        return graph

    def _build(self, raw: dict[str, object]) -> Dict[str, StoryNodeDef]:
        metadata = self._parse_metadata(raw.get("metadata"))
        raw_nodes = self._require_mapping(raw.get("nodes"), "story nodes")
        if not raw_nodes:
            raise DataValidationError("story nodes must not be empty.")
        problems: List[str] = []
        nodes: Dict[str, StoryNodeDef] = {}
        for node_id, node_payload in raw_nodes.items():
            if not isinstance(node_id, str):
                raise DataValidationError("Story node ids must be strings.")
            try:
                nodes[node_id] = self._parse_node(node_id, node_payload)
            except DataValidationError as exc:
                problems.append(str(exc))
        try:
            endings = self._parse_endings(raw.get("endings"))
        except DataValidationError as exc:
            problems.append(str(exc))
        try:
            global_override = self._parse_global_override(raw.get("global_override"))
        except DataValidationError as exc:
            problems.append(str(exc))
        if problems:
            raise DataValidationError(
                f"Story has {len(problems)} invalid definition(s):\n"
                + "\n".join(f"  - {problem}" for problem in problems)
            )

        self._graph = StoryGraph(
            metadata=metadata,
            nodes=nodes,
            endings=endings,
            flags=self._parse_flag_glossary(raw.get("flags")),
            global_override=global_override,
        )
        return nodes

    def _parse_metadata(self, raw_metadata: object) -> StoryMetadataDef:
        data = self._require_mapping(raw_metadata, "story metadata")
        title = _DEFAULT_TITLE
        if "title" in data:
            title = self._parse_text(data["title"], "story metadata title")
        start_node = self._require_str(data.get("start_node"), "story metadata start_node")
        stats: Dict[str, StatBounds] = {}
        raw_stats = data.get("stats")
        if raw_stats is not None:
            for name, entry in self._require_mapping(raw_stats, "story metadata stats").items():
                stats[name] = self._parse_stat_bounds(entry, f"story metadata stats.{name}")
        entry_points = tuple(self._str_list(data.get("entry_points"), "story metadata entry_points"))
        return StoryMetadataDef(title=title, start_node=start_node, stats=stats, entry_points=entry_points)

    def _parse_stat_bounds(self, raw: object, context: str) -> StatBounds:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return StatBounds(default=raw)
        data = self._require_mapping(raw, context)
        default = self._require_int(data.get("default", NEUTRAL_STAT_VALUE), f"{context}.default")
        minimum = self._require_int(data.get("min", 0), f"{context}.min")
        maximum = self._require_int(data.get("max", 10), f"{context}.max")
        if minimum > maximum:
            raise DataValidationError(f"{context} min must not exceed max.")
        return StatBounds(default=default, minimum=minimum, maximum=maximum)

    def _parse_node(self, node_id: str, node_payload: object) -> StoryNodeDef:
        context = f"story node '{node_id}'"
        node_data = self._require_mapping(node_payload, context)
        unknown = set(node_data) - _NODE_KEYS
        if unknown:
            raise DataValidationError(f"{context} has unknown keys: {', '.join(sorted(unknown))}.")
        messages = self._parse_messages(node_data.get("messages"), f"{context} messages")
        return StoryNodeDef(
            id=node_id,
            messages=messages,
            choices=self._parse_choices(node_data.get("choices"), context),
            next_node_id=self._optional_str(node_data.get("next_node"), f"{context} next_node"),
            delay=self._parse_delay(node_data.get("delay"), f"{context} delay"),
            ending=self._optional_str(node_data.get("ending"), f"{context} ending"),
            on_enter=self._parse_effects(node_data.get("on_enter"), f"{context} on_enter"),
            branches=self._parse_branches(node_data.get("branches"), context),
        )

    def _parse_messages(self, raw_messages: object, context: str) -> Tuple[LocalizedText, ...]:
        if raw_messages is None:
            return ()
        if not isinstance(raw_messages, list):
            raise DataValidationError(f"{context} must be a list if provided.")
        return tuple(
            self._parse_text(entry, f"{context}[{index}]") for index, entry in enumerate(raw_messages)
        )

    def _parse_text(self, raw: object, context: str) -> LocalizedText:
        if isinstance(raw, str):
            return LocalizedText(en=raw)
        data = self._require_mapping(raw, context)
        english = self._require_str(data.get("en"), f"{context}.en")
        french = self._optional_str(data.get("fr"), f"{context}.fr")
        return LocalizedText(en=english, fr=french)

    def _parse_choices(self, raw_choices: object, node_context: str) -> Tuple[StoryChoiceDef, ...]:
        if raw_choices is None:
            return ()
        if not isinstance(raw_choices, list):
            raise DataValidationError(f"{node_context} choices must be a list if provided.")
        choices: List[StoryChoiceDef] = []
        for index, entry in enumerate(raw_choices):
            choice_ctx = f"{node_context} choices[{index}]"
            choice_mapping = self._require_mapping(entry, choice_ctx)
            unknown = set(choice_mapping) - _CHOICE_KEYS
            if unknown:
                raise DataValidationError(f"{choice_ctx} has unknown keys: {', '.join(sorted(unknown))}.")
            condition = None
            if choice_mapping.get("conditions") is not None:
                condition = self._parse_condition(choice_mapping["conditions"], f"{choice_ctx} conditions")
            choices.append(
                StoryChoiceDef(
                    label=self._parse_text(choice_mapping.get("label"), f"{choice_ctx} label"),
                    next_node_id=self._require_str(choice_mapping.get("next_node"), f"{choice_ctx} next_node"),
                    effects=self._parse_effects(choice_mapping.get("effects"), f"{choice_ctx} effects"),
                    condition=condition,
                )
            )
        return tuple(choices)

    def _parse_effects(self, raw_effects: object, context: str) -> EffectsDef | None:
        if raw_effects is None:
            return None
        data = self._require_mapping(raw_effects, context)
        unknown = set(data) - _EFFECT_KEYS
        if unknown:
            raise DataValidationError(f"{context} has unknown keys: {', '.join(sorted(unknown))}.")
        stats: Dict[str, int] = {}
        if data.get("stats") is not None:
            for name, delta in self._require_mapping(data["stats"], f"{context} stats").items():
                stats[name] = self._require_int(delta, f"{context} stats.{name}")
        advance_day = self._require_int(data.get("advance_day", 0), f"{context} advance_day")
        if advance_day < 0:
            raise DataValidationError(f"{context} advance_day must be non-negative.")
        return EffectsDef(
            stats=stats,
            set_flags=tuple(self._str_list(data.get("set_flags"), f"{context} set_flags")),
            unset_flags=tuple(self._str_list(data.get("unset_flags"), f"{context} unset_flags")),
            advance_day=advance_day,
        )

    def _parse_condition(self, raw_condition: object, context: str) -> BranchConditionDef:
        data = self._require_mapping(raw_condition, context)
        min_stats: Dict[str, int] = {}
        max_stats: Dict[str, int] = {}
        for key, value in data.items():
            if key in ("flags", "flags_absent", "default"):
                continue
            if key.startswith("min_") and len(key) > 4:
                min_stats[key[4:]] = self._require_int(value, f"{context} {key}")
            elif key.startswith("max_") and len(key) > 4:
                max_stats[key[4:]] = self._require_int(value, f"{context} {key}")
            else:
                raise DataValidationError(f"{context} has unknown key '{key}'.")
        default = self._require_type(data.get("default", False), bool, f"{context} default")
        return BranchConditionDef(
            flags=tuple(self._str_list(data.get("flags"), f"{context} flags")),
            flags_absent=tuple(self._str_list(data.get("flags_absent"), f"{context} flags_absent")),
            min_stats=min_stats,
            max_stats=max_stats,
            default=bool(default),
        )

    def _parse_branches(self, raw_branches: object, node_context: str) -> Tuple[BranchDef, ...]:
        if raw_branches is None:
            return ()
        if not isinstance(raw_branches, list):
            raise DataValidationError(f"{node_context} branches must be a list if provided.")
        branches: List[BranchDef] = []
        for index, entry in enumerate(raw_branches):
            branch_ctx = f"{node_context} branches[{index}]"
            branch_data = self._require_mapping(entry, branch_ctx)
            branches.append(
                BranchDef(
                    condition=self._parse_condition(branch_data.get("condition"), f"{branch_ctx} condition"),
                    next_node_id=self._require_str(branch_data.get("next_node"), f"{branch_ctx} next_node"),
                )
            )
        return tuple(branches)

    def _parse_delay(self, raw_delay: object, context: str) -> DelayDef | None:
        if raw_delay is None:
            return None
        if isinstance(raw_delay, int) and not isinstance(raw_delay, bool):
            seconds, message = raw_delay, _DEFAULT_DELAY_MESSAGE
        else:
            data = self._require_mapping(raw_delay, context)
            seconds = self._require_int(data.get("seconds"), f"{context} seconds")
            message = _DEFAULT_DELAY_MESSAGE
            if data.get("message") is not None:
                message = self._parse_text(data["message"], f"{context} message")
        if seconds < 0:
            raise DataValidationError(f"{context} seconds must be non-negative.")
        return DelayDef(seconds=seconds, message=message)

    def _parse_endings(self, raw_endings: object) -> Dict[str, EndingDef]:
        if raw_endings is None:
            return {}
        endings: Dict[str, EndingDef] = {}
        for key, entry in self._require_mapping(raw_endings, "story endings").items():
            context = f"story ending '{key}'"
            data = self._require_mapping(entry, context)
            endings[key] = EndingDef(
                title=self._parse_text(data.get("title"), f"{context} title"),
                description=self._parse_text(data.get("description", ""), f"{context} description"),
            )
        return endings

    def _parse_flag_glossary(self, raw_flags: object) -> Dict[str, str]:
        if raw_flags is None:
            return {}
        glossary = self._require_mapping(raw_flags, "story flags")
        return {name: self._require_str(text, f"story flags.{name}") for name, text in glossary.items()}

    def _parse_global_override(self, raw_override: object) -> GlobalOverrideDef | None:
        if raw_override is None:
            return None
        data = self._require_mapping(raw_override, "story global_override")
        return GlobalOverrideDef(
            condition=self._parse_condition(data.get("condition"), "story global_override condition"),
            next_node_id=self._require_str(data.get("next_node"), "story global_override next_node"),
            watch_stat=self._require_str(data.get("watch_stat", "health"), "story global_override watch_stat"),
        )
