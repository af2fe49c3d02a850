"""Story definition structures used by the runtime."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Tuple

from eshara.core.types import Language
from eshara.domain.stats import DEFAULT_STAT_BOUNDS, StatBounds


def _frozen_mapping(values: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True, slots=True)
class LocalizedText:
    """Text available in every supported language, English as fallback."""

    en: str
    fr: str | None = None

    def get(self, language: Language) -> str:
        if language == "fr" and self.fr is not None:
            return self.fr
        return self.en


@dataclass(frozen=True, slots=True)
class EffectsDef:
    """State mutations attached to a node entry or a choice."""

    stats: Mapping[str, int] = field(default_factory=_frozen_mapping)
    set_flags: Tuple[str, ...] = ()
    unset_flags: Tuple[str, ...] = ()
    advance_day: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.stats or self.set_flags or self.unset_flags or self.advance_day)


@dataclass(frozen=True, slots=True)
class BranchConditionDef:
    """Predicate over flags and stat thresholds; bounds are inclusive."""

    flags: Tuple[str, ...] = ()
    flags_absent: Tuple[str, ...] = ()
    min_stats: Mapping[str, int] = field(default_factory=_frozen_mapping)
    max_stats: Mapping[str, int] = field(default_factory=_frozen_mapping)
    default: bool = False

    def referenced_stats(self) -> set[str]:
        return set(self.min_stats) | set(self.max_stats)


@dataclass(frozen=True, slots=True)
class BranchDef:
    condition: BranchConditionDef
    next_node_id: str


@dataclass(frozen=True, slots=True)
class DelayDef:
    """Real-time pause before the story continues."""

    seconds: int
    message: LocalizedText

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("Delay seconds must be non-negative.")


@dataclass(frozen=True, slots=True)
class StoryChoiceDef:
    """Represents a selectable choice on a story node."""

    label: LocalizedText
    next_node_id: str
    effects: EffectsDef | None = None
    condition: BranchConditionDef | None = None


@dataclass(frozen=True, slots=True)
class StoryNodeDef:
    """Fully parsed story node."""

    id: str
    messages: Tuple[LocalizedText, ...] = ()
    choices: Tuple[StoryChoiceDef, ...] = ()
    next_node_id: str | None = None
    delay: DelayDef | None = None
    ending: str | None = None
    on_enter: EffectsDef | None = None
    branches: Tuple[BranchDef, ...] = ()

    @property
    def has_way_forward(self) -> bool:
        return bool(self.choices or self.next_node_id or self.branches or self.ending)

    def outgoing_ids(self) -> Iterator[str]:
        """Yield every node id this node can move to, in declaration order."""
        if self.next_node_id:
            yield self.next_node_id
        for choice in self.choices:
            yield choice.next_node_id
        for branch in self.branches:
            yield branch.next_node_id


@dataclass(frozen=True, slots=True)
class EndingDef:
    title: LocalizedText
    description: LocalizedText


@dataclass(frozen=True, slots=True)
class GlobalOverrideDef:
    """Forced reroute checked whenever effects touch ``watch_stat``."""

    condition: BranchConditionDef
    next_node_id: str
    watch_stat: str = "health"


@dataclass(frozen=True, slots=True)
class StoryMetadataDef:
    title: LocalizedText
    start_node: str
    stats: Mapping[str, StatBounds] = field(default_factory=_frozen_mapping)
    entry_points: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class StoryGraph:
    """Immutable story graph shared by every session in the process."""

    metadata: StoryMetadataDef
    nodes: Mapping[str, StoryNodeDef]
    endings: Mapping[str, EndingDef] = field(default_factory=_frozen_mapping)
    flags: Mapping[str, str] = field(default_factory=_frozen_mapping)
    global_override: GlobalOverrideDef | None = None

    def __post_init__(self) -> None:
        for name in ("nodes", "endings", "flags"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, _frozen_mapping(value))
        if not isinstance(self.metadata.stats, MappingProxyType):
            object.__setattr__(
                self.metadata, "stats", _frozen_mapping(self.metadata.stats)
            )

    @property
    def start_node_id(self) -> str:
        return self.metadata.start_node

    def get(self, node_id: str) -> StoryNodeDef:
        try:
            return self.nodes[node_id]
        except KeyError as exc:
            raise KeyError(node_id) from exc

    def ending_info(self, key: str) -> EndingDef | None:
        return self.endings.get(key)

    def stat_bounds(self, name: str) -> StatBounds:
        return self.metadata.stats.get(name, DEFAULT_STAT_BOUNDS)

    def override_targets(self) -> Tuple[str, ...]:
        """Node ids entered from outside normal node flow."""
        targets = list(self.metadata.entry_points)
        if self.global_override is not None:
            targets.append(self.global_override.next_node_id)
        return tuple(targets)
