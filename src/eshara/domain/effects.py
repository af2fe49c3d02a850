"""Atomic application of story effects to player state."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Tuple

from eshara.domain.defs import EffectsDef
from eshara.domain.state import PlayerState
from eshara.domain.stats import DEFAULT_STAT_BOUNDS, StatBounds, StatId

BoundsLookup = Callable[[str], StatBounds]


@dataclass(frozen=True, slots=True)
class EffectResult:
    """Outcome of applying one effects block."""

    touched_stats: FrozenSet[str] = frozenset()
    stat_changes: Dict[str, int] = field(default_factory=dict)
    flags_set: Tuple[str, ...] = ()
    flags_unset: Tuple[str, ...] = ()
    day_delta: int = 0

    def touched(self, stat: str) -> bool:
        return stat in self.touched_stats

    @property
    def health_touched(self) -> bool:
        return self.touched(StatId.HEALTH.value)

    @property
    def had_effect(self) -> bool:
        return bool(self.stat_changes or self.flags_set or self.flags_unset or self.day_delta)


EMPTY_RESULT = EffectResult()


def apply_effects(
    effects: EffectsDef | None,
    state: PlayerState,
    bounds_for: BoundsLookup | None = None,
) -> EffectResult:
    """Apply ``effects`` to ``state`` all at once.

    Every stat delta is clamped into the stat's bounds as it lands. New
    values are computed on copies and committed together, so a failure
    part-way leaves ``state`` untouched.
    """
    if effects is None or effects.is_empty:
        return EMPTY_RESULT
    lookup = bounds_for or (lambda _name: DEFAULT_STAT_BOUNDS)

    stats = state.stats.copy()
    stat_changes: Dict[str, int] = {}
    for name, delta in effects.stats.items():
        before = stats.get(name)
        after = stats.modify(name, delta, lookup(name))
        stat_changes[name] = after - before

    flags = set(state.flags)
    flags_set = tuple(flag for flag in effects.set_flags if flag not in flags)
    flags.update(effects.set_flags)
    flags_unset = tuple(flag for flag in effects.unset_flags if flag in flags)
    flags.difference_update(effects.unset_flags)

    state.stats = stats
    state.flags = flags
    state.day += effects.advance_day

    return EffectResult(
        touched_stats=frozenset(effects.stats),
        stat_changes=stat_changes,
        flags_set=flags_set,
        flags_unset=flags_unset,
        day_delta=effects.advance_day,
    )
