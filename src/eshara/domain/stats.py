"""Bounded player statistics."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping

logger = logging.getLogger(__name__)

NEUTRAL_STAT_VALUE = 0


class StatId(str, Enum):
    """Stats the runtime knows about by name."""

    TRUST = "trust"
    HEALTH = "health"
    SUPPLIES = "supplies"
    MORALE = "morale"

    @classmethod
    def lookup(cls, name: str) -> "StatId | None":
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class StatBounds:
    """Starting value and inclusive range for one stat."""

    default: int = NEUTRAL_STAT_VALUE
    minimum: int = 0
    maximum: int = 10

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError(f"Stat minimum {self.minimum} exceeds maximum {self.maximum}.")

    def clamp(self, value: int) -> int:
        return max(self.minimum, min(self.maximum, value))


DEFAULT_STAT_BOUNDS = StatBounds()


@dataclass(slots=True)
class Stats:
    """Known stats keyed by StatId plus a bucket for author-defined names.

    Reading a stat that was never set yields the neutral value instead of
    raising, so a typo in story data degrades rather than crashes.
    """

    known: Dict[StatId, int] = field(default_factory=dict)
    extra: Dict[str, int] = field(default_factory=dict)

    def get(self, name: StatId | str) -> int:
        stat_id = name if isinstance(name, StatId) else StatId.lookup(name)
        if stat_id is not None:
            return self.known.get(stat_id, NEUTRAL_STAT_VALUE)
        if name not in self.extra:
            logger.debug("Read of unset stat '%s' returns neutral value.", name)
        return self.extra.get(str(name), NEUTRAL_STAT_VALUE)

    def set(self, name: StatId | str, value: int, bounds: StatBounds = DEFAULT_STAT_BOUNDS) -> int:
        """Store ``value`` clamped into ``bounds`` and return what was stored."""
        clamped = bounds.clamp(value)
        stat_id = name if isinstance(name, StatId) else StatId.lookup(name)
        if stat_id is not None:
            self.known[stat_id] = clamped
        else:
            self.extra[str(name)] = clamped
        return clamped

    def modify(self, name: StatId | str, delta: int, bounds: StatBounds = DEFAULT_STAT_BOUNDS) -> int:
        return self.set(name, self.get(name) + delta, bounds)

    def copy(self) -> "Stats":
        return Stats(known=dict(self.known), extra=dict(self.extra))

    def as_dict(self) -> Dict[str, int]:
        values = {stat_id.value: value for stat_id, value in self.known.items()}
        values.update(self.extra)
        return values

    @classmethod
    def from_dict(cls, values: Mapping[str, int]) -> "Stats":
        stats = cls()
        for name, value in values.items():
            stat_id = StatId.lookup(name)
            if stat_id is not None:
                stats.known[stat_id] = value
            else:
                stats.extra[name] = value
        return stats

    @classmethod
    def from_bounds(cls, bounds: Mapping[str, StatBounds]) -> "Stats":
        """Seed every declared stat with its default, clamped into range."""
        stats = cls()
        for name, stat_bounds in bounds.items():
            stats.set(name, stat_bounds.default, stat_bounds)
        return stats
