"""Domain-level state tracking."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Set, Tuple

from eshara.core.types import DEFAULT_LANGUAGE, Language, Sender
from eshara.domain.stats import DEFAULT_STAT_BOUNDS, StatBounds, Stats


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One line of conversation history."""

    sender: Sender
    text: str
    timestamp: datetime


@dataclass
class PlayerState:
    """Everything that must survive a restart.

    ``entered_node`` marks the node whose entry effects and messages were
    already applied, so resuming at a choice prompt does not replay them.
    """

    current_node: str
    flags: Set[str] = field(default_factory=set)
    stats: Stats = field(default_factory=Stats)
    message_log: List[LogEntry] = field(default_factory=list)
    resume_at: datetime | None = None
    ending: str | None = None
    day: int = 1
    language: Language = DEFAULT_LANGUAGE
    entered_node: str | None = None

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    def set_flag(self, flag: str) -> None:
        self.flags.add(flag)

    def remove_flag(self, flag: str) -> None:
        self.flags.discard(flag)

    def get_stat(self, name: str) -> int:
        return self.stats.get(name)

    def modify_stat(self, name: str, delta: int, bounds: StatBounds = DEFAULT_STAT_BOUNDS) -> int:
        return self.stats.modify(name, delta, bounds)

    def move_to(self, node_id: str) -> None:
        self.current_node = node_id
        self.entered_node = None

    def append_log(self, sender: Sender, text: str, timestamp: datetime) -> LogEntry:
        entry = LogEntry(sender=sender, text=text, timestamp=timestamp)
        self.message_log.append(entry)
        return entry

    def history(self) -> Tuple[LogEntry, ...]:
        """Return a read-only snapshot of the log."""
        return tuple(self.message_log)
