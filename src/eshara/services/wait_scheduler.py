"""Real-time waits that survive restarts."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable

from eshara.core.cancellation import CancellationToken
from eshara.core.clock import Clock, SystemClock
from eshara.core.debug import debug_enabled
from eshara.core.types import Language
from eshara.domain.state import PlayerState

logger = logging.getLogger(__name__)

DEBUG_DELAY_SECONDS = 5
DEBUG_POLL_SECONDS = 1.0
DEFAULT_POLL_SECONDS = 30.0

_LABELS = {
    "en": {
        "imminent": "any moment now",
        "under_minute": "less than a minute",
        "minute": "{m} minute",
        "minutes": "{m} minutes",
        "hours": "{h}h {m}min",
    },
    "fr": {
        "imminent": "d'un moment à l'autre",
        "under_minute": "moins d'une minute",
        "minute": "{m} minute",
        "minutes": "{m} minutes",
        "hours": "{h}h {m}min",
    },
}


class WaitScheduler:
    """Stores absolute resume deadlines on the player state.

    The deadline is wall-clock based so a game closed mid-wait resumes
    correctly however long the process was gone.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        debug: bool | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._debug = debug_enabled() if debug is None else debug
        if poll_interval is None:
            poll_interval = DEBUG_POLL_SECONDS if self._debug else DEFAULT_POLL_SECONDS
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        self._poll_interval = poll_interval

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def debug(self) -> bool:
        return self._debug

    def effective_seconds(self, seconds: int) -> int:
        """Return the delay actually scheduled for an authored delay."""
        if self._debug:
            return DEBUG_DELAY_SECONDS
        return max(0, seconds)

    def schedule(self, state: PlayerState, seconds: int) -> datetime:
        resume_at = self._clock.now() + timedelta(seconds=self.effective_seconds(seconds))
        state.resume_at = resume_at
        logger.info("Scheduled resume of '%s' at %s", state.current_node, resume_at.isoformat())
        return resume_at

    def is_waiting(self, state: PlayerState) -> bool:
        return state.resume_at is not None and self._clock.now() < state.resume_at

    def remaining(self, state: PlayerState) -> timedelta:
        """Time left until the deadline; zero or negative once it has passed."""
        if state.resume_at is None:
            return timedelta(0)
        return state.resume_at - self._clock.now()

    def clear(self, state: PlayerState) -> None:
        state.resume_at = None

    def resolve(self, state: PlayerState) -> bool:
        """Clear a deadline that has passed; return True if one was cleared."""
        if state.resume_at is None or self.is_waiting(state):
            return False
        self.clear(state)
        return True

    def remaining_label(self, state: PlayerState, language: Language | None = None) -> str:
        labels = _LABELS.get(language or state.language, _LABELS["en"])
        total = int(self.remaining(state).total_seconds())
        if total <= 0:
            return labels["imminent"]
        hours, rest = divmod(total, 3600)
        minutes = rest // 60
        if hours > 0:
            return labels["hours"].format(h=hours, m=minutes)
        if minutes > 1:
            return labels["minutes"].format(m=minutes)
        if minutes == 1:
            return labels["minute"].format(m=minutes)
        return labels["under_minute"]

    def resume_time_label(self, state: PlayerState) -> str:
        """Local HH:MM of the deadline, or an empty string when not waiting."""
        if state.resume_at is None:
            return ""
        return state.resume_at.astimezone().strftime("%H:%M")

    def wait(
        self,
        state: PlayerState,
        *,
        token: CancellationToken | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_tick: Callable[[str], None] | None = None,
    ) -> bool:
        """Block until the deadline passes.

        Returns False if ``token`` was cancelled first. ``on_tick`` receives
        the remaining-time label before every sleep. The deadline itself is
        left in place for the interpreter to clear on resume.
        """
        while self.is_waiting(state):
            if token is not None and token.cancelled:
                return False
            if on_tick is not None:
                on_tick(self.remaining_label(state))
            remaining = self.remaining(state).total_seconds()
            sleep(max(0.0, min(self._poll_interval, remaining)))
        return not (token is not None and token.cancelled)
