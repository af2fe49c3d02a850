"""Boundary between the story runtime and a front end."""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Tuple

from eshara.core.cancellation import CancellationToken
from eshara.core.types import DEFAULT_LANGUAGE, Language
from eshara.domain.state import LogEntry, PlayerState
from eshara.services.errors import SaveLoadError
from eshara.services.save_service import SaveService
from eshara.services.save_store import SaveFileStore
from eshara.services.story_service import NodePhase, StoryFrame, StoryService

logger = logging.getLogger(__name__)


class ResumeKind(str, Enum):
    NEW_GAME = "new_game"
    CONTINUE = "continue"
    WAITING = "waiting"
    ENDED = "ended"


class GameSession:
    """Owns the live PlayerState and saves it after every change.

    Front ends only call the methods below and render the frames they
    return; they never touch the state or the save file directly.
    """

    def __init__(
        self,
        story_service: StoryService,
        save_service: SaveService,
        store: SaveFileStore,
        *,
        on_wait_complete: Callable[[], None] | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._story = story_service
        self._saves = save_service
        self._store = store
        self._on_wait_complete = on_wait_complete
        self._token = token or CancellationToken()
        self._state: PlayerState | None = None
        self._frame: StoryFrame | None = None
        self.diagnostic: str | None = None
        story_service.bind_persistence(self._save)

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def has_game(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> PlayerState:
        if self._state is None:
            raise RuntimeError("No game is loaded.")
        return self._state

    def load_or_create(self, language: Language | None = None) -> ResumeKind:
        """Resume the saved game, or start a new one if there is none.

        An unreadable save is logged, described in ``diagnostic`` and
        replaced by a fresh game.
        """
        self.diagnostic = None
        state: PlayerState | None = None
        if self._store.exists():
            try:
                state = self._saves.deserialize(self._store.read())
            except SaveLoadError as exc:
                logger.warning("Discarding unreadable save: %s", exc)
                self.diagnostic = str(exc)
        if state is None:
            self._start(language or DEFAULT_LANGUAGE)
            return ResumeKind.NEW_GAME

        if language is not None:
            state.language = language
        self._state = state
        self._frame = None
        if state.ending is not None:
            return ResumeKind.ENDED
        self._story.begin_session(state)
        if self._story.scheduler.is_waiting(state):
            return ResumeKind.WAITING
        return ResumeKind.CONTINUE

    def request_new_game(self, language: Language | None = None) -> StoryFrame:
        if language is None:
            language = self._state.language if self._state is not None else DEFAULT_LANGUAGE
        self._store.delete()
        self._start(language)
        return self.get_current_frame()

    def request_reset(self) -> None:
        """Forget the current game and delete its save."""
        self._store.delete()
        self._state = None
        self._frame = None

    def get_current_frame(self) -> StoryFrame:
        """Return what the player should see now, advancing if needed."""
        state = self.state
        frame = self._frame
        if frame is None or (
            frame.phase == NodePhase.WAITING and not self._story.scheduler.is_waiting(state)
        ) or frame.phase == NodePhase.INTERRUPTED:
            frame = self._story.advance(state, self._token)
            self._remember(frame)
        return frame

    def submit_choice(self, index: int) -> StoryFrame:
        frame = self._story.choose(self.state, index, self._token)
        self._remember(frame)
        return frame

    def wait_for_resume(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        on_tick: Callable[[str], None] | None = None,
    ) -> StoryFrame | None:
        """Block until a pending wait is over and return the next frame.

        Returns None when cancelled; the state is saved either way.
        """
        state = self.state
        finished = self._story.scheduler.wait(state, token=self._token, sleep=sleep, on_tick=on_tick)
        if not finished:
            self._save(state)
            return None
        self._frame = None
        return self.get_current_frame()

    def title(self) -> str:
        return self._story.graph.metadata.title.get(self.state.language)

    def remaining_label(self) -> str:
        return self._story.scheduler.remaining_label(self.state)

    def defer(self) -> None:
        """Save and let the player come back after the wait."""
        self._save(self.state)

    def acknowledge_ending(self) -> None:
        """The player has seen the ending; the finished game is discarded."""
        self.request_reset()

    def history(self) -> Tuple[LogEntry, ...]:
        if self._state is None:
            return ()
        return self._state.history()

    def shutdown(self) -> None:
        """Cancel any running work and write the state one last time."""
        self._token.cancel()
        if self._state is not None:
            self._save(self._state)

    def _start(self, language: Language) -> None:
        state = self._story.start_new_game(language)
        self._state = state
        self._frame = None
        self._story.begin_session(state)

    def _remember(self, frame: StoryFrame) -> None:
        if frame.resumed_from_wait and self._on_wait_complete is not None:
            self._on_wait_complete()
        self._frame = frame

    def _save(self, state: PlayerState) -> None:
        self._store.write(self._saves.serialize(state))
