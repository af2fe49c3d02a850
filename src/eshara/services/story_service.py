"""Story progression services."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List

from eshara.core.cancellation import CancellationToken
from eshara.core.types import DEFAULT_LANGUAGE, Language
from eshara.data.repositories import StoryRepository
from eshara.domain.conditions import available_choices, evaluate_condition, select_branch
from eshara.domain.defs import StoryChoiceDef, StoryGraph, StoryNodeDef
from eshara.domain.effects import EffectResult, apply_effects
from eshara.domain.state import PlayerState
from eshara.domain.stats import Stats
from eshara.services.errors import StoryConsistencyError
from eshara.services.wait_scheduler import WaitScheduler

logger = logging.getLogger(__name__)

AUTO_ROUTE_LABEL = "..."
DEFAULT_MAX_AUTO_STEPS = 1000

PersistHook = Callable[[PlayerState], None]


class NodePhase(str, Enum):
    PRESENTING = "presenting"
    AWAITING_CHOICE = "awaiting_choice"
    BRANCHING = "branching"
    WAITING = "waiting"
    ENDING = "ending"
    DEAD_END = "dead_end"
    INTERRUPTED = "interrupted"


@dataclass(slots=True)
class WaitView:
    resume_at: datetime
    remaining_seconds: int
    remaining_label: str
    resume_time: str
    message: str | None = None


@dataclass(slots=True)
class EndingView:
    key: str
    title: str
    description: str
    day: int


@dataclass(slots=True)
class StoryFrame:
    """Data returned to the presentation layer for rendering."""

    phase: NodePhase
    node_id: str
    messages: List[str] = field(default_factory=list)
    choices: List[str] = field(default_factory=list)
    waiting: WaitView | None = None
    ending: EndingView | None = None
    error: str | None = None
    resumed_from_wait: bool = False


def iter_node_messages(node: StoryNodeDef, language: Language) -> Iterator[str]:
    """Yield a node's messages one at a time so the UI can pace them."""
    for message in node.messages:
        yield message.get(language)


class StoryService:
    """Application service that drives the story graph.

    Every call runs nodes until the story needs something from outside:
    a choice, the end of a real-time wait, or an ending. The optional
    ``persist`` hook is called after each observable state change.
    """

    def __init__(
        self,
        story_repo: StoryRepository,
        *,
        scheduler: WaitScheduler | None = None,
        persist: PersistHook | None = None,
        max_auto_steps: int = DEFAULT_MAX_AUTO_STEPS,
    ) -> None:
        self._story_repo = story_repo
        self._scheduler = scheduler or WaitScheduler()
        self._persist_hook = persist
        self._max_auto_steps = max_auto_steps

    @property
    def scheduler(self) -> WaitScheduler:
        return self._scheduler

    @property
    def graph(self) -> StoryGraph:
        return self._story_repo.graph()

    def bind_persistence(self, persist: PersistHook | None) -> None:
        self._persist_hook = persist

    def start_new_game(self, language: Language = DEFAULT_LANGUAGE) -> PlayerState:
        """Create a fresh state positioned at the start node with default stats."""
        graph = self.graph
        return PlayerState(
            current_node=graph.start_node_id,
            stats=Stats.from_bounds(graph.metadata.stats),
            language=language,
        )

    def begin_session(self, state: PlayerState) -> None:
        """Mark the start of a play session in the log."""
        now = self._now()
        stamp = now.astimezone().strftime("%Y-%m-%d %H:%M")
        state.append_log("system", f"SESSION:{stamp}", now)
        self._persist(state)

    def advance(self, state: PlayerState, token: CancellationToken | None = None) -> StoryFrame:
        """Run the story forward from ``state.current_node``."""
        if state.ending is not None:
            return self._ending_frame(state, [])
        resumed = False
        if state.resume_at is not None:
            if self._scheduler.is_waiting(state):
                return self._waiting_frame(state, [], None)
            self._scheduler.clear(state)
            resumed = True
            logger.info("Wait finished; resuming at '%s'", state.current_node)
            self._persist(state)
        return self._run(state, [], token, resumed=resumed)

    def choose(
        self, state: PlayerState, choice_index: int, token: CancellationToken | None = None
    ) -> StoryFrame:
        """Apply the selected choice and advance the story."""
        if state.ending is not None:
            raise ValueError("The story has already ended.")
        if self._scheduler.is_waiting(state):
            raise ValueError("Cannot choose while waiting for the story to resume.")
        node = self.graph.nodes.get(state.current_node)
        if node is None or state.entered_node != node.id or not node.choices:
            raise ValueError(f"Story node '{state.current_node}' has no choices to select.")
        choices = available_choices(node, state)
        if choice_index < 0:
            raise IndexError(f"Choice index {choice_index} is invalid for node '{node.id}'.")
        try:
            selected_choice = choices[choice_index]
        except IndexError as exc:
            raise IndexError(f"Choice index {choice_index} is invalid for node '{node.id}'.") from exc

        self._take_choice(state, selected_choice)
        state.append_log("player", selected_choice.label.get(state.language), self._now())
        self._persist(state)
        return self.advance(state, token)

    def current_choices(self, state: PlayerState) -> List[str]:
        """Labels of the choices available right now, empty when none are pending."""
        node = self.graph.nodes.get(state.current_node)
        if node is None or state.entered_node != node.id or state.ending is not None:
            return []
        return [choice.label.get(state.language) for choice in available_choices(node, state)]

    def ending_view(self, state: PlayerState) -> EndingView | None:
        if state.ending is None:
            return None
        info = self.graph.ending_info(state.ending)
        if info is None:
            logger.error("Ending '%s' has no title or description; showing its key.", state.ending)
            return EndingView(key=state.ending, title=state.ending, description="", day=state.day)
        return EndingView(
            key=state.ending,
            title=info.title.get(state.language),
            description=info.description.get(state.language),
            day=state.day,
        )

    def _run(
        self,
        state: PlayerState,
        messages: List[str],
        token: CancellationToken | None,
        *,
        resumed: bool,
    ) -> StoryFrame:
        graph = self.graph
        steps = 0
        while True:
            if token is not None and token.cancelled:
                logger.info("Story interrupted at '%s'", state.current_node)
                self._persist(state)
                return StoryFrame(
                    phase=NodePhase.INTERRUPTED,
                    node_id=state.current_node,
                    messages=messages,
                    resumed_from_wait=resumed,
                )
            steps += 1
            if steps > self._max_auto_steps:
                return self._fail_closed(
                    state,
                    messages,
                    StoryConsistencyError(state.current_node, "auto-advance limit reached."),
                    resumed,
                )
            node = graph.nodes.get(state.current_node)
            if node is None:
                return self._fail_closed(
                    state,
                    messages,
                    StoryConsistencyError(state.current_node, "node does not exist."),
                    resumed,
                )

            if state.entered_node != node.id:
                self._trace(node.id, NodePhase.PRESENTING)
                entry_result = apply_effects(node.on_enter, state, graph.stat_bounds)
                for text in iter_node_messages(node, state.language):
                    state.append_log("narrator", text, self._now())
                    messages.append(text)
                state.entered_node = node.id
                if self._apply_global_override(state, entry_result):
                    self._persist(state)
                    continue

            if node.ending is not None:
                self._trace(node.id, NodePhase.ENDING)
                state.ending = node.ending
                self._persist(state)
                return self._ending_frame(state, messages, resumed)

            if node.delay is not None:
                target = self._delay_target(node, state)
                if target is None:
                    return self._fail_closed(
                        state,
                        messages,
                        StoryConsistencyError(node.id, "delay has nowhere to resume."),
                        resumed,
                    )
                self._trace(node.id, NodePhase.WAITING)
                state.move_to(target)
                self._scheduler.schedule(state, node.delay.seconds)
                wait_message = node.delay.message.get(state.language)
                state.append_log("system", wait_message, self._now())
                self._persist(state)
                return self._waiting_frame(state, messages, wait_message, resumed)

            if node.branches:
                self._trace(node.id, NodePhase.BRANCHING)
                branch = select_branch(node.branches, state)
                if branch is None:
                    return self._fail_closed(
                        state,
                        messages,
                        StoryConsistencyError(node.id, "no branch matched and no default exists."),
                        resumed,
                    )
                state.move_to(branch.next_node_id)
                self._persist(state)
                continue

            if node.choices:
                choices = available_choices(node, state)
                if not choices:
                    if node.next_node_id:
                        state.move_to(node.next_node_id)
                        self._persist(state)
                        continue
                    return self._dead_end(state, messages, "no choices are available.", resumed)
                labels = [choice.label.get(state.language) for choice in choices]
                if all(label.strip() == AUTO_ROUTE_LABEL for label in labels):
                    self._take_choice(state, choices[0])
                    self._persist(state)
                    continue
                self._trace(node.id, NodePhase.AWAITING_CHOICE)
                self._persist(state)
                return StoryFrame(
                    phase=NodePhase.AWAITING_CHOICE,
                    node_id=node.id,
                    messages=messages,
                    choices=labels,
                    resumed_from_wait=resumed,
                )

            if node.next_node_id:
                state.move_to(node.next_node_id)
                self._persist(state)
                continue

            return self._dead_end(state, messages, "node has no way forward.", resumed)

    def _take_choice(self, state: PlayerState, choice: StoryChoiceDef) -> None:
        result = apply_effects(choice.effects, state, self.graph.stat_bounds)
        if not self._apply_global_override(state, result):
            state.move_to(choice.next_node_id)

    def _apply_global_override(self, state: PlayerState, result: EffectResult) -> bool:
        override = self.graph.global_override
        if override is None or not result.touched(override.watch_stat):
            return False
        if state.current_node == override.next_node_id:
            return False
        if not evaluate_condition(override.condition, state):
            return False
        logger.info(
            "Global override on '%s' reroutes '%s' to '%s'",
            override.watch_stat,
            state.current_node,
            override.next_node_id,
        )
        state.move_to(override.next_node_id)
        return True

    @staticmethod
    def _delay_target(node: StoryNodeDef, state: PlayerState) -> str | None:
        if node.choices:
            choices = available_choices(node, state)
            if choices:
                return choices[0].next_node_id
        return node.next_node_id

    def _ending_frame(self, state: PlayerState, messages: List[str], resumed: bool = False) -> StoryFrame:
        return StoryFrame(
            phase=NodePhase.ENDING,
            node_id=state.current_node,
            messages=messages,
            ending=self.ending_view(state),
            resumed_from_wait=resumed,
        )

    def _waiting_frame(
        self,
        state: PlayerState,
        messages: List[str],
        wait_message: str | None,
        resumed: bool = False,
    ) -> StoryFrame:
        assert state.resume_at is not None
        remaining = self._scheduler.remaining(state)
        return StoryFrame(
            phase=NodePhase.WAITING,
            node_id=state.current_node,
            messages=messages,
            waiting=WaitView(
                resume_at=state.resume_at,
                remaining_seconds=max(0, int(remaining.total_seconds())),
                remaining_label=self._scheduler.remaining_label(state),
                resume_time=self._scheduler.resume_time_label(state),
                message=wait_message,
            ),
            resumed_from_wait=resumed,
        )

    def _fail_closed(
        self,
        state: PlayerState,
        messages: List[str],
        error: StoryConsistencyError,
        resumed: bool,
    ) -> StoryFrame:
        logger.error("Story consistency failure: %s", error)
        self._persist(state)
        return StoryFrame(
            phase=NodePhase.DEAD_END,
            node_id=error.node_id,
            messages=messages,
            error=str(error),
            resumed_from_wait=resumed,
        )

    def _dead_end(self, state: PlayerState, messages: List[str], reason: str, resumed: bool) -> StoryFrame:
        logger.warning("Story dead end at '%s': %s", state.current_node, reason)
        self._persist(state)
        return StoryFrame(
            phase=NodePhase.DEAD_END,
            node_id=state.current_node,
            messages=messages,
            error=reason,
            resumed_from_wait=resumed,
        )

    def _persist(self, state: PlayerState) -> None:
        if self._persist_hook is not None:
            self._persist_hook(state)

    def _now(self) -> datetime:
        return self._scheduler.clock.now()

    @staticmethod
    def _trace(node_id: str, phase: NodePhase) -> None:
        logger.debug("Node '%s' -> %s", node_id, phase.value)
