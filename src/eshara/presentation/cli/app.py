"""Interactive CLI for playing the story."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from eshara import __version__
from eshara.core.types import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, Language
from eshara.data.errors import DataError, StoryGraphError
from eshara.data.repositories import StoryRepository
from eshara.presentation.cli import config, render
from eshara.services.game_session import GameSession, ResumeKind
from eshara.services.save_service import SaveService
from eshara.services.save_store import SaveFileStore
from eshara.services.story_graph_validator import format_issue
from eshara.services.story_service import NodePhase, StoryService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DEAD_END = 1
EXIT_BAD_STORY = 2
EXIT_SAVE_FAILED = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eshara", description="A story told in real time.")
    parser.add_argument("--reset", action="store_true", help="delete the saved game and exit")
    parser.add_argument("--lang", choices=SUPPORTED_LANGUAGES, help="language for this session")
    parser.add_argument("--story", metavar="PATH", help="play a story file instead of the bundled one")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Start the interactive CLI session and return the exit code."""
    args = build_parser().parse_args(argv)
    log_path = config.configure_logging()
    logger.info("Starting eshara %s (log: %s)", __version__, log_path)
    store = SaveFileStore(config.get_save_path())

    if args.reset:
        try:
            removed = store.delete()
        except OSError as exc:
            print(f"Unable to delete the saved game: {exc}", file=sys.stderr)
            return EXIT_SAVE_FAILED
        print("Save deleted." if removed else "No saved game to delete.")
        return EXIT_OK

    try:
        session = build_session(store, args.story)
    except StoryGraphError as exc:
        print(f"Story file is invalid: {exc}", file=sys.stderr)
        for issue in exc.issues:
            print(f"  {format_issue(issue)}", file=sys.stderr)
        return EXIT_BAD_STORY
    except DataError as exc:
        print(f"Unable to load story: {exc}", file=sys.stderr)
        return EXIT_BAD_STORY

    try:
        try:
            return _run(session, args.lang)
        except (KeyboardInterrupt, EOFError):
            session.shutdown()
            language = session.state.language if session.has_game else DEFAULT_LANGUAGE
            print()
            print(render.text(language, "saved"))
            return EXIT_INTERRUPTED
    except OSError as exc:
        logger.error("Could not update the save file: %s", exc)
        print(f"Unable to save your progress: {exc}", file=sys.stderr)
        return EXIT_SAVE_FAILED
            continue

        if frame.phase == NodePhase.ENDING:
            assert frame.ending is not None
            render.render_ending(frame.ending, language)
            play_again = _prompt_yes_no("Play again? [y/N]: " if language == "en" else "Rejouer ? [o/N] : ")
            session.acknowledge_ending()
            if not play_again:
                return EXIT_OK
            session.request_new_game(language)
            continue

        if frame.phase == NodePhase.INTERRUPTED:
            return EXIT_INTERRUPTED

        print(f"The story cannot continue: {frame.error}", file=sys.stderr)
        return EXIT_DEAD_END


def _prompt_choice(choice_count: int, language: Language = DEFAULT_LANGUAGE) -> int:
    while True:
        raw = input(render.text(language, "choose")).strip()
        try:
            index = int(raw) - 1
        except ValueError:
            print(render.text(language, "number"))
            continue
        if 0 <= index < choice_count:
            return index
        print(render.text(language, "range", count=choice_count))


def _prompt_language(default: str) -> Language:
    print("1. English")
    print("2. Français")
    raw = input(f"Language / Langue [{'1' if default == 'en' else '2'}]: ").strip()
    if raw == "1":
        return "en"
    if raw == "2":
        return "fr"
    return "fr" if default == "fr" else "en"


def _prompt_yes_no(prompt: str) -> bool:
    return input(prompt).strip().lower() in ("y", "yes", "o", "oui")


def _print_tick(label: str) -> None:
    print(f"... {label}")


def _ring_bell() -> None:
    print("\a", end="", flush=True)
