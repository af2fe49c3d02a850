"""Shared CLI rendering helpers."""
from __future__ import annotations

import textwrap
from typing import Iterable, Sequence

from eshara.core.debug import debug_enabled
from eshara.core.types import Language
from eshara.domain.state import LogEntry
from eshara.services.story_service import EndingView, WaitView

TEXT_WIDTH = 72

_STRINGS = {
    "en": {
        "choose": "Select an option: ",
        "number": "Please enter a number.",
        "range": "Please enter a value between 1 and {count}.",
        "waiting": "Elara is unavailable. Back in {label} (around {time}).",
        "days": "Days survived: {day}",
        "ending": "ENDING",
        "history": "Previously",
        "wait_options": "1. Wait here\n2. Quit and come back later",
        "saved": "Progress saved.",
        "back": "Elara is back.",
    },
    "fr": {
        "choose": "Choisissez une option : ",
        "number": "Veuillez entrer un nombre.",
        "range": "Veuillez entrer une valeur entre 1 et {count}.",
        "waiting": "Elara est indisponible. Retour dans {label} (vers {time}).",
        "days": "Jours survécus : {day}",
        "ending": "FIN",
        "history": "Précédemment",
        "wait_options": "1. Attendre ici\n2. Quitter et revenir plus tard",
        "saved": "Progression sauvegardée.",
        "back": "Elara est de retour.",
    },
}

_SENDER_PREFIX = {"narrator": "", "player": "> ", "system": "-- "}


def text(language: Language, key: str, **values: object) -> str:
    """Return a localized interface string."""
    template = _STRINGS.get(language, _STRINGS["en"])[key]
    return template.format(**values) if values else template


def wrap(message: str, width: int = TEXT_WIDTH) -> list[str]:
    if not message:
        return [""]
    return textwrap.wrap(message, width=width, break_long_words=False, break_on_hyphens=False)


def render_heading(title: str) -> None:
    """Print a consistent section heading."""
    print(f"\n=== {title} ===")


def render_messages(messages: Iterable[str]) -> None:
    for message in messages:
        for line in wrap(message):
            print(line)


def render_choices(choices: Sequence[str]) -> None:
    print()
    for index, label in enumerate(choices, start=1):
        print(f"{index}. {label}")


def format_log_entry(entry: LogEntry) -> str:
    if entry.sender == "system" and entry.text.startswith("SESSION:"):
        return f"---- {entry.text.split(':', 1)[1]} ----"
    return f"{_SENDER_PREFIX.get(entry.sender, '')}{entry.text}"


def render_history(entries: Sequence[LogEntry], language: Language, *, limit: int = 12) -> None:
    """Show the tail of the conversation when a saved game is resumed."""
    if not entries:
        return
    render_heading(text(language, "history"))
    for entry in entries[-limit:]:
        print(format_log_entry(entry))


def format_waiting(view: WaitView, language: Language) -> str:
    line = text(language, "waiting", label=view.remaining_label, time=view.resume_time)
    if debug_enabled():
        line += f" [DEBUG {view.remaining_seconds}s]"
    return line


def render_waiting(view: WaitView, language: Language) -> None:
    print()
    if view.message:
        print(f"-- {view.message}")
    print(format_waiting(view, language))


def render_ending(view: EndingView, language: Language) -> None:
    render_heading(f"{text(language, 'ending')}: {view.title}")
    render_messages([view.description])
    print(text(language, "days", day=view.day))
