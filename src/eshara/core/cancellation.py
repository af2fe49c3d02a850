"""Cooperative cancellation shared between the interpreter and the UI."""
from __future__ import annotations


class CancellationToken:
    """Flag checked by long-running loops; set once, never cleared."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled
