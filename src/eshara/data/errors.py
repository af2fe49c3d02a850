"""Custom exceptions for data loading and validation."""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from eshara.services.story_graph_validator import Issue


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when JSON files are missing or invalid."""


class DataValidationError(DataError):
    """Raised when JSON content fails structural validation."""


class DataReferenceError(DataError):
    """Raised when definitions reference missing related data."""


class StoryGraphError(DataReferenceError):
    """Raised when the story graph fails integrity validation.

    Carries every issue found, not only the first, so authors can fix the
    whole file in one pass.
    """

    def __init__(self, issues: Sequence["Issue"]) -> None:
        self.issues = list(issues)
        errors = [issue for issue in self.issues if issue.severity == "ERROR"]
        super().__init__(f"Story graph failed validation with {len(errors)} error(s).")
