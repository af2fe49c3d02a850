"""Data layer utilities for loading JSON definitions."""

from .errors import (
    DataError,
    DataLoadError,
    DataReferenceError,
    DataValidationError,
    StoryGraphError,
)
from .paths import get_definitions_path, get_package_root, get_story_override_path

__all__ = [
    "DataError",
    "DataLoadError",
    "DataReferenceError",
    "DataValidationError",
    "StoryGraphError",
    "get_definitions_path",
    "get_package_root",
    "get_story_override_path",
]
