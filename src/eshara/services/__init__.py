"""Application services that drive the story."""

from .errors import SaveLoadError, SaveWriteError, StoryConsistencyError

__all__ = ["SaveLoadError", "SaveWriteError", "StoryConsistencyError"]
