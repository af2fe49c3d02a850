"""Service-layer exceptions."""


class SaveLoadError(Exception):
    """Raised when a persisted game cannot be read back."""


class SaveWriteError(OSError):
    """Raised when the game state cannot be written to disk."""


class StoryConsistencyError(Exception):
    """Raised when the graph and the player state disagree at runtime."""

    def __init__(self, node_id: str, message: str) -> None:
        self.node_id = node_id
        super().__init__(f"Story node '{node_id}': {message}")
