from __future__ import annotations


class StorageError(OSError):
    """A snapshot could not be stored or loaded."""


class SnapshotDecodeError(StorageError):
    """The bytes of a snapshot file do not decode to a counter."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Unable to decode counter snapshot {path}: {reason}")
        self.path = path


class ConfigurationError(ValueError):
    """A configured parameter is invalid and the agent must not proceed."""
