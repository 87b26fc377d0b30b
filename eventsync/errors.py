from __future__ import annotations

from typing import Optional


class EventSyncError(Exception):
    """Base class for errors raised by eventsync."""


class ResultsFormatError(EventSyncError, ValueError):
    """An imported results payload was rejected as a whole."""

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class StoreError(EventSyncError, OSError):
    """The results store could not read or write a record."""


class PersistenceError(EventSyncError):
    """
    A mutating engine operation completed in memory but its write failed.

    The in-memory state is authoritative; the next mutating operation (or
    AlignmentEngine.persist) writes the current map again.
    """
