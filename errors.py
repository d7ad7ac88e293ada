"""Exceptions raised by the history and statistics engine."""


class HistoryError(Exception):
    """Base exception for history engine errors."""
    pass


class StorageError(HistoryError):
    """Raised when the SQLite store cannot be used."""
    pass


class StorageReadError(StorageError):
    """Raised when reading from the store fails."""
    pass


class StorageWriteError(StorageError):
    """Raised when writing to the store fails.

    Archival failures surface as this error and block deletion of the live
    workout.
    """
    pass


class RecordConflict(HistoryError):
    """Raised when two archival calls disagree on the grouping identifier."""

    def __init__(self, message: str, grouping_id: str | None = None):
        super().__init__(message)
        self.grouping_id = grouping_id


class MissingUser(HistoryError, ValueError):
    """Raised when a user reference does not exist."""
    pass


class MissingExercise(HistoryError, ValueError):
    """Raised when an exercise reference does not exist."""
    pass


class MissingWorkout(HistoryError, ValueError):
    """Raised when a workout reference does not exist."""
    pass
