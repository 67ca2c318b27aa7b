"""
db/errors.py -- Storage-layer error kinds.

Stores raise only these (never raw SQLAlchemy exceptions). They carry no
business meaning: the service layer decides whether a ConstraintViolation on
users.email is "AlreadyExists" or something else.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for every storage-layer failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RecordNotFound(StorageError):
    """No row matched the lookup that an update or delete depends on."""


class ConstraintViolation(StorageError):
    """A uniqueness, foreign-key or not-null constraint rejected the write.

    kind is one of "unique", "foreign_key", "not_null" or "other".
    columns holds the offending column names when the driver reports them.
    """

    def __init__(self, message: str, kind: str = "other", columns: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.kind = kind
        self.columns = columns

    def involves(self, column: str) -> bool:
        """Return True if the violation names the given column."""
        if column in self.columns:
            return True
        return column in self.message.lower()


class ConnectionFailure(StorageError):
    """The database could not be reached or the statement failed to execute."""


__all__ = ["StorageError", "RecordNotFound", "ConstraintViolation", "ConnectionFailure"]
