"""
Storage error kinds shared by both persistence backends.

Backend failures are raised as StorageError subclasses so callers can tell a
network outage apart from a rejected write. "Not found" on optional lookups is
never raised; those return an empty default instead.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for backend-level failures."""

    kind = "storage_error"

    def __init__(self, message: str = "", operation: str = ""):
        super().__init__(message)
        self.operation = operation

    def to_dict(self) -> dict:
        return {"error": str(self) or self.kind, "kind": self.kind, "operation": self.operation}


class BackendUnavailable(StorageError):
    """The backend could not be reached (network, lock, I/O)."""

    kind = "backend_unavailable"


class BackendRejected(StorageError):
    """The backend was reached but refused the query or write."""

    kind = "backend_rejected"


class InvalidInput(ValueError):
    """Malformed id, role, or record at the facade boundary."""


class ChallengeNotFound(LookupError):
    """Certification targeted a challenge missing from the user's collection."""


class ClassNotFound(LookupError):
    """No class carries the given join code."""


class AlreadyJoined(Exception):
    """The student is already a member of the class."""
