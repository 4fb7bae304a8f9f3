"""Failure types raised inside the data layer.

None of these escape an exported data-access operation: the facade turns
them into ``{"success": False, "message": ...}`` results.
"""
from typing import Optional


class GardenError(Exception):
    """Base class carrying a human-readable message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(GardenError):
    """A precondition checked explicitly before writing (missing FK, duplicate PK, empty update)."""


class NotFound(ValidationFailure):
    """The row an update or delete targets does not exist."""


class EngineFailure(GardenError):
    """The database rejected a statement for a reason that was not pre-checked."""


class ConnectivityFailure(GardenError):
    """The pool could not hand out a connection (closed, exhausted or unreachable)."""


class FatalScriptFailure(GardenError):
    """A non-DROP statement of the seed script failed; the replay stops there."""

    def __init__(self, message: str, index: int, statement: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.statement = statement


def engine_message(exc: Exception) -> str:
    """Driver-level text of a SQLAlchemy error, without the SQL echo."""
    return str(getattr(exc, "orig", None) or exc)
