from __future__ import annotations
from typing import Any


class JsonKitError(Exception):
    """Base class for jsonkit errors."""


class ConfigurationError(JsonKitError):
    """A builder or database was used in a state that does not allow the call."""


class MissingFieldError(ConfigurationError):
    """A chain operator was called before where()/and_()/or_() selected a field."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"no field selected for {operator}; call where(), and_() or or_() first")
        self.operator = operator


class PersistenceError(JsonKitError):
    """Loading or saving the database file failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class PatternError(JsonKitError):
    """A $regex operand could not be compiled."""

    def __init__(self, pattern: Any, reason: str) -> None:
        super().__init__(f"invalid $regex pattern {pattern!r}: {reason}")
        self.pattern = pattern


class QueryError(ConfigurationError):
    """A query or one of its $and/$or/$not clauses is not a mapping."""
