"""Custom exceptions for the garage association store."""
from typing import Any, Iterable


class NotFoundError(LookupError):
    """Raised when a person or vehicle lookup has no live match."""

    def __init__(self, entity: str, key: Any, reason: str = "not found"):
        self.entity = entity
        self.key = key
        self.reason = reason
        super().__init__(f"{entity} {key!r} {reason}")


class InvalidAssociationError(ValueError):
    """Raised when a collection name is not declared on Person."""

    def __init__(self, collection_name: str, declared: Iterable[str]):
        self.collection_name = collection_name
        self.declared = tuple(declared)
        super().__init__(
            f"'{collection_name}' is not an association of Person (declared: {', '.join(self.declared)})"
        )


class InvalidMatchFieldError(ValueError):
    """Raised when an upsert is keyed on a field without a unique constraint."""

    def __init__(self, field: str, allowed: Iterable[str]):
        self.field = field
        self.allowed = tuple(allowed)
        super().__init__(f"cannot upsert on '{field}'; unique fields are: {', '.join(self.allowed)}")


class ConstraintViolationError(Exception):
    """Raised when a write breaks a database constraint. Nothing from the write is applied."""

    def __init__(self, message: str, original: Exception):
        self.original = original
        super().__init__(f"{message}: {original}")


class StoreConnectionError(ConnectionError):
    """Raised when the backing database cannot be reached."""

    def __init__(self, original: Exception):
        self.original = original
        super().__init__(f"database unreachable: {original}")
