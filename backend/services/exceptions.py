"""Typed exception hierarchy for preference persistence errors.

Provides structured exceptions so callers can tell a key conflict apart
from transaction failures and other storage errors.
"""

from typing import Any


class PreferenceStoreError(Exception):
    """Base exception for all preference store errors.

    Carries the operation name so callers can log the failure without
    re-deriving what was being attempted.
    """

    def __init__(self, message: str, operation: str = ""):
        self.operation = operation
        super().__init__(message)


class ConflictError(PreferenceStoreError):
    """An insert collided with an existing (user_id, category, name) row."""

    def __init__(self, key: tuple[str, str, str], operation: str = "insert"):
        self.key = key
        super().__init__(
            "Preference <userId, category, name> already exists: <%s, %s, %s>" % key,
            operation,
        )


class UnsupportedBackendError(PreferenceStoreError):
    """The database dialect has no upsert or delete strategy. Never retried."""

    def __init__(self, dialect: str, operation: str = ""):
        self.dialect = dialect
        super().__init__(f"Unsupported database backend: {dialect!r}", operation)


class TransactionError(PreferenceStoreError):
    """Begin, commit or rollback of a transaction failed.

    When a rollback fails while undoing an earlier error, that error is kept
    in ``original``; ``__cause__`` is the driver error from the rollback.
    """

    def __init__(self, operation: str, original: BaseException | None = None):
        self.original = original
        super().__init__(f"Transaction failure during {operation}", operation)


class StorageError(PreferenceStoreError):
    """Any other error reported by the database."""

    def __init__(self, operation: str, **context: Any):
        self.context = context
        details = ", ".join(f"{k}={v}" for k, v in context.items())
        message = f"failed to {operation}"
        if details:
            message = f"{message} with {details}"
        super().__init__(message, operation)


class InvalidInputError(PreferenceStoreError):
    """A preference record or argument failed validation."""

    def __init__(self, field: str, value: Any, reason: str = "", operation: str = ""):
        self.field = field
        self.value = value
        message = f"Invalid {field}: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, operation)
