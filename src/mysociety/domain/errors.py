"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for callers that treat bad input generically.
    """


class ValidationError(DomainError):
    """Invalid input or a violated business rule. Storage is never touched."""


class NotFoundError(DomainError):
    """Target record does not exist or is already soft-deleted."""


class StorageError(RuntimeError):
    """Reading, backing up or publishing the store file failed.

    The mutation in flight is aborted and the previous file version is left
    in place.
    """


class NotificationError(RuntimeError):
    """Delivery of a notification failed after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


def record_not_found(kind: str, record_id: str) -> str:
    """Return message for a missing or deleted record."""
    return f"{kind.capitalize()} record {record_id} not found"


def immutable_fields(names: list[str]) -> str:
    """Return message when a caller tries to overwrite system-managed fields."""
    plural = "s" if len(names) != 1 else ""
    return f"Field{plural} {', '.join(sorted(names))} cannot be changed"


def unknown_fields(kind: str, names: list[str]) -> str:
    """Return message for fields that do not exist on a record kind."""
    return f"Unknown field(s) for {kind} record: {', '.join(sorted(names))}"


def storage_failure(operation: str, table: str, target: str | None, error: Exception) -> str:
    """Return message describing a failed store operation."""
    where = f"{table} record {target}" if target else table
    return f"Failed to {operation} {where}: {error}"
