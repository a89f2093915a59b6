"""Domain layer for mysociety application."""

from mysociety.domain.entities import (
    Actor,
    InflowRecord,
    OutflowRecord,
    Record,
    RecordKind,
    RecordListing,
)
from mysociety.domain.errors import (
    DomainError,
    NotFoundError,
    NotificationError,
    StorageError,
    ValidationError,
)

__all__ = [
    "Actor",
    "InflowRecord",
    "OutflowRecord",
    "Record",
    "RecordKind",
    "RecordListing",
    "DomainError",
    "NotFoundError",
    "NotificationError",
    "StorageError",
    "ValidationError",
]
