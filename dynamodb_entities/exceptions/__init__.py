# Base exception class
from .base import EntityStoreError

# Domain-specific exceptions
from .domain_exceptions import (
    ConflictError,
    ConnectionError,
    ConsistencyError,
    EncodingError,
    ItemNotFoundError,
    JoinError,
    KeySchemaError,
    NotFoundError,
    RelationshipError,
    RetryableError,
    SchemaError,
    TypeMismatchError,
    ValidationError,
)

__all__ = [
    # Base exception
    "EntityStoreError",

    # Domain exceptions (alphabetically ordered)
    "ConflictError",
    "ConnectionError",
    "ConsistencyError",
    "EncodingError",
    "ItemNotFoundError",
    "JoinError",
    "KeySchemaError",
    "NotFoundError",
    "RelationshipError",
    "RetryableError",
    "SchemaError",
    "TypeMismatchError",
    "ValidationError",
]
