"""
Domain-Specific Exceptions for dynamodb-entities

Every failure surfaced by a repository is one of the exceptions below. They all
extend EntityStoreError so callers can catch the whole family at once.

Organized by category:
1. Schema and modeling errors, raised before any store call
2. Data validation and encoding errors
3. Resource not found errors
4. Consistency and relationship errors
5. Store errors mapped from botocore ClientErrors
"""

from typing import Any, Dict, Optional

from .base import EntityStoreError, error_context


# =============================================================================
# Schema and Modeling Errors
# =============================================================================

class SchemaError(EntityStoreError):
    """Raised when an entity type's declarations cannot form a valid schema.

    Used for:
    - Missing partition key declaration
    - Duplicate partition/sort key declarations
    - Field annotations whose store kind cannot be inferred
    - Declaring facts for a schema that is already resolved
    """

    def __init__(self, message: str, entity: Optional[str] = None, field: Optional[str] = None):
        self.entity = entity
        self.field = field
        super().__init__(message, None, error_context(entity=entity, field=field))


class KeySchemaError(EntityStoreError):
    """No key field exists for the requested scope (table when index_name is None)."""

    def __init__(self, message: str, entity: Optional[str] = None, index_name: Optional[str] = None):
        self.entity = entity
        self.index_name = index_name
        super().__init__(message, None, error_context(entity=entity, index_name=index_name))


# =============================================================================
# Data Validation and Encoding Errors
# =============================================================================

class ValidationError(EntityStoreError):
    """Raised when data or call arguments are rejected.

    Used for:
    - Pydantic model validation failures on deserialized records
    - Wrong number of key conditions (missing sort key, multiple operators)
    - Malformed pagination tokens
    - ValidationException and size limit errors from DynamoDB
    """

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Field name to problem description
            original_error: The exception that triggered the failure
        """
        self.errors = errors or {}
        super().__init__(message, original_error, error_context(validation_errors=self.errors or None))


class TypeMismatchError(EntityStoreError):
    """A partition key value's runtime type disagrees with its declared kind."""

    def __init__(self, message: str, field: str, expected: str, received: str):
        self.field = field
        self.expected = expected
        self.received = received
        super().__init__(message, None, {'field': field, 'expected': expected, 'received': received})


class EncodingError(EntityStoreError):
    def __init__(self, message: str, field: Optional[str] = None, original_error: Optional[Exception] = None):
        self.field = field
        super().__init__(message, original_error, error_context(field=field))


# =============================================================================
# Resource Not Found Errors
# =============================================================================

class NotFoundError(EntityStoreError):
    """Raised when a table, index or item does not exist."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_name: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_type = resource_type
        self.resource_name = resource_name
        super().__init__(
            message,
            original_error,
            error_context(resource_type=resource_type, resource_name=resource_name)
        )


class ItemNotFoundError(NotFoundError):
    """Raised by delete for an absent item; get returns None instead."""

    def __init__(self, table_name: str, key: dict, message: Optional[str] = None, original_error: Optional[Exception] = None):
        self.table_name = table_name
        self.key = key
        super().__init__(
            message or f"Item not found in table '{table_name}' with key: {key}",
            'item',
            table_name,
            original_error
        )
        self.context['key'] = key


# =============================================================================
# Consistency and Relationship Errors
# =============================================================================

class ConsistencyError(EntityStoreError):
    """Raised when a uniqueness assumption about stored data is violated."""

    def __init__(self, message: str, table_name: Optional[str] = None, key: Optional[Any] = None):
        self.table_name = table_name
        self.key = key
        super().__init__(message, None, error_context(table_name=table_name, key=key))


class RelationshipError(EntityStoreError):
    """A has-one/has-many relationship has no usable belongs-to counterpart.

    This is a static modeling error, not a runtime data error.
    """

    def __init__(self, message: str, entity: Optional[str] = None, relation: Optional[str] = None):
        self.entity = entity
        self.relation = relation
        super().__init__(message, None, error_context(entity=entity, relation=relation))


class JoinError(RelationshipError):
    """Raised when a has-many join does not fit in a single result page."""


# =============================================================================
# Store Errors
# =============================================================================

class ConflictError(EntityStoreError):
    """Conditional check failures, transaction conflicts and resources in use."""

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        super().__init__(message, original_error, error_context(resource_id=resource_id))


class ConnectionError(EntityStoreError):
    """Raised when DynamoDB cannot be reached or rejects the credentials.

    Also the fallback for unrecognized DynamoDB error codes.
    """


class RetryableError(EntityStoreError):
    """Throttling or a transient service failure.

    botocore has already spent its configured retries when this is raised;
    repositories never retry on their own.
    """

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, original_error, error_context(retry_after_seconds=retry_after_seconds))
