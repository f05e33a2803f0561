from .config import DEFAULT_QUERY_LIMIT, DynamoDBConfig
from .exceptions import (
    ConflictError,
    ConnectionError,
    ConsistencyError,
    EncodingError,
    EntityStoreError,
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
from .schema import (
    # Declarations
    Attribute,
    BelongsTo,
    HasMany,
    HasOne,
    Index,
    PartitionKey,
    SecondaryIndex,
    SortKey,
    # Enums
    FieldKind,
    IndexKind,
    KeyRole,
    RelationKind,
    # Registry and descriptors
    EntitySchema,
    SchemaRegistry,
    build_table_definition,
    get_default_index_name,
)
from .core import (
    # Change notifications
    ChangeDispatcher,
    EntityChangeEvent,
    TriggerEvent,
    subscribe_to_changes,
    # Gateways
    InMemoryStore,
    TableGateway,
    create_table_gateway,
)
from .repositories import QueryResult, Repository, SortOrder

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DEFAULT_QUERY_LIMIT",
    "DynamoDBConfig",

    # Exceptions
    "ConflictError",
    "ConnectionError",
    "ConsistencyError",
    "EncodingError",
    "EntityStoreError",
    "ItemNotFoundError",
    "JoinError",
    "KeySchemaError",
    "NotFoundError",
    "RelationshipError",
    "RetryableError",
    "SchemaError",
    "TypeMismatchError",
    "ValidationError",

    # Declarations
    "Attribute",
    "BelongsTo",
    "HasMany",
    "HasOne",
    "Index",
    "PartitionKey",
    "SecondaryIndex",
    "SortKey",

    # Enums
    "FieldKind",
    "IndexKind",
    "KeyRole",
    "RelationKind",

    # Registry and descriptors
    "EntitySchema",
    "SchemaRegistry",
    "build_table_definition",
    "get_default_index_name",

    # Change notifications
    "ChangeDispatcher",
    "EntityChangeEvent",
    "TriggerEvent",
    "subscribe_to_changes",

    # Gateways
    "InMemoryStore",
    "TableGateway",
    "create_table_gateway",

    # Repositories
    "QueryResult",
    "Repository",
    "SortOrder",
]
