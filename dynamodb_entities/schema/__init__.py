from .declarations import (
    Attribute,
    BelongsTo,
    FieldKind,
    HasMany,
    HasOne,
    Index,
    IndexKind,
    KeyRole,
    PartitionKey,
    RelationKind,
    SecondaryIndex,
    SortKey,
)
from .descriptors import (
    EntitySchema,
    FieldDescriptor,
    RelationshipDescriptor,
    SecondaryIndexDescriptor,
    get_default_index_name,
)
from .registry import SchemaRegistry, infer_kind
from .table_definition import build_table_definition

__all__ = [
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

    # Descriptors
    "EntitySchema",
    "FieldDescriptor",
    "RelationshipDescriptor",
    "SecondaryIndexDescriptor",
    "get_default_index_name",

    # Registry
    "SchemaRegistry",
    "infer_kind",
    "build_table_definition",
]
