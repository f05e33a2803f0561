"""
Schema Declarations

Markers placed inside ``typing.Annotated`` on pydantic model fields describe how
an entity is stored. Each marker states one fact about one field; the registry
merges them by field name, so the order in which they appear does not matter:

    class Post(BaseModel):
        user_id: Annotated[Dict[str, Any], BelongsTo(lambda: User, user_key, user_from_key)]
        id: Annotated[str, SortKey()]
        status: Annotated[str, Index(name="StatusIndex", sort_key="published_at")]
        comments: Annotated[List[Any], HasMany(lambda: Comment)] = []

        class Meta:
            table_name = "Posts"
            publish_changes = True

Table-level facts (table name, change notifications, indexes whose partition
key is declared away from the field) live on the inner ``Meta`` class, the same
way table metadata is attached to domain models elsewhere in this package.
"""

from enum import Enum
from typing import Any, Callable, List, Optional


class FieldKind(str, Enum):
    """Store-level kind of a field."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ISO_DATE = "iso_date"
    ENUM = "enum"
    OBJECT = "object"
    ARRAY = "array"


class IndexKind(str, Enum):
    """Secondary index kind."""
    GLOBAL = "global"
    LOCAL = "local"


class KeyRole(str, Enum):
    """Key role a belongs-to field plays in its own table."""
    PARTITION_KEY = "partition_key"
    SORT_KEY = "sort_key"
    INDEX = "index"


class RelationKind(str, Enum):
    """Relationship kind."""
    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"


class Attribute:
    """Overrides the inferred store kind or optionality of a field."""

    def __init__(
        self,
        kind: Optional[FieldKind] = None,
        optional: Optional[bool] = None,
        enums: Optional[List[Any]] = None
    ):
        self.kind = FieldKind(kind) if kind is not None else None
        self.optional = optional
        self.enums = list(enums) if enums is not None else None

    def __repr__(self) -> str:
        return f"Attribute(kind={self.kind}, optional={self.optional}, enums={self.enums})"


class PartitionKey:
    """Marks the partition key of the primary table."""

    def __repr__(self) -> str:
        return "PartitionKey()"


class SortKey:
    """Marks the sort key of the primary table."""

    def __repr__(self) -> str:
        return "SortKey()"


class Index:
    """Marks the field as the partition key of a secondary index.

    When ``name`` is omitted the index is named after its key fields, see
    ``get_default_index_name``. A local index shares the table partition key, so
    it is declared on the partition key field with a ``sort_key``. A field may
    carry several ``Index`` markers.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        kind: IndexKind = IndexKind.GLOBAL,
        sort_key: Optional[str] = None
    ):
        self.name = name
        self.kind = IndexKind(kind)
        self.sort_key = sort_key

    def __repr__(self) -> str:
        return f"Index(name={self.name!r}, kind={self.kind.value}, sort_key={self.sort_key!r})"


class SecondaryIndex:
    """Table-level index declaration, listed in ``Meta.indexes``."""

    def __init__(
        self,
        partition_key: str,
        sort_key: Optional[str] = None,
        name: Optional[str] = None,
        kind: IndexKind = IndexKind.GLOBAL
    ):
        self.partition_key = partition_key
        self.sort_key = sort_key
        self.name = name
        self.kind = IndexKind(kind)

    def __repr__(self) -> str:
        return (
            f"SecondaryIndex(partition_key={self.partition_key!r}, sort_key={self.sort_key!r}, "
            f"name={self.name!r}, kind={self.kind.value})"
        )


class BelongsTo:
    """Denormalized foreign key to another entity type.

    In memory the field holds the related entity's key shape (usually a dict);
    in the store it holds whatever ``serializer`` returns for that shape.
    ``deserializer`` must invert it.

    Args:
        target: Zero-argument callable returning the related model class
        serializer: Related key shape -> store scalar
        deserializer: Store scalar -> related key shape
        key_role: Key role of this field in its own table, or None for a
            plain attribute. ``KeyRole.INDEX`` declares a global index
            partitioned on this field.
    """

    def __init__(
        self,
        target: Callable[[], type],
        serializer: Callable[[Any], Any],
        deserializer: Callable[[Any], Any],
        key_role: Optional[KeyRole] = KeyRole.PARTITION_KEY
    ):
        self.target = target
        self.serializer = serializer
        self.deserializer = deserializer
        self.key_role = KeyRole(key_role) if key_role is not None else None

    def __repr__(self) -> str:
        role = self.key_role.value if self.key_role else None
        return f"BelongsTo(key_role={role})"


class HasOne:
    """Virtual field holding the single related row, populated by joins."""

    kind = RelationKind.HAS_ONE

    def __init__(self, provider: Callable[[], type], foreign_key: Optional[str] = None):
        self.provider = provider
        self.foreign_key = foreign_key

    def __repr__(self) -> str:
        return f"HasOne(foreign_key={self.foreign_key!r})"


class HasMany:
    """Virtual field holding all related rows, populated by joins."""

    kind = RelationKind.HAS_MANY

    def __init__(self, provider: Callable[[], type], foreign_key: Optional[str] = None):
        self.provider = provider
        self.foreign_key = foreign_key

    def __repr__(self) -> str:
        return f"HasMany(foreign_key={self.foreign_key!r})"


SCHEMA_MARKERS = (Attribute, PartitionKey, SortKey, Index, BelongsTo, HasOne, HasMany)


def is_schema_marker(value: Any) -> bool:
    return isinstance(value, SCHEMA_MARKERS)
