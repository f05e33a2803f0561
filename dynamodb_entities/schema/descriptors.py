"""
Schema Descriptors

Immutable, resolved view of an entity type. Built once by SchemaRegistry.resolve()
and shared by every repository bound to that type.
"""

from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable, Dict, Optional, Tuple

from .declarations import FieldKind, IndexKind, RelationKind

CREATED_AT_NAMES = ("created_at", "CreatedAt", "createdAt")
UPDATED_AT_NAMES = ("updated_at", "UpdatedAt", "updatedAt")


def get_default_index_name(kind: IndexKind, partition_field: str, sort_field: Optional[str] = None) -> str:
    """Derive a secondary index name from its key fields.

    Examples:
        >>> get_default_index_name(IndexKind.GLOBAL, "status", "published_at")
        'status-published_atGlobalIndex'
        >>> get_default_index_name("local", "id")
        'idLocalIndex'
    """
    suffix = "GlobalIndex" if IndexKind(kind) == IndexKind.GLOBAL else "LocalIndex"
    sort_part = f"-{sort_field}" if sort_field else ""
    return f"{partition_field}{sort_part}{suffix}"


@dataclass(frozen=True)
class FieldDescriptor:
    """A stored field."""
    name: str
    kind: FieldKind
    optional: bool = False
    enums: Optional[Tuple[Any, ...]] = None
    serializer: Optional[Callable[[Any], Any]] = None
    deserializer: Optional[Callable[[Any], Any]] = None
    target: Optional[Callable[[], type]] = None
    # iso_date field annotated as str: the ISO string is handed back unparsed
    text_value: bool = False

    @property
    def is_foreign_key(self) -> bool:
        return self.serializer is not None


@dataclass(frozen=True)
class SecondaryIndexDescriptor:
    name: str
    kind: IndexKind
    partition_key: str
    sort_key: Optional[str] = None


@dataclass(frozen=True)
class RelationshipDescriptor:
    """A relationship declared on an entity type.

    For belongs-to, ``field_name`` is the stored foreign key field and
    ``provider`` returns the referenced type. For has-one/has-many,
    ``field_name`` is the virtual field joins populate and ``foreign_key``
    optionally names the counterpart belongs-to field on the related type.
    """
    field_name: str
    kind: RelationKind
    provider: Callable[[], type]
    foreign_key: Optional[str] = None

    def related_model(self) -> type:
        return self.provider()


@dataclass(frozen=True)
class EntitySchema:
    """Resolved schema of one entity type."""
    model_class: type
    table_name: str
    fields: Tuple[FieldDescriptor, ...]
    partition_key: str
    sort_key: Optional[str] = None
    indexes: Tuple[SecondaryIndexDescriptor, ...] = ()
    relationships: Tuple[RelationshipDescriptor, ...] = ()
    publish_changes: bool = False
    _fields_by_name: Dict[str, FieldDescriptor] = dataclass_field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_fields_by_name", {f.name: f for f in self.fields})

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def field(self, name: str) -> Optional[FieldDescriptor]:
        return self._fields_by_name.get(name)

    def index(self, name: str) -> Optional[SecondaryIndexDescriptor]:
        for index in self.indexes:
            if index.name == name:
                return index
        return None

    def relationship(self, name: str) -> Optional[RelationshipDescriptor]:
        for relationship in self.relationships:
            if relationship.field_name == name:
                return relationship
        return None

    def belongs_to(self):
        """Belongs-to relationships, in field order."""
        return tuple(r for r in self.relationships if r.kind == RelationKind.BELONGS_TO)

    def joins(self):
        """Has-one and has-many relationships, in field order."""
        return tuple(r for r in self.relationships if r.kind != RelationKind.BELONGS_TO)

    @property
    def key_field_names(self) -> Tuple[str, ...]:
        if self.sort_key:
            return (self.partition_key, self.sort_key)
        return (self.partition_key,)

    @property
    def stored_field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def created_at_field(self) -> Optional[str]:
        return self._first_declared(CREATED_AT_NAMES)

    @property
    def updated_at_field(self) -> Optional[str]:
        return self._first_declared(UPDATED_AT_NAMES)

    def _first_declared(self, candidates: Tuple[str, ...]) -> Optional[str]:
        for name in candidates:
            if name in self._fields_by_name:
                return name
        return None
