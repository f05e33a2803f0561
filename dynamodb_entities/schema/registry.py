"""
Schema registry for dynamodb-entities.

The registry collects schema facts for pydantic entity models and resolves them
into immutable EntitySchema objects:

- register() harvests the Annotated markers declared on a model
- declare() adds facts for one field, in any order, before resolution
- resolve() validates, caches and freezes the schema of a model

A registry is an ordinary object. Construct one at startup and hand it to every
repository that should share schemas; tests simply build a fresh one.

Example:
    >>> registry = SchemaRegistry()
    >>> registry.declare(User, "email", Index())
    >>> schema = registry.resolve(User)
    >>> schema.partition_key
    'id'
"""

import logging
import threading
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import UnionType
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Tuple, Union, get_args, get_origin

from pydantic import BaseModel

from ..exceptions import SchemaError
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
    is_schema_marker,
)
from .descriptors import (
    EntitySchema,
    FieldDescriptor,
    RelationshipDescriptor,
    SecondaryIndexDescriptor,
    get_default_index_name,
)

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Registry of entity schemas.

    Facts may be declared for a model until its schema is resolved. After that
    the schema is frozen and further declarations raise SchemaError.
    """

    def __init__(self) -> None:
        self._facts: Dict[type, Dict[str, List[Any]]] = {}
        self._schemas: Dict[type, EntitySchema] = {}
        self._lock = threading.RLock()

    def register(self, model: type) -> None:
        """Harvest the schema markers declared on a model's fields.

        Registering the same model twice is a no-op.

        Raises:
            SchemaError: If model is not a pydantic model class
        """
        with self._lock:
            if model in self._facts:
                return
            _require_model(model)
            self._facts[model] = {
                name: [marker for marker in info.metadata if is_schema_marker(marker)]
                for name, info in model.model_fields.items()
            }
            logger.debug(f"Registered entity type {model.__name__}")

    def declare(self, model: type, field_name: str, *facts: Any) -> None:
        """Add schema facts for one field of a model.

        Args:
            model: Pydantic model class
            field_name: Name of a field declared on the model
            *facts: Declaration markers (PartitionKey(), Index(...), ...)

        Raises:
            SchemaError: If the schema is already resolved, the field does not
                exist, or a fact is not a declaration marker
        """
        with self._lock:
            if model in self._schemas:
                raise SchemaError(
                    f"Schema for {model.__name__} is already resolved; cannot declare facts for '{field_name}'",
                    entity=model.__name__,
                    field=field_name
                )
            self.register(model)
            if field_name not in self._facts[model]:
                raise SchemaError(
                    f"{model.__name__} has no field named '{field_name}'",
                    entity=model.__name__,
                    field=field_name
                )
            for fact in facts:
                if not is_schema_marker(fact):
                    raise SchemaError(
                        f"Unsupported declaration {fact!r} for {model.__name__}.{field_name}",
                        entity=model.__name__,
                        field=field_name
                    )
            self._facts[model][field_name].extend(facts)

    def resolve(self, model: type) -> EntitySchema:
        """Return the frozen schema of a model, building it on first use.

        Raises:
            SchemaError: If the declarations do not form a valid schema
        """
        schema = self._schemas.get(model)
        if schema is not None:
            return schema

        with self._lock:
            schema = self._schemas.get(model)
            if schema is None:
                self.register(model)
                schema = _build_schema(model, self._facts[model])
                self._schemas[model] = schema
                logger.debug(
                    f"Resolved schema for {model.__name__}: table={schema.table_name}, "
                    f"keys={schema.key_field_names}, indexes={[i.name for i in schema.indexes]}"
                )
            return schema

    def is_resolved(self, model: type) -> bool:
        return model in self._schemas

    def schemas(self) -> Iterator[EntitySchema]:
        """Iterate over resolved schemas."""
        yield from list(self._schemas.values())


# =============================================================================
# Schema building
# =============================================================================

def _require_model(model: Any) -> None:
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise SchemaError(f"Entity types must be pydantic models, got {model!r}")


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Strip Optional[...] from an annotation."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return _unwrap_optional(get_args(annotation)[0])
    if origin is Union or origin is UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        optional = len(args) < len(get_args(annotation))
        if len(args) == 1:
            inner, _ = _unwrap_optional(args[0])
            return inner, optional
        return annotation, optional
    return annotation, False


def infer_kind(annotation: Any) -> Tuple[Optional[FieldKind], Optional[Tuple[Any, ...]]]:
    """Infer the store kind (and allowed enum values) of a field annotation.

    Returns (None, None) when the annotation maps to no kind.
    """
    annotation, _ = _unwrap_optional(annotation)
    origin = get_origin(annotation)

    if origin is Literal:
        return FieldKind.ENUM, tuple(get_args(annotation))

    target = origin or annotation
    if not isinstance(target, type):
        return None, None

    if issubclass(target, Enum):
        return FieldKind.ENUM, tuple(member.value for member in target)
    if issubclass(target, bool):
        return FieldKind.BOOLEAN, None
    if issubclass(target, str):
        return FieldKind.STRING, None
    if issubclass(target, (int, float, Decimal)):
        return FieldKind.NUMBER, None
    if issubclass(target, datetime):
        return FieldKind.DATE, None
    if issubclass(target, (dict, Mapping, BaseModel)):
        return FieldKind.OBJECT, None
    if issubclass(target, (list, tuple, set, frozenset)):
        return FieldKind.ARRAY, None
    return None, None


def _merge_attributes(markers: List[Any]) -> Attribute:
    merged = Attribute()
    for marker in markers:
        if not isinstance(marker, Attribute):
            continue
        if marker.kind is not None:
            merged.kind = marker.kind
        if marker.optional is not None:
            merged.optional = marker.optional
        if marker.enums is not None:
            merged.enums = marker.enums
    return merged


def _build_schema(model: type, facts: Dict[str, List[Any]]) -> EntitySchema:
    entity = model.__name__
    meta = getattr(model, "Meta", None)
    table_name = getattr(meta, "table_name", None) or entity
    publish_changes = bool(getattr(meta, "publish_changes", False))

    fields: List[FieldDescriptor] = []
    relationships: List[RelationshipDescriptor] = []
    partition_keys: List[str] = []
    sort_keys: List[str] = []
    index_declarations: List[SecondaryIndex] = list(getattr(meta, "indexes", None) or [])

    for name, info in model.model_fields.items():
        markers = facts.get(name, [])

        joins = [m for m in markers if isinstance(m, (HasOne, HasMany))]
        if joins:
            if len(markers) > 1:
                raise SchemaError(
                    f"Relationship field {entity}.{name} cannot carry other declarations",
                    entity=entity,
                    field=name
                )
            join = joins[0]
            relationships.append(RelationshipDescriptor(name, join.kind, join.provider, join.foreign_key))
            continue

        belongs_to = [m for m in markers if isinstance(m, BelongsTo)]
        if len(belongs_to) > 1:
            raise SchemaError(f"{entity}.{name} declares more than one belongs-to", entity=entity, field=name)
        foreign = belongs_to[0] if belongs_to else None

        attribute = _merge_attributes(markers)
        inner_annotation, annotated_optional = _unwrap_optional(info.annotation)
        optional = attribute.optional if attribute.optional is not None else (
            annotated_optional or not info.is_required()
        )

        if foreign is not None:
            kind, enums = FieldKind.STRING, None
        else:
            kind, enums = infer_kind(info.annotation)
            if attribute.kind is not None:
                kind = attribute.kind
            if kind is None:
                raise SchemaError(
                    f"Cannot infer the store kind of {entity}.{name} from {info.annotation!r}; "
                    f"declare it with Attribute(kind=...)",
                    entity=entity,
                    field=name
                )
        if attribute.enums is not None:
            enums = tuple(attribute.enums)

        fields.append(FieldDescriptor(
            name=name,
            kind=kind,
            optional=optional,
            enums=enums if kind == FieldKind.ENUM else None,
            serializer=foreign.serializer if foreign else None,
            deserializer=foreign.deserializer if foreign else None,
            target=foreign.target if foreign else None,
            text_value=kind == FieldKind.ISO_DATE and inner_annotation is str,
        ))

        for marker in markers:
            if isinstance(marker, PartitionKey):
                partition_keys.append(name)
            elif isinstance(marker, SortKey):
                sort_keys.append(name)
            elif isinstance(marker, Index):
                index_declarations.append(SecondaryIndex(name, marker.sort_key, marker.name, marker.kind))

        if foreign is not None:
            relationships.append(RelationshipDescriptor(name, RelationKind.BELONGS_TO, foreign.target, name))
            if foreign.key_role == KeyRole.PARTITION_KEY:
                partition_keys.append(name)
            elif foreign.key_role == KeyRole.SORT_KEY:
                sort_keys.append(name)
            elif foreign.key_role == KeyRole.INDEX:
                index_declarations.append(SecondaryIndex(name, None, None, IndexKind.GLOBAL))

    stored = {f.name: f for f in fields}

    if not partition_keys:
        raise SchemaError(f"No partition key declared for {entity}", entity=entity)
    if len(set(partition_keys)) > 1:
        raise SchemaError(f"{entity} declares more than one partition key: {partition_keys}", entity=entity)
    if len(set(sort_keys)) > 1:
        raise SchemaError(f"{entity} declares more than one sort key: {sort_keys}", entity=entity)

    partition_key = partition_keys[0]
    sort_key = sort_keys[0] if sort_keys else None
    if sort_key == partition_key:
        raise SchemaError(f"{entity}.{partition_key} cannot be both partition and sort key", entity=entity)
    for key_name in (partition_key, sort_key):
        if key_name and stored[key_name].kind == FieldKind.BOOLEAN:
            raise SchemaError(f"Boolean field {entity}.{key_name} cannot be a key", entity=entity, field=key_name)

    indexes = _build_indexes(entity, index_declarations, stored, partition_key)

    return EntitySchema(
        model_class=model,
        table_name=table_name,
        fields=tuple(fields),
        partition_key=partition_key,
        sort_key=sort_key,
        indexes=indexes,
        relationships=tuple(relationships),
        publish_changes=publish_changes,
    )


def _build_indexes(
    entity: str,
    declarations: List[SecondaryIndex],
    stored: Dict[str, FieldDescriptor],
    partition_key: str
) -> Tuple[SecondaryIndexDescriptor, ...]:
    indexes: List[SecondaryIndexDescriptor] = []
    seen = set()
    for declaration in declarations:
        name = declaration.name or get_default_index_name(
            declaration.kind, declaration.partition_key, declaration.sort_key
        )
        for key_name in (declaration.partition_key, declaration.sort_key):
            if key_name and key_name not in stored:
                raise SchemaError(
                    f"Index '{name}' of {entity} references unknown field '{key_name}'",
                    entity=entity,
                    field=key_name
                )
        if declaration.kind == IndexKind.LOCAL:
            if declaration.partition_key != partition_key:
                raise SchemaError(
                    f"Local index '{name}' of {entity} must be partitioned on '{partition_key}'",
                    entity=entity,
                    field=declaration.partition_key
                )
            if not declaration.sort_key:
                raise SchemaError(f"Local index '{name}' of {entity} requires a sort key", entity=entity)
        if name in seen:
            raise SchemaError(f"{entity} declares index '{name}' more than once", entity=entity)
        seen.add(name)
        indexes.append(SecondaryIndexDescriptor(
            name=name,
            kind=declaration.kind,
            partition_key=declaration.partition_key,
            sort_key=declaration.sort_key,
        ))
    return tuple(indexes)
