"""
Key Resolver

Determines which fields form the key of the primary table or of a secondary
index, and turns caller-supplied key values into store scalars.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from ..exceptions import KeySchemaError, TypeMismatchError, ValidationError
from ..schema import EntitySchema, FieldDescriptor, FieldKind
from .conditions import INVALID_KEY_CONDITIONS

_SCALAR_TYPES = {
    FieldKind.STRING: (str,),
    FieldKind.NUMBER: (int, float, Decimal),
    FieldKind.BOOLEAN: (bool,),
}


class KeyResolver:
    """Resolves key fields of one entity schema.

    Args:
        schema: Resolved entity schema
        codec: Optional ValueCodec; when given, non foreign-key values are
            encoded with it so date and enum keys match what was stored
    """

    def __init__(self, schema: EntitySchema, codec=None):
        self.schema = schema
        self.codec = codec

    def _scope_fields(self, index_name: Optional[str]):
        if index_name is None:
            return self.schema.partition_key, self.schema.sort_key
        index = self.schema.index(index_name)
        if index is None:
            return None, None
        return index.partition_key, index.sort_key

    def partition_key(self, index_name: Optional[str] = None) -> FieldDescriptor:
        """Partition key field of the table, or of the named index.

        Raises:
            KeySchemaError: If the scope has no partition key field
        """
        name, _ = self._scope_fields(index_name)
        descriptor = self.schema.field(name) if name else None
        if descriptor is None:
            raise KeySchemaError(
                "No field annotated with partition key found",
                entity=self.schema.entity_name,
                index_name=index_name
            )
        return descriptor

    def sort_key(self, index_name: Optional[str] = None) -> Optional[FieldDescriptor]:
        """Sort key field of the table or named index, None when the scope has none.

        Raises:
            KeySchemaError: If the named index does not exist
        """
        if index_name is not None and self.schema.index(index_name) is None:
            raise KeySchemaError(
                "No field annotated with partition key found",
                entity=self.schema.entity_name,
                index_name=index_name
            )
        _, name = self._scope_fields(index_name)
        return self.schema.field(name) if name else None

    def require_sort_key(self, index_name: Optional[str] = None) -> FieldDescriptor:
        descriptor = self.sort_key(index_name)
        if descriptor is None:
            raise KeySchemaError(
                "No field annotated with sort key found",
                entity=self.schema.entity_name,
                index_name=index_name
            )
        return descriptor

    def serialize_key_value(self, value: Any, field: FieldDescriptor) -> Any:
        """Convert a key value into its store scalar.

        Foreign key fields accept the related entity's key shape (or the related
        entity itself) and apply their serializer.
        """
        if field.is_foreign_key:
            return field.serializer(value)
        if self.codec is not None:
            return self.codec.serialize_field(value, field)
        return value

    def build_key(self, partition_value: Any, sort_value: Any = None) -> Dict[str, Any]:
        """Build the primary key of one item.

        Raises:
            ValidationError: If the number of key values does not match the schema
        """
        partition = self.partition_key()
        sort = self.sort_key()

        if partition_value is None:
            raise ValidationError(INVALID_KEY_CONDITIONS)
        if (sort is None) != (sort_value is None):
            raise ValidationError(INVALID_KEY_CONDITIONS)

        key = {partition.name: self.serialize_key_value(partition_value, partition)}
        if sort is not None:
            key[sort.name] = self.serialize_key_value(sort_value, sort)
        return key

    def key_values(self, entity: Any):
        """(partition value, sort value) of an entity instance."""
        partition_value = getattr(entity, self.schema.partition_key, None)
        sort_value = getattr(entity, self.schema.sort_key, None) if self.schema.sort_key else None
        return partition_value, sort_value

    def key_from_entity(self, entity: Any) -> Dict[str, Any]:
        return self.build_key(*self.key_values(entity))

    def check_partition_value_type(self, value: Any, index_name: Optional[str] = None) -> None:
        """Reject partition values whose runtime type disagrees with the declared kind.

        Foreign key partition keys take structured values and are not checked.

        Raises:
            TypeMismatchError: On a type mismatch
        """
        field = self.partition_key(index_name)
        if field.is_foreign_key:
            return
        expected = _SCALAR_TYPES.get(field.kind)
        if expected is None:
            return
        mismatched = not isinstance(value, expected)
        if field.kind == FieldKind.NUMBER and isinstance(value, bool):
            mismatched = True
        if mismatched:
            received = type(value).__name__
            raise TypeMismatchError(
                f"Invalid type for partition key. Expected {field.kind.value}, received {received}",
                field=field.name,
                expected=field.kind.value,
                received=received
            )
