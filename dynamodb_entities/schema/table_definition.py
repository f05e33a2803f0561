"""
Table definitions derived from entity schemas.

build_table_definition() returns the keyword arguments of boto3's
``create_table`` for a resolved schema, so tables and their secondary indexes
always match what repositories query against.
"""

from typing import Any, Dict, List

from .declarations import FieldKind, IndexKind
from .descriptors import EntitySchema

NUMERIC_KINDS = (FieldKind.NUMBER, FieldKind.DATE)


def attribute_type(schema: EntitySchema, field_name: str) -> str:
    """DynamoDB scalar attribute type ('N' or 'S') of a key field."""
    descriptor = schema.field(field_name)
    if descriptor is not None and descriptor.kind in NUMERIC_KINDS and not descriptor.is_foreign_key:
        return "N"
    return "S"


def _key_schema(partition_key: str, sort_key=None) -> List[Dict[str, str]]:
    key_schema = [{"AttributeName": partition_key, "KeyType": "HASH"}]
    if sort_key:
        key_schema.append({"AttributeName": sort_key, "KeyType": "RANGE"})
    return key_schema


def build_table_definition(schema: EntitySchema, table_name: str) -> Dict[str, Any]:
    """Build create_table keyword arguments for a schema.

    Args:
        schema: Resolved entity schema
        table_name: Physical table name (already prefixed)

    Returns:
        Dictionary suitable for ``dynamodb.create_table(**definition)``

    Example:
        >>> definition = build_table_definition(schema, "dev_Users")
        >>> definition["KeySchema"]
        [{'AttributeName': 'id', 'KeyType': 'HASH'}]
    """
    key_attributes = list(schema.key_field_names)
    global_indexes = []
    local_indexes = []

    for index in schema.indexes:
        entry = {
            "IndexName": index.name,
            "KeySchema": _key_schema(index.partition_key, index.sort_key),
            "Projection": {"ProjectionType": "ALL"},
        }
        if index.kind == IndexKind.GLOBAL:
            global_indexes.append(entry)
        else:
            local_indexes.append(entry)
        key_attributes.extend(name for name in (index.partition_key, index.sort_key) if name)

    attribute_definitions = []
    for name in dict.fromkeys(key_attributes):
        attribute_definitions.append({"AttributeName": name, "AttributeType": attribute_type(schema, name)})

    definition: Dict[str, Any] = {
        "TableName": table_name,
        "KeySchema": _key_schema(schema.partition_key, schema.sort_key),
        "AttributeDefinitions": attribute_definitions,
        "BillingMode": "PAY_PER_REQUEST",
    }
    if global_indexes:
        definition["GlobalSecondaryIndexes"] = global_indexes
    if local_indexes:
        definition["LocalSecondaryIndexes"] = local_indexes
    return definition
