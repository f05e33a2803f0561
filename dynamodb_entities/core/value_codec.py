"""
Value Codec

Converts entity instances to flat store records and back, field by field,
according to each field's store kind:

- object/array: JSON text
- date: integer epoch milliseconds (0 reads back as absent)
- iso_date: ISO-8601 text in UTC
- enum: the member's value
- foreign keys: the field's own serializer/deserializer pair
- everything else unchanged

None values are left out of records. Deserialized records are validated into
the entity's pydantic model.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..config import DynamoDBConfig
from ..exceptions import EncodingError, ValidationError
from ..schema import EntitySchema, FieldDescriptor, FieldKind
from ..utils.timezone import (
    ensure_timezone_aware,
    from_epoch_millis,
    to_epoch_millis,
    to_user_timezone,
    to_utc,
)

logger = logging.getLogger(__name__)


class ValueCodec:
    """Serializes entities to store records and deserializes them back.

    Args:
        config: Supplies ``default_timezone`` (assumed for naive datetimes) and
            ``user_timezone`` (applied to loaded datetimes). UTC when omitted.
    """

    def __init__(self, config: Optional[DynamoDBConfig] = None):
        self.default_timezone = config.default_timezone if config else "UTC"
        self.user_timezone = config.user_timezone if config else None

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def serialize(self, entity: Any, schema: EntitySchema) -> Dict[str, Any]:
        """Convert an entity instance into a store record."""
        record = {}
        for descriptor in schema.fields:
            encoded = self.serialize_field(getattr(entity, descriptor.name, None), descriptor)
            if encoded is not None:
                record[descriptor.name] = encoded
        return record

    def deserialize(self, record: Mapping[str, Any], schema: EntitySchema) -> Any:
        """Convert a store record into an entity instance.

        Raises:
            ValidationError: If the decoded values do not satisfy the model
        """
        data = {}
        for descriptor in schema.fields:
            if descriptor.name not in record:
                continue
            decoded = self.deserialize_field(record[descriptor.name], descriptor)
            if decoded is not None:
                data[descriptor.name] = decoded

        try:
            return schema.model_class.model_validate(data)
        except PydanticValidationError as e:
            errors = {".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()}
            logger.error(f"Failed to convert item to {schema.entity_name}: {errors}")
            raise ValidationError(
                f"Failed to convert item to {schema.entity_name}",
                errors=errors,
                original_error=e
            ) from e

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    def serialize_field(self, value: Any, descriptor: FieldDescriptor) -> Any:
        """Encode one in-memory value into its store representation."""
        if value is None:
            return None

        if descriptor.is_foreign_key:
            return descriptor.serializer(value)

        kind = descriptor.kind
        if kind in (FieldKind.OBJECT, FieldKind.ARRAY):
            return self._to_json(value, descriptor)

        if kind == FieldKind.DATE:
            if isinstance(value, datetime):
                return to_epoch_millis(value, self.default_timezone)
            return int(value)

        if kind == FieldKind.ISO_DATE:
            if isinstance(value, datetime):
                return to_utc(ensure_timezone_aware(value, self.default_timezone)).isoformat()
            return value

        if isinstance(value, Enum):
            return value.value

        return value

    def deserialize_field(self, value: Any, descriptor: FieldDescriptor) -> Any:
        """Decode one store value into its in-memory representation."""
        if value is None:
            return None

        if descriptor.is_foreign_key:
            return descriptor.deserializer(value)

        kind = descriptor.kind
        if kind in (FieldKind.OBJECT, FieldKind.ARRAY):
            if not isinstance(value, str):
                return value
            try:
                return json.loads(value)
            except ValueError as e:
                raise EncodingError(
                    f"Stored value of '{descriptor.name}' is not valid JSON",
                    field=descriptor.name,
                    original_error=e
                ) from e

        if kind == FieldKind.DATE:
            if isinstance(value, datetime):
                return to_user_timezone(value, self.user_timezone)
            if not value:
                return None
            return to_user_timezone(from_epoch_millis(value), self.user_timezone)

        if kind == FieldKind.ISO_DATE:
            if descriptor.text_value:
                return value
            if isinstance(value, str):
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return to_user_timezone(to_utc(value), self.user_timezone)

        return value

    @staticmethod
    def _to_json(value: Any, descriptor: FieldDescriptor) -> str:
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        elif isinstance(value, (set, frozenset)):
            value = list(value)
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise EncodingError(
                f"Value of '{descriptor.name}' cannot be encoded as JSON: {e}",
                field=descriptor.name,
                original_error=e
            ) from e
