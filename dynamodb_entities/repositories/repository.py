"""
Entity Repository

Repository binds one pydantic entity type to its table and exposes typed
create/get/update/delete/query/scan operations. Schema resolution happens once
in the constructor, so modeling errors surface before any store call.

Example:
    >>> registry = SchemaRegistry()
    >>> users = Repository(User, DynamoDBConfig.from_env(), registry=registry)
    >>> users.create(User(id="u1", email="a@b.com", name="Ann"))
    >>> users.get("u1", joins=["posts"])
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Generic, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..config import DynamoDBConfig
from ..core.conditions import INVALID_KEY_CONDITIONS, KeyCondition, Operator, parse_condition
from ..core.events import ChangeDispatcher, TriggerEvent
from ..core.key_resolver import KeyResolver
from ..core.relationships import RelationshipResolver
from ..core.table_gateway import Page, create_table_gateway
from ..core.value_codec import ValueCodec
from ..exceptions import ConsistencyError, ItemNotFoundError, ValidationError
from ..schema import (
    EntitySchema,
    FieldDescriptor,
    FieldKind,
    IndexKind,
    SchemaRegistry,
    build_table_definition,
    get_default_index_name,
)
from ..utils.pagination import decode_last_key, encode_last_key
from ..utils.timezone import from_epoch_millis, to_epoch_millis, utc_now_millis
from .results import QueryResult

T = TypeVar('T', bound=BaseModel)

logger = logging.getLogger(__name__)

SCAN_FILTER_KEYS = ("partition_key", "sort_key")


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class Repository(Generic[T]):
    """Typed access to the table of one entity type.

    Args:
        model_class: Pydantic entity model
        config: DynamoDB configuration; read from the environment when omitted
        registry: Schema registry shared with related repositories; a private
            registry is created when omitted
        dispatcher: Change dispatcher receiving lifecycle events of entity
            types that set ``Meta.publish_changes``
        gateway_factory: Callable building the table gateway from the schema;
            defaults to a boto3 TableGateway named by config.get_table_name()

    Raises:
        SchemaError: If the entity type's declarations are invalid
        RelationshipError: If a has-one/has-many relation cannot be mapped
    """

    def __init__(
        self,
        model_class: Type[T],
        config: Optional[DynamoDBConfig] = None,
        *,
        registry: Optional[SchemaRegistry] = None,
        dispatcher: Optional[ChangeDispatcher] = None,
        gateway_factory: Optional[Callable[[EntitySchema], Any]] = None
    ):
        self.model_class = model_class
        self.config = config or DynamoDBConfig.from_env()
        self.registry = registry or SchemaRegistry()
        self.dispatcher = dispatcher or ChangeDispatcher()
        self.schema = self.registry.resolve(model_class)

        self.codec = ValueCodec(self.config)
        self.keys = KeyResolver(self.schema, self.codec)

        self._gateway_factory = gateway_factory
        if gateway_factory is not None:
            self.gateway = gateway_factory(self.schema)
        else:
            self.gateway = create_table_gateway(self.config, self.schema.table_name)

        self.relationships = RelationshipResolver(
            self.schema,
            self.registry,
            self._related_repository,
            self.config.default_query_limit
        )
        self.relationships.validate()

    @property
    def table_name(self) -> str:
        return self.gateway.table_name

    def _related_repository(self, model_class: type) -> "Repository":
        return type(self)(
            model_class,
            self.config,
            registry=self.registry,
            dispatcher=self.dispatcher,
            gateway_factory=self._gateway_factory
        )

    # =========================================================================
    # CRUD operations
    # =========================================================================

    def create(self, item: Union[T, Mapping[str, Any]]) -> T:
        """Write a new item and return it as stored.

        Key fields must already be set. Declared created/updated timestamp
        fields are set to the current time on ``item`` itself when it is a
        model instance. The write is an unconditional put.

        Raises:
            ValidationError: If key fields are missing or item is invalid
            EncodingError: If an object/array field is not JSON encodable
        """
        entity = self._to_entity(item)
        self._require_key_fields(entity)

        now = utc_now_millis()
        for field_name in (self.schema.created_at_field, self.schema.updated_at_field):
            if field_name:
                self._stamp(entity, field_name, now)

        record = self.codec.serialize(entity, self.schema)
        result = self.codec.deserialize(record, self.schema)
        self.gateway.put_item(record)
        logger.debug(f"Created {self.schema.entity_name} {self.keys.key_values(entity)}")

        self._emit(TriggerEvent.CREATE, result)
        return result

    def get(self, partition_value: Any, sort_value: Any = None, joins: Iterable[str] = ()) -> Optional[T]:
        """Read one item by primary key.

        Args:
            partition_value: Partition key value (a key shape for foreign keys)
            sort_value: Sort key value, required when the table has a sort key
            joins: Names of has-one/has-many fields to populate

        Returns:
            The entity, or None when no such item exists

        Raises:
            TypeMismatchError: If partition_value has the wrong runtime type
            ValidationError: If the sort key is missing on a composite key
            RelationshipError: If a join name is not a relation
            JoinError: If a has-many join does not fit in one page
        """
        if isinstance(joins, str):
            joins = (joins,)
        joins = list(joins)
        for relation_name in joins:
            self.relationships.plan(relation_name)

        self.keys.check_partition_value_type(partition_value)
        key = self.keys.build_key(partition_value, sort_value)

        record = self.gateway.get_item(key)
        if record is None:
            return None

        entity = self.codec.deserialize(record, self.schema)
        for relation_name in joins:
            setattr(entity, relation_name, self.relationships.load(entity, relation_name))
        return entity

    def get_with_unique_hash_key(self, partition_value: Any) -> Optional[T]:
        """Read the single item of a partition.

        For tables whose composite key is wider than needed because the
        partition key alone is unique.

        Raises:
            ConsistencyError: If the partition holds more than one item
            TypeMismatchError: If partition_value has the wrong runtime type
        """
        self.keys.check_partition_value_type(partition_value)
        result = self.query(partition_value)
        if result.count > 1:
            raise ConsistencyError("Hash key has more than 1 row", self.table_name, partition_value)
        return result.items[0] if result.items else None

    def update(self, item: Union[T, Mapping[str, Any]]) -> T:
        """Overwrite an item and return it as stored.

        The stored item is read first and published as ``previous``. The
        updated timestamp field, when declared, is set strictly past its
        previous value. Created timestamps are written as passed in.
        """
        entity = self._to_entity(item)
        self._require_key_fields(entity)

        key = self.keys.key_from_entity(entity)
        previous_record = self.gateway.get_item(key)
        previous = self.codec.deserialize(previous_record, self.schema) if previous_record is not None else None

        updated_field = self.schema.updated_at_field
        if updated_field:
            now = utc_now_millis()
            prior = self._as_datetime(getattr(previous, updated_field, None)) if previous is not None else None
            if prior is not None and now <= prior:
                now = prior + timedelta(milliseconds=1)
            self._stamp(entity, updated_field, now)

        record = self.codec.serialize(entity, self.schema)
        result = self.codec.deserialize(record, self.schema)
        self.gateway.put_item(record)
        logger.debug(f"Updated {self.schema.entity_name} {key}")

        self._emit(TriggerEvent.UPDATE, result, previous)
        return result

    def delete(self, partition_value: Any, sort_value: Any = None) -> T:
        """Delete an item and return its last stored state.

        Raises:
            ItemNotFoundError: If the item does not exist
            ValidationError: If the sort key is missing on a composite key
        """
        key = self.keys.build_key(partition_value, sort_value)
        record = self.gateway.get_item(key)
        if record is None:
            suffix = f"-{sort_value}" if sort_value is not None else ""
            raise ItemNotFoundError(
                self.table_name,
                key,
                message=f"Instance {partition_value}{suffix} is not found for deletion"
            )

        previous = self.codec.deserialize(record, self.schema)
        self.gateway.delete_item(key)
        logger.debug(f"Deleted {self.schema.entity_name} {key}")

        self._emit(TriggerEvent.DELETE, previous, previous)
        return previous

    # =========================================================================
    # Query and scan
    # =========================================================================

    def query(
        self,
        partition_value: Any,
        sort_condition: Optional[Mapping[str, Any]] = None,
        *,
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        last_key: Optional[str] = None,
        sort: Optional[Union[SortOrder, str]] = None
    ) -> QueryResult[T]:
        """Query one partition of the table or of a secondary index.

        Args:
            partition_value: Partition key value of the chosen scope
            sort_condition: One-entry mapping such as {"gt": "post-1"} or
                {"between": ["a", "c"]}; operators eq, ge, gt, le, lt, between,
                begins_with
            index_name: Secondary index to query
            limit: Page size, config.default_query_limit when omitted
            last_key: Continuation token of the previous page
            sort: "ascending" (default) or "descending" sort key order

        Raises:
            KeySchemaError: If the scope has no matching key field
            ValidationError: If the condition does not hold exactly one operator
                or limit is below 1
        """
        if partition_value is None:
            raise ValidationError(INVALID_KEY_CONDITIONS)

        partition = self.keys.partition_key(index_name)
        conditions = [
            KeyCondition(partition.name, Operator.EQ, self.keys.serialize_key_value(partition_value, partition))
        ]
        if sort_condition is not None:
            operator, operand = parse_condition(sort_condition)
            sort_field = self.keys.require_sort_key(index_name)
            conditions.append(KeyCondition(sort_field.name, operator, self._serialize_operand(operand, operator, sort_field)))

        page = self.gateway.query(
            conditions,
            index_name=index_name,
            limit=self._page_size(limit),
            exclusive_start_key=decode_last_key(last_key),
            scan_index_forward=self._is_ascending(sort)
        )
        return self._to_result(page)

    def scan(
        self,
        filters: Optional[Mapping[str, Mapping[str, Any]]] = None,
        *,
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        last_key: Optional[str] = None
    ) -> QueryResult[T]:
        """Scan the table or a secondary index.

        Args:
            filters: Optional {"partition_key": condition, "sort_key": condition};
                each condition holds exactly one operator
            index_name: Secondary index to scan
            limit: Page size, config.default_query_limit when omitted
            last_key: Continuation token of the previous page

        Raises:
            ValidationError: If a filter holds more than one operator or limit
                is below 1
        """
        filters = dict(filters or {})
        unknown = [name for name in filters if name not in SCAN_FILTER_KEYS]
        if unknown:
            raise ValidationError(f"Unsupported scan filter(s) {unknown}. Supported: {list(SCAN_FILTER_KEYS)}")

        conditions = []
        if filters.get("partition_key") is not None:
            operator, operand = parse_condition(
                filters["partition_key"], "Must have only one filter condition for partition key during scan"
            )
            partition = self.keys.partition_key(index_name)
            conditions.append(KeyCondition(partition.name, operator, self._serialize_operand(operand, operator, partition)))

        if filters.get("sort_key") is not None:
            operator, operand = parse_condition(
                filters["sort_key"], "Must have maximum one filter condition for sort key during scan"
            )
            sort_field = self.keys.require_sort_key(index_name)
            conditions.append(KeyCondition(sort_field.name, operator, self._serialize_operand(operand, operator, sort_field)))

        page = self.gateway.scan(
            conditions,
            index_name=index_name,
            limit=self._page_size(limit),
            exclusive_start_key=decode_last_key(last_key)
        )
        return self._to_result(page)

    # =========================================================================
    # Schema helpers
    # =========================================================================

    def get_default_index_name(self, kind: Union[IndexKind, str], partition_field: str, sort_field: Optional[str] = None) -> str:
        """Index name derived from its key fields, e.g. 'status-published_atGlobalIndex'."""
        return get_default_index_name(kind, partition_field, sort_field)

    def create_table(self) -> None:
        """Create this entity's table with all declared secondary indexes."""
        self.gateway.create_table(build_table_definition(self.schema, self.table_name))

    # =========================================================================
    # Internals
    # =========================================================================

    def _to_entity(self, item: Union[T, Mapping[str, Any]]) -> T:
        if isinstance(item, self.model_class):
            return item
        if isinstance(item, Mapping):
            try:
                return self.model_class.model_validate(dict(item))
            except PydanticValidationError as e:
                errors = {".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()}
                raise ValidationError(
                    f"Invalid {self.schema.entity_name} data",
                    errors=errors,
                    original_error=e
                ) from e
        raise ValidationError(
            f"Expected {self.schema.entity_name} instance or mapping, got {type(item).__name__}"
        )

    def _require_key_fields(self, entity: T) -> None:
        missing = [name for name in self.schema.key_field_names if getattr(entity, name, None) is None]
        if missing:
            raise ValidationError(
                f"{self.schema.entity_name} is missing key field(s): {', '.join(missing)}",
                errors={name: "Key field is required" for name in missing}
            )

    def _stamp(self, entity: T, field_name: str, now: datetime) -> None:
        descriptor = self.schema.field(field_name)
        value = to_epoch_millis(now) if descriptor.kind == FieldKind.NUMBER else now
        setattr(entity, field_name, value)

    @staticmethod
    def _as_datetime(value: Any) -> Optional[datetime]:
        if value is None or isinstance(value, datetime):
            return value
        if isinstance(value, (int, float)):
            return from_epoch_millis(value)
        return None

    def _serialize_operand(self, operand: Any, operator: Operator, field: FieldDescriptor) -> Any:
        if operator == Operator.BETWEEN:
            return tuple(self.keys.serialize_key_value(value, field) for value in operand)
        return self.keys.serialize_key_value(operand, field)

    def _page_size(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.config.default_query_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")
        return limit

    @staticmethod
    def _is_ascending(sort: Optional[Union[SortOrder, str]]) -> bool:
        if sort is None:
            return True
        try:
            return SortOrder(sort) == SortOrder.ASCENDING
        except ValueError:
            raise ValidationError(f"Invalid sort order '{sort}'. Expected 'ascending' or 'descending'") from None

    def _to_result(self, page: Page) -> QueryResult[T]:
        items: List[T] = [self.codec.deserialize(record, self.schema) for record in page.items]
        return QueryResult(items, count=page.count, last_key=encode_last_key(page.last_evaluated_key))

    def _emit(self, event: TriggerEvent, entity: T, previous: Optional[T] = None) -> None:
        if self.schema.publish_changes:
            self.dispatcher.publish(self.model_class, event, entity, previous)
