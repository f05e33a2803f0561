"""
Thin DynamoDB Table Gateway

This module is the only place that talks to boto3. Repositories hand it flat
store records, primary keys and structured KeyConditions; the gateway turns them
into boto3 calls and returns plain dictionaries.

The gateway focuses on:
- Creating boto3 Table handles lazily from DynamoDBConfig
- Translating KeyConditions into boto3 condition expressions
- Converting numbers across the boto3 boundary (float <-> Decimal)
- Mapping botocore ClientErrors to domain exceptions

It never retries; retry attempts are delegated to botocore through the
configured ``Config(retries=...)``.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConflictError,
    EntityStoreError,
    ConnectionError,
    NotFoundError,
    RetryableError,
    ValidationError,
)
from .conditions import KeyCondition, to_filter_expression, to_key_expression

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "dynamodb_entities"


# DynamoDB error codes grouped by the domain exception they map to.
_ERROR_FAMILIES = (
    ("Conditional check failed", ConflictError, ("ConditionalCheckFailedException",)),
    ("Resource in use", ConflictError, ("ResourceInUseException", "TransactionConflictException")),
    ("Table or index not found", NotFoundError, ("ResourceNotFoundException",)),
    ("Validation failed", ValidationError, (
        "ValidationException", "ItemCollectionSizeLimitExceededException", "LimitExceededException",
    )),
    ("Throttling", RetryableError, (
        "ProvisionedThroughputExceededException", "RequestLimitExceeded", "ThrottlingException",
        "TooManyRequestsException",
    )),
    ("Service unavailable", RetryableError, (
        "InternalServerError", "ServiceUnavailable", "ServiceUnavailableException", "RequestTimeoutException",
    )),
    ("Authentication/authorization failed", ConnectionError, (
        "UnrecognizedClientException", "AccessDeniedException", "ExpiredTokenException",
        "InvalidSignatureException",
    )),
)

_ERROR_CODES: Dict[str, Tuple[str, Type[EntityStoreError]]] = {
    code: (label, error_class) for label, error_class, codes in _ERROR_FAMILIES for code in codes
}


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Translate a botocore ClientError into the matching domain exception.

    Unknown error codes become ConnectionError and are logged as a warning.
    """
    details = error.response.get('Error', {})
    error_code = details.get('Code', 'Unknown')
    where = f"{operation} on {table_name}" + (f" (resource: {resource_id})" if resource_id else "")
    detail = f"{where}: {details.get('Message', '')}"

    if error_code not in _ERROR_CODES:
        logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
        return ConnectionError(f"DynamoDB operation failed - {detail}", original_error=error)

    label, error_class = _ERROR_CODES[error_code]
    message = f"{label} - {detail}"
    if error_class is ConflictError:
        return ConflictError(message, resource_id, original_error=error)
    if error_class is NotFoundError:
        return NotFoundError(message, 'table', table_name, original_error=error)
    return error_class(message, original_error=error)


def to_store_value(value: Any) -> Any:
    """Convert floats (also nested) to Decimal, which boto3 requires for numbers."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_store_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_store_value(v) for v in value]
    return value


def from_store_value(value: Any) -> Any:
    """Convert boto3 Decimals (also nested) back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_store_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_store_value(v) for v in value]
    return value


@dataclass
class Page:
    """One page of query or scan results."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    count: int = 0
    last_evaluated_key: Optional[Dict[str, Any]] = None


class TableGateway:
    """
    Thin gateway for one DynamoDB table.

    Exposes the primitives repositories need: point reads and writes, key
    condition queries, filtered scans and table creation.
    """

    def __init__(self, config: DynamoDBConfig, table_name: str):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
            table_name: Name of the DynamoDB table
        """
        self.config = config
        self.table_name = table_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """boto3 DynamoDB resource, created on first use."""
        if self._dynamodb is None:
            self._dynamodb = self._connect()
        return self._dynamodb

    @property
    def table(self):
        """boto3 Table handle for this gateway's table."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _connect(self):
        settings = self.config
        resource_options: Dict[str, Any] = {
            'region_name': settings.region_name,
            'config': Config(
                retries={'max_attempts': settings.retries},
                max_pool_connections=settings.max_pool_connections,
                connect_timeout=settings.timeout_seconds,
                read_timeout=settings.timeout_seconds,
            ),
        }
        if settings.endpoint_url:
            resource_options['endpoint_url'] = settings.endpoint_url

        try:
            session = boto3.Session(
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.region_name
            )
            return session.resource('dynamodb', **resource_options)
        except Exception as e:
            logger.error(f"Failed to create DynamoDB resource: {e}")
            raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Point read; None when the item does not exist."""
        try:
            response = self.table.get_item(Key=to_store_value(key))
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", self.table_name, str(key)) from e
        logger.debug(f"Get item from {self.table_name}: {key}")
        item = response.get('Item')
        return from_store_value(item) if item is not None else None

    def put_item(self, item: Dict[str, Any]) -> None:
        """Unconditional put (full overwrite)."""
        try:
            self.table.put_item(Item=to_store_value(item))
            logger.info(f"Put item in {self.table_name}: {item}")
        except ClientError as e:
            raise map_dynamodb_error(e, "PutItem", self.table_name) from e

    def delete_item(self, key: Dict[str, Any]) -> None:
        try:
            self.table.delete_item(Key=to_store_value(key))
            logger.info(f"Deleted item from {self.table_name}: {key}")
        except ClientError as e:
            raise map_dynamodb_error(e, "DeleteItem", self.table_name, str(key)) from e

    def query(
        self,
        key_conditions: Iterable[KeyCondition],
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
        scan_index_forward: bool = True
    ) -> Page:
        """
        Execute DynamoDB Query operation.

        Args:
            key_conditions: Partition key equality plus an optional sort key condition
            index_name: Secondary index to query, None for the table
            limit: Maximum number of items evaluated
            exclusive_start_key: LastEvaluatedKey of the previous page
            scan_index_forward: False for descending sort key order

        Returns:
            Page of items
        """
        conditions = [self._outgoing(c) for c in key_conditions]
        kwargs: Dict[str, Any] = {
            'KeyConditionExpression': to_key_expression(conditions),
            'ScanIndexForward': scan_index_forward,
        }
        if index_name:
            kwargs['IndexName'] = index_name
        if limit:
            kwargs['Limit'] = limit
        if exclusive_start_key:
            kwargs['ExclusiveStartKey'] = to_store_value(exclusive_start_key)

        try:
            response = self.table.query(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Query", self.table_name, index_name) from e
        logger.debug(f"Query on {self.table_name} (index={index_name}) returned {response.get('Count', 0)} item(s)")
        return self._page(response)

    def scan(
        self,
        filter_conditions: Iterable[KeyCondition] = (),
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None
    ) -> Page:
        """
        Execute DynamoDB Scan operation.

        Scans read the whole table or index; conditions only filter what is
        returned. Prefer query whenever the partition key is known.
        """
        conditions = [self._outgoing(c) for c in filter_conditions]
        kwargs: Dict[str, Any] = {}
        filter_expression = to_filter_expression(conditions)
        if filter_expression is not None:
            kwargs['FilterExpression'] = filter_expression
        if index_name:
            kwargs['IndexName'] = index_name
        if limit:
            kwargs['Limit'] = limit
        else:
            logger.warning(f"Scan on {self.table_name} without Limit - consider adding one")
        if exclusive_start_key:
            kwargs['ExclusiveStartKey'] = to_store_value(exclusive_start_key)

        try:
            response = self.table.scan(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Scan", self.table_name, index_name) from e
        logger.debug(f"Scan on {self.table_name} (index={index_name}) returned {response.get('Count', 0)} item(s)")
        return self._page(response)

    def create_table(self, definition: Dict[str, Any]) -> None:
        """Create the table from a create_table definition and wait until it exists."""
        try:
            table = self.dynamodb.create_table(**definition)
            table.wait_until_exists()
            self._table = table
            logger.info(f"Created table {self.table_name}")
        except ClientError as e:
            raise map_dynamodb_error(e, "CreateTable", self.table_name) from e

    @staticmethod
    def _outgoing(condition: KeyCondition) -> KeyCondition:
        return KeyCondition(condition.field, condition.operator, to_store_value(condition.value))

    @staticmethod
    def _page(response: Dict[str, Any]) -> Page:
        items = [from_store_value(item) for item in response.get('Items', [])]
        last_key = response.get('LastEvaluatedKey')
        return Page(
            items=items,
            count=response.get('Count', len(items)),
            last_evaluated_key=from_store_value(last_key) if last_key else None,
        )


def create_table_gateway(config: DynamoDBConfig, table_name: str) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration
        table_name: Base table name; config.get_table_name() adds prefix and environment

    Returns:
        Configured TableGateway instance
    """
    if config.enable_debug_logging:
        logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)

    full_table_name = config.get_table_name(table_name)
    return TableGateway(config, full_table_name)
