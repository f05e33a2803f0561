"""
In-memory table gateway.

A process-local stand-in for TableGateway, meant for tests and prototyping.
It supports the same primitives (point reads and writes, key condition
queries on the table or a secondary index, filtered scans, limits and
exclusive start keys) without any AWS dependency:

    store = InMemoryStore()
    users = Repository(User, config, gateway_factory=store.gateway_for)
    ...
    store.flush()
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..exceptions import ValidationError
from ..schema import EntitySchema
from .conditions import KeyCondition, matches
from .table_gateway import Page

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Holds the records of every in-memory table, keyed by table name."""

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[Tuple[Any, ...], Dict[str, Any]]] = {}

    def gateway_for(self, schema: EntitySchema) -> "InMemoryTableGateway":
        """Gateway factory suitable for Repository(gateway_factory=...)."""
        return InMemoryTableGateway(self, schema)

    def table(self, table_name: str) -> Dict[Tuple[Any, ...], Dict[str, Any]]:
        return self._tables.setdefault(table_name, {})

    def flush(self) -> None:
        """Remove all records from every table."""
        self._tables.clear()


class InMemoryTableGateway:
    """Table gateway over an InMemoryStore."""

    def __init__(self, store: InMemoryStore, schema: EntitySchema, table_name: Optional[str] = None):
        self.store = store
        self.schema = schema
        self.table_name = table_name or schema.table_name

    @property
    def records(self) -> Dict[Tuple[Any, ...], Dict[str, Any]]:
        return self.store.table(self.table_name)

    def _primary_key(self, record: Dict[str, Any]) -> Tuple[Any, ...]:
        try:
            return tuple(record[name] for name in self.schema.key_field_names)
        except KeyError as e:
            raise ValidationError(f"Missing key attribute {e} for table {self.table_name}") from None

    def _scope(self, index_name: Optional[str]) -> Tuple[str, Optional[str]]:
        if index_name is None:
            return self.schema.partition_key, self.schema.sort_key
        index = self.schema.index(index_name)
        if index is None:
            raise ValidationError(f"The table {self.table_name} does not have the specified index: {index_name}")
        return index.partition_key, index.sort_key

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        record = self.records.get(self._primary_key(key))
        return copy.deepcopy(record) if record is not None else None

    def put_item(self, item: Dict[str, Any]) -> None:
        self.records[self._primary_key(item)] = copy.deepcopy(item)
        logger.info(f"Put item in {self.table_name}: {item}")

    def delete_item(self, key: Dict[str, Any]) -> None:
        self.records.pop(self._primary_key(key), None)
        logger.info(f"Deleted item from {self.table_name}: {key}")

    def query(
        self,
        key_conditions: Iterable[KeyCondition],
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
        scan_index_forward: bool = True
    ) -> Page:
        partition, sort = self._scope(index_name)
        rows = self._select(key_conditions, partition, sort)
        if sort:
            rows.sort(key=lambda row: row[sort], reverse=not scan_index_forward)
        return self._paginate(rows, partition, sort, limit, exclusive_start_key)

    def scan(
        self,
        filter_conditions: Iterable[KeyCondition] = (),
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Dict[str, Any]] = None
    ) -> Page:
        partition, sort = self._scope(index_name)
        rows = self._select(filter_conditions, partition, sort)
        return self._paginate(rows, partition, sort, limit, exclusive_start_key)

    def create_table(self, definition: Dict[str, Any]) -> None:
        self.store.table(self.table_name)
        logger.info(f"Created in-memory table {self.table_name}")

    def _select(self, conditions: Iterable[KeyCondition], partition: str, sort: Optional[str]) -> List[Dict[str, Any]]:
        conditions = list(conditions)
        selected = []
        for record in self.records.values():
            # Index scopes are sparse: rows without the index key attributes are not part of them.
            if partition not in record or (sort and sort not in record):
                continue
            if all(matches(condition, record.get(condition.field)) for condition in conditions):
                selected.append(record)
        return selected

    def _paginate(
        self,
        rows: List[Dict[str, Any]],
        partition: str,
        sort: Optional[str],
        limit: Optional[int],
        exclusive_start_key: Optional[Dict[str, Any]]
    ) -> Page:
        if exclusive_start_key:
            start = self._primary_key(exclusive_start_key)
            positions = [i for i, row in enumerate(rows) if self._primary_key(row) == start]
            if not positions:
                raise ValidationError(f"The provided starting key is invalid: {exclusive_start_key}")
            rows = rows[positions[0] + 1:]

        page = rows[:limit] if limit else rows
        last_key = None
        if limit and len(rows) > limit:
            last_row = page[-1]
            key_names = dict.fromkeys(self.schema.key_field_names + tuple(n for n in (partition, sort) if n))
            last_key = {name: last_row[name] for name in key_names}

        items = [copy.deepcopy(row) for row in page]
        return Page(items=items, count=len(items), last_evaluated_key=last_key)
