"""
End-to-end use cases against moto's mocked DynamoDB.

Each test models a small application the way a caller would: declare the
entity, build a repository, create its table and work with it.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

import pytest
from pydantic import BaseModel

from dynamodb_entities import (
    BelongsTo,
    ConsistencyError,
    EntityChangeEvent,
    HasMany,
    Index,
    IndexKind,
    PartitionKey,
    SecondaryIndex,
    SortKey,
    subscribe_to_changes,
)


class Sensor(BaseModel):
    id: Annotated[str, PartitionKey()]
    site: str
    readings: Annotated[Optional[List[Any]], HasMany(lambda: Reading)] = None

    class Meta:
        table_name = "Sensors"


class Reading(BaseModel):
    sensor_id: Annotated[
        Dict[str, Any],
        BelongsTo(lambda: Sensor, lambda sensor: sensor["id"], lambda value: {"id": value}),
        Index(kind=IndexKind.LOCAL, sort_key="value"),
    ]
    taken_at: Annotated[datetime, SortKey()]
    value: float
    unit: str = "C"

    class Meta:
        table_name = "Readings"
        publish_changes = True


class Invoice(BaseModel):
    customer: str
    number: int
    total: float
    issued_at: Optional[int] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None

    class Meta:
        table_name = "Invoices"
        indexes = [SecondaryIndex("customer", "issued_at", name="ByCustomer")]


@pytest.fixture
def invoices(make_dynamodb_repository, registry):
    registry.declare(Invoice, "number", PartitionKey())
    registry.declare(Invoice, "customer", SortKey())
    return make_dynamodb_repository(Invoice)


class TestSensorReadings:
    """Time series keyed by a datetime sort key with a local index."""

    @pytest.fixture
    def readings(self, make_dynamodb_repository):
        make_dynamodb_repository(Sensor)
        repository = make_dynamodb_repository(Reading)
        for hour, value in enumerate([21.5, 19.0, 23.25, 20.0]):
            repository.create(Reading(
                sensor_id={"id": "s1"},
                taken_at=datetime(2024, 1, 1, hour, tzinfo=timezone.utc),
                value=value,
            ))
        return repository

    def test_time_range_query(self, readings):
        result = readings.query(
            {"id": "s1"},
            {"between": [datetime(2024, 1, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 1, 2, tzinfo=timezone.utc)]}
        )

        assert [r.value for r in result] == [19.0, 23.25]
        assert result[0].taken_at == datetime(2024, 1, 1, 1, tzinfo=timezone.utc)

    def test_local_index_orders_by_value(self, readings):
        result = readings.query({"id": "s1"}, {"gt": 20.0}, index_name="sensor_id-valueLocalIndex")

        assert [r.value for r in result] == [21.5, 23.25]

    def test_get_by_datetime_sort_key(self, readings):
        reading = readings.get({"id": "s1"}, datetime(2024, 1, 1, 3, tzinfo=timezone.utc))

        assert reading.value == 20.0

    def test_sensor_joins_readings(self, make_dynamodb_repository, readings):
        sensors = make_dynamodb_repository(Sensor)
        sensors.create(Sensor(id="s1", site="roof"))

        sensor = sensors.get("s1", joins=["readings"])

        assert len(sensor.readings) == 4

    def test_alerting_service(self, readings, dispatcher):
        class AlertService:
            def __init__(self):
                self.alerts = []

            @subscribe_to_changes(Reading, "create")
            def on_reading(self, event: EntityChangeEvent):
                if event.entity.value > 25:
                    self.alerts.append(event.entity.value)

        service = AlertService()
        dispatcher.register_service(service)

        readings.create(Reading(sensor_id={"id": "s1"}, taken_at=datetime(2024, 1, 2, tzinfo=timezone.utc), value=30.5))
        readings.create(Reading(sensor_id={"id": "s1"}, taken_at=datetime(2024, 1, 3, tzinfo=timezone.utc), value=10.0))
        dispatcher.unregister_service(service)
        readings.create(Reading(sensor_id={"id": "s1"}, taken_at=datetime(2024, 1, 4, tzinfo=timezone.utc), value=40.0))

        assert service.alerts == [30.5]


class TestInvoices:
    """Schema declared programmatically, with a table-level index."""

    def test_numeric_partition_key(self, invoices):
        invoices.create(Invoice(customer="acme", number=1001, total=99.5, issued_at=1704067200000))

        invoice = invoices.get(1001, "acme")

        assert invoice.total == 99.5
        assert isinstance(invoice.createdAt, int)

    def test_customer_index(self, invoices):
        for number, issued_at in [(1, 300), (2, 100), (3, 200)]:
            invoices.create(Invoice(customer="acme", number=number, total=10.0, issued_at=issued_at))
        invoices.create(Invoice(customer="other", number=4, total=10.0, issued_at=50))

        result = invoices.query("acme", index_name="ByCustomer", sort="descending")

        assert [i.number for i in result] == [1, 3, 2]

    def test_unique_hash_key(self, invoices):
        invoices.create(Invoice(customer="acme", number=7, total=1.0))

        assert invoices.get_with_unique_hash_key(7).customer == "acme"

        invoices.create(Invoice(customer="globex", number=7, total=2.0))
        with pytest.raises(ConsistencyError):
            invoices.get_with_unique_hash_key(7)
