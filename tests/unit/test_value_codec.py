"""
Tests for ValueCodec field and record conversion.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from dynamodb_entities import EncodingError, FieldKind, ValidationError
from dynamodb_entities.core.value_codec import ValueCodec
from dynamodb_entities.schema import FieldDescriptor
from tests.helpers import Address, Document, Post, Priority

JAN_1_2024_MILLIS = 1704067200000


@pytest.fixture
def codec():
    return ValueCodec()


@pytest.fixture
def document_schema(registry):
    return registry.resolve(Document)


@pytest.fixture
def document():
    return Document(
        id="d1",
        version=1,
        title="Quarterly report",
        priority=Priority.HIGH,
        address=Address(city="Oslo", zip_code="0150"),
        attributes={"pages": 12, "draft": False},
        labels=["finance", "q1"],
        score=4.5,
        archived=False,
        due_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        reviewed_on=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestSerialize:
    """Test entity -> store record conversion."""

    def test_every_kind(self, codec, document, document_schema):
        record = codec.serialize(document, document_schema)

        assert record == {
            "id": "d1",
            "version": 1,
            "title": "Quarterly report",
            "priority": "high",
            "address": '{"city": "Oslo", "zip_code": "0150"}',
            "attributes": '{"pages": 12, "draft": false}',
            "labels": '["finance", "q1"]',
            "score": 4.5,
            "archived": False,
            "due_at": JAN_1_2024_MILLIS,
            "reviewed_on": "2024-01-01T12:00:00+00:00",
        }

    def test_none_values_are_omitted(self, codec, document_schema):
        record = codec.serialize(Document(id="d1", version=1, title="t"), document_schema)

        assert "address" not in record
        assert "CreatedAt" not in record
        assert "due_at" not in record

    def test_naive_datetime_uses_default_timezone(self, mock_dynamodb_config):
        config = mock_dynamodb_config.model_copy(update={"default_timezone": "America/New_York"})
        codec = ValueCodec(config)
        descriptor = FieldDescriptor("due_at", FieldKind.DATE)

        assert codec.serialize_field(datetime(2024, 1, 1, 10, 0), descriptor) == 1704121200000

    def test_naive_datetime_defaults_to_utc(self, codec):
        descriptor = FieldDescriptor("due_at", FieldKind.DATE)

        assert codec.serialize_field(datetime(2024, 1, 1), descriptor) == JAN_1_2024_MILLIS

    def test_numeric_date_passes_through(self, codec):
        descriptor = FieldDescriptor("due_at", FieldKind.DATE)

        assert codec.serialize_field(JAN_1_2024_MILLIS, descriptor) == JAN_1_2024_MILLIS

    def test_iso_date_converted_to_utc(self, codec):
        descriptor = FieldDescriptor("reviewed_on", FieldKind.ISO_DATE)
        value = datetime(2024, 1, 1, 10, 0, tzinfo=ZoneInfo("America/New_York"))

        assert codec.serialize_field(value, descriptor) == "2024-01-01T15:00:00+00:00"

    def test_sets_are_encoded_as_arrays(self, codec):
        descriptor = FieldDescriptor("labels", FieldKind.ARRAY)

        assert codec.serialize_field({"only"}, descriptor) == '["only"]'

    def test_foreign_key_uses_serializer(self, codec, registry):
        schema = registry.resolve(Post)
        post = Post(user_id={"id": "u1"}, id="p1", title="Hello")

        record = codec.serialize(post, schema)

        assert record["user_id"] == "u1"
        assert record["status"] == "draft"

    def test_unencodable_object_raises(self, codec, document_schema):
        circular = {}
        circular["self"] = circular
        document = Document.model_construct(id="d1", version=1, title="t", attributes=circular)

        with pytest.raises(EncodingError) as exc_info:
            codec.serialize(document, document_schema)

        assert exc_info.value.field == "attributes"


class TestDeserialize:
    """Test store record -> entity conversion."""

    def test_round_trip(self, codec, document, document_schema):
        restored = codec.deserialize(codec.serialize(document, document_schema), document_schema)

        assert restored == document
        assert restored.due_at.tzinfo is not None
        assert isinstance(restored.address, Address)
        assert restored.priority is Priority.HIGH

    def test_zero_date_reads_as_absent(self, codec):
        descriptor = FieldDescriptor("due_at", FieldKind.DATE)

        assert codec.deserialize_field(0, descriptor) is None

    def test_dates_converted_to_user_timezone(self, mock_dynamodb_config):
        config = mock_dynamodb_config.model_copy(update={"user_timezone": "Asia/Tokyo"})
        codec = ValueCodec(config)
        descriptor = FieldDescriptor("due_at", FieldKind.DATE)

        value = codec.deserialize_field(JAN_1_2024_MILLIS, descriptor)

        assert value.hour == 9
        assert value.utcoffset().total_seconds() == 9 * 3600
        assert value == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_iso_date_with_z_suffix(self, codec):
        descriptor = FieldDescriptor("reviewed_on", FieldKind.ISO_DATE)

        value = codec.deserialize_field("2024-01-01T12:00:00Z", descriptor)

        assert value == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_iso_date_text_field_is_not_parsed(self, codec):
        descriptor = FieldDescriptor("shipped_on", FieldKind.ISO_DATE, text_value=True)

        assert codec.deserialize_field("2024-01-01T12:00:00Z", descriptor) == "2024-01-01T12:00:00Z"
        assert codec.serialize_field("2024-01-01T12:00:00Z", descriptor) == "2024-01-01T12:00:00Z"

    def test_already_decoded_object_passes_through(self, codec):
        descriptor = FieldDescriptor("attributes", FieldKind.OBJECT)

        assert codec.deserialize_field({"a": 1}, descriptor) == {"a": 1}

    def test_invalid_json_raises(self, codec):
        descriptor = FieldDescriptor("attributes", FieldKind.OBJECT)

        with pytest.raises(EncodingError, match="not valid JSON"):
            codec.deserialize_field("{not json", descriptor)

    def test_foreign_key_uses_deserializer(self, codec, registry):
        schema = registry.resolve(Post)

        post = codec.deserialize({"user_id": "u1", "id": "p1", "title": "Hello"}, schema)

        assert post.user_id == {"id": "u1"}
        assert post.status == "draft"

    def test_unknown_attributes_are_ignored(self, codec, document_schema):
        record = {"id": "d1", "version": 1, "title": "t", "legacy_column": "x"}

        assert codec.deserialize(record, document_schema).id == "d1"

    def test_invalid_record_raises_validation_error(self, codec, document_schema):
        with pytest.raises(ValidationError) as exc_info:
            codec.deserialize({"id": "d1", "version": 1}, document_schema)

        assert "Failed to convert item to Document" in str(exc_info.value)
        assert "title" in exc_info.value.errors
