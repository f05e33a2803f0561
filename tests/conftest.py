"""
Test configuration and fixtures for dynamodb-entities.

Unit tests run repositories against the in-memory store; integration tests run
them against moto's mocked DynamoDB, with tables created from entity schemas.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import dynamodb_entities and tests.helpers
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
import pytest
from moto import mock_aws

from dynamodb_entities import (
    ChangeDispatcher,
    DynamoDBConfig,
    InMemoryStore,
    Repository,
    SchemaRegistry,
)
from tests.helpers import ALL_ENTITIES


@pytest.fixture
def mock_dynamodb_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        environment="test",
        table_prefix=""
    )


@pytest.fixture
def registry():
    """Fresh schema registry per test."""
    return SchemaRegistry()


@pytest.fixture
def dispatcher():
    return ChangeDispatcher()


@pytest.fixture
def memory_store():
    store = InMemoryStore()
    yield store
    store.flush()


@pytest.fixture
def make_repository(mock_dynamodb_config, registry, dispatcher, memory_store):
    """Build in-memory repositories sharing one registry, dispatcher and store."""
    def _make(model_class, config=None):
        return Repository(
            model_class,
            config or mock_dynamodb_config,
            registry=registry,
            dispatcher=dispatcher,
            gateway_factory=memory_store.gateway_for
        )
    return _make


# Moto fixtures

@pytest.fixture
def mock_dynamodb_resource():
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def make_dynamodb_repository(mock_dynamodb_resource, mock_dynamodb_config, registry, dispatcher):
    """Build boto3-backed repositories against moto; tables are created on first use."""
    created = set()

    def _make(model_class, config=None):
        repository = Repository(
            model_class,
            config or mock_dynamodb_config,
            registry=registry,
            dispatcher=dispatcher
        )
        if repository.table_name not in created:
            repository.create_table()
            created.add(repository.table_name)
        return repository
    return _make


@pytest.fixture
def all_tables(make_dynamodb_repository):
    """Create the tables of every test entity."""
    return {model.__name__: make_dynamodb_repository(model) for model in ALL_ENTITIES}
