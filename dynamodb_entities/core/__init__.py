from .conditions import KeyCondition, Operator, parse_condition
from .events import (
    ChangeDispatcher,
    EntityChangeEvent,
    Subscription,
    TriggerEvent,
    subscribe_to_changes,
)
from .key_resolver import KeyResolver
from .memory_gateway import InMemoryStore, InMemoryTableGateway
from .relationships import JoinPlan, RelationshipResolver
from .table_gateway import Page, TableGateway, create_table_gateway, map_dynamodb_error
from .value_codec import ValueCodec

__all__ = [
    # Conditions
    "KeyCondition",
    "Operator",
    "parse_condition",

    # Change notifications
    "ChangeDispatcher",
    "EntityChangeEvent",
    "Subscription",
    "TriggerEvent",
    "subscribe_to_changes",

    # Keys, values and joins
    "KeyResolver",
    "ValueCodec",
    "JoinPlan",
    "RelationshipResolver",

    # Gateways
    "InMemoryStore",
    "InMemoryTableGateway",
    "Page",
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
]
