from .config import DEFAULT_QUERY_LIMIT, DynamoDBConfig

__all__ = [
    "DEFAULT_QUERY_LIMIT",
    "DynamoDBConfig",
]
