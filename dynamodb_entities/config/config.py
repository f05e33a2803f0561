import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Pick up a local .env before any defaults are read
load_dotenv()

DEFAULT_QUERY_LIMIT = 1000

ENVIRONMENTS = ('dev', 'test', 'staging', 'prod')


def _from_env(name: str, default: Optional[str] = None):
    return Field(default_factory=lambda: os.getenv(name, default))


def _flag_from_env(name: str):
    return Field(default_factory=lambda: os.getenv(name, "false").strip().lower() in ("1", "true", "yes"))


class DynamoDBConfig(BaseModel):
    """Connection, naming and paging settings shared by every repository.

    Unset fields are read from the environment (and a ``.env`` file):

    ========================  ==========================
    field                     variable
    ========================  ==========================
    aws_access_key_id         AWS_ACCESS_KEY_ID
    aws_secret_access_key     AWS_SECRET_ACCESS_KEY
    region_name               AWS_REGION
    endpoint_url              DYNAMODB_ENDPOINT_URL
    table_prefix              DYNAMODB_TABLE_PREFIX
    environment               ENVIRONMENT
    enable_debug_logging      DYNAMODB_DEBUG_LOGGING
    default_timezone          DYNAMODB_TIMEZONE
    user_timezone             DYNAMODB_USER_TIMEZONE
    ========================  ==========================
    """

    model_config = ConfigDict(validate_assignment=True)

    # Credentials and endpoint
    aws_access_key_id: Optional[str] = _from_env("AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = _from_env("AWS_SECRET_ACCESS_KEY")
    region_name: str = _from_env("AWS_REGION", "us-east-1")
    endpoint_url: Optional[str] = _from_env("DYNAMODB_ENDPOINT_URL")

    # botocore client tuning; retries are performed by botocore, never by repositories
    max_pool_connections: int = 50
    retries: int = 3
    timeout_seconds: float = 30.0

    # Table naming: {prefix}_{environment}_{entity table}, environment omitted in prod
    table_prefix: str = _from_env("DYNAMODB_TABLE_PREFIX", "")
    environment: str = _from_env("ENVIRONMENT", "dev")

    enable_debug_logging: bool = _flag_from_env("DYNAMODB_DEBUG_LOGGING")

    # Naive datetimes are read in default_timezone; loaded dates convert to user_timezone
    default_timezone: str = _from_env("DYNAMODB_TIMEZONE", "UTC")
    user_timezone: Optional[str] = _from_env("DYNAMODB_USER_TIMEZONE")

    # Page size for query, scan and relationship joins when no limit is given
    default_query_limit: int = DEFAULT_QUERY_LIMIT

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in ENVIRONMENTS:
            raise ValueError(f"Environment must be one of: {list(ENVIRONMENTS)}")
        return v

    @field_validator('default_timezone', 'user_timezone')
    @classmethod
    def validate_timezone(cls, v):
        """Accept any IANA zone name; None leaves dates in UTC."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Invalid timezone: {v}. Please use a valid IANA timezone identifier.") from None
        return v

    @field_validator('default_query_limit')
    @classmethod
    def validate_query_limit(cls, v):
        if v < 1:
            raise ValueError("default_query_limit must be a positive integer")
        return v

    def get_table_name(self, base_name: str) -> str:
        """Physical table name for an entity's base table name.

        >>> DynamoDBConfig(table_prefix="shop", environment="dev").get_table_name("Users")
        'shop_dev_Users'
        """
        environment = None if self.environment == "prod" else self.environment
        return "_".join(part for part in (self.table_prefix, environment, base_name) if part)

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        return cls()

    @classmethod
    def for_local_development(cls, endpoint_url: str = "http://localhost:8000") -> 'DynamoDBConfig':
        """Settings for DynamoDB Local or a compatible emulator."""
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url=endpoint_url,
            environment="dev",
            enable_debug_logging=True
        )
