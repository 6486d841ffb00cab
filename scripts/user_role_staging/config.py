"""Configuration via environment variables with cloud-native secret support.

Connection settings are read from SNOWFLAKE_* variables, staging layout from
STAGING_* variables. A local .env file is honoured. Passwords and key
passphrases may be secret references (see secrets.py).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from scripts.user_role_staging.secrets import resolve_env_secret

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")
_SCHEDULE_RE = re.compile(r"^(USING CRON [^']+|\d+ MINUTES?)$", re.IGNORECASE)

DEFAULT_TASK_SCHEDULE = "USING CRON 0 2 * * * UTC"


def validate_identifier(value: str, setting: str) -> str:
    """Reject anything that is not a plain unquoted Snowflake identifier."""
    if not _IDENTIFIER_RE.match(value):
        raise ValueError(f"{setting} is not a valid Snowflake identifier: {value!r}")
    return value.upper()


@dataclass(frozen=True)
class SnowflakeConfig:
    account: str
    user: str
    password: Optional[str] = None
    private_key_file: Optional[str] = None  # PKCS#8 PEM; takes precedence over password
    private_key_passphrase: Optional[str] = None
    role: Optional[str] = None
    warehouse: Optional[str] = None
    authenticator: str = "snowflake"


@dataclass(frozen=True)
class StagingConfig:
    database: str = "TRELICA"
    schema: str = "USER_ROLE_STAGING"
    reader_role: str = "TRELICA_READER"
    procedure_name: str = "EXTRACT_USER_ROLE_DATA"
    task_name: str = "DAILY_USER_ROLE_EXTRACTION_TASK"
    task_warehouse: Optional[str] = None  # None = serverless task
    task_schedule: str = DEFAULT_TASK_SCHEDULE
    login_lookback_years: int = 1

    @property
    def location(self) -> str:
        return f"{self.database}.{self.schema}"

    def qualified(self, name: str) -> str:
        """Fully qualify an object name inside the staging schema."""
        return f"{self.database}.{self.schema}.{name}"


@dataclass(frozen=True)
class AppConfig:
    staging: StagingConfig = field(default_factory=StagingConfig)
    snowflake: Optional[SnowflakeConfig] = None


def load_staging_config() -> StagingConfig:
    """Load the staging layout. Needs no credentials."""
    load_dotenv()

    schedule = os.environ.get("STAGING_TASK_SCHEDULE", DEFAULT_TASK_SCHEDULE).strip()
    if not _SCHEDULE_RE.match(schedule):
        raise ValueError(f"STAGING_TASK_SCHEDULE is not a valid task schedule: {schedule!r}")

    lookback = int(os.environ.get("STAGING_LOGIN_LOOKBACK_YEARS", "1"))
    if lookback < 1:
        raise ValueError("STAGING_LOGIN_LOOKBACK_YEARS must be at least 1")

    # Task warehouse falls back to the session warehouse
    task_wh = os.environ.get("STAGING_TASK_WAREHOUSE") or os.environ.get("SNOWFLAKE_WAREHOUSE")

    return StagingConfig(
        database=validate_identifier(
            os.environ.get("STAGING_DATABASE", "TRELICA"), "STAGING_DATABASE"
        ),
        schema=validate_identifier(
            os.environ.get("STAGING_SCHEMA", "USER_ROLE_STAGING"), "STAGING_SCHEMA"
        ),
        reader_role=validate_identifier(
            os.environ.get("STAGING_READER_ROLE", "TRELICA_READER"), "STAGING_READER_ROLE"
        ),
        task_warehouse=validate_identifier(task_wh, "STAGING_TASK_WAREHOUSE") if task_wh else None,
        task_schedule=schedule,
        login_lookback_years=lookback,
    )


def load_snowflake_config() -> SnowflakeConfig:
    """Load connection settings. Either a password or a private key file is required."""
    load_dotenv()

    account = os.environ.get("SNOWFLAKE_ACCOUNT", "")
    if not account:
        raise ValueError("SNOWFLAKE_ACCOUNT environment variable is required")
    user = os.environ.get("SNOWFLAKE_USER", "")
    if not user:
        raise ValueError("SNOWFLAKE_USER environment variable is required")

    key_file = os.environ.get("SNOWFLAKE_PRIVATE_KEY_FILE") or None
    password = None if key_file else resolve_env_secret("SNOWFLAKE_PASSWORD")
    authenticator = os.environ.get("SNOWFLAKE_AUTHENTICATOR", "snowflake")
    if not key_file and not password and authenticator == "snowflake":
        raise ValueError(
            "Set SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_FILE to authenticate"
        )

    role = os.environ.get("SNOWFLAKE_ROLE") or None
    warehouse = os.environ.get("SNOWFLAKE_WAREHOUSE") or None

    return SnowflakeConfig(
        account=account,
        user=user,
        password=password,
        private_key_file=key_file,
        private_key_passphrase=(
            resolve_env_secret("SNOWFLAKE_PRIVATE_KEY_PASSPHRASE") if key_file else None
        ),
        role=validate_identifier(role, "SNOWFLAKE_ROLE") if role else None,
        warehouse=validate_identifier(warehouse, "SNOWFLAKE_WAREHOUSE") if warehouse else None,
        authenticator=authenticator,
    )


def load_config(require_connection: bool = True) -> AppConfig:
    """Load the full configuration.

    With require_connection=False missing credentials are tolerated, which
    lets `setup --dry-run` render SQL without a Snowflake account.
    """
    staging = load_staging_config()
    if not require_connection and not os.environ.get("SNOWFLAKE_ACCOUNT"):
        return AppConfig(staging=staging)
    return AppConfig(staging=staging, snowflake=load_snowflake_config())
