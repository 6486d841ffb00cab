"""Shared fixtures: a fake Snowflake connection that records statements."""
import pytest
from unittest.mock import patch

from scripts.user_role_staging.config import SnowflakeConfig, StagingConfig
from scripts.user_role_staging.db import Warehouse

ENV_PREFIXES = ("SNOWFLAKE_", "STAGING_", "AWS_", "GCP_")


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = None
        self.description = None
        self._rows = []
        self.closed = False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        for marker, exc in self.conn.failures.items():
            if marker in sql:
                raise exc
        self.rowcount = 0
        for marker, count in self.conn.rowcounts.items():
            if marker in sql:
                self.rowcount = count
                break
        if self.conn.results:
            columns, rows = self.conn.results.pop(0)
            self.description = [(c,) for c in columns]
            self._rows = rows
        return self

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self):
        self.executed = []
        self.rowcounts = {}
        self.failures = {}
        self.results = []
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True

    @property
    def statements(self):
        return [sql for sql, _ in self.executed]


@pytest.fixture
def staging():
    return StagingConfig()


@pytest.fixture
def snowflake_config():
    return SnowflakeConfig(account="acme-xy12345", user="SVC_STAGING", password="pw")


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def warehouse(fake_conn, snowflake_config, staging):
    with patch("snowflake.connector.connect", return_value=fake_conn):
        yield Warehouse(snowflake_config, staging)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove Snowflake/staging/cloud env vars and ignore any local .env."""
    import os

    for key in list(os.environ):
        if key.startswith(ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("scripts.user_role_staging.config.load_dotenv", lambda: None)
    return monkeypatch
