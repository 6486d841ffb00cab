"""Warehouse helpers: Snowflake connection, statement execution, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional

import snowflake.connector
from cryptography.hazmat.primitives import serialization

from scripts.user_role_staging.config import SnowflakeConfig, StagingConfig
from scripts.user_role_staging.schema import EXTRACTION_RUNS

logger = logging.getLogger("staging.db")


def load_private_key_der(path: str, passphrase: Optional[str] = None) -> bytes:
    """Read a PEM private key and return it as unencrypted PKCS#8 DER.

    This is the form the Snowflake connector expects for key-pair auth.
    """
    with open(path, "rb") as fh:
        key = serialization.load_pem_private_key(
            fh.read(),
            password=passphrase.encode() if passphrase else None,
        )
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def connect_kwargs(config: SnowflakeConfig) -> dict[str, Any]:
    """Build keyword arguments for snowflake.connector.connect()."""
    kwargs: dict[str, Any] = {
        "account": config.account,
        "user": config.user,
        "application": "user_role_staging",
    }
    if config.private_key_file:
        kwargs["private_key"] = load_private_key_der(
            config.private_key_file, config.private_key_passphrase
        )
    elif config.password:
        kwargs["password"] = config.password
    if config.authenticator != "snowflake":
        kwargs["authenticator"] = config.authenticator
    if config.role:
        kwargs["role"] = config.role
    if config.warehouse:
        kwargs["warehouse"] = config.warehouse
    return kwargs


class Warehouse:
    """Thin wrapper around one Snowflake connection.

    The connection runs in autocommit mode, so every statement is its own
    transaction.
    """

    def __init__(self, config: SnowflakeConfig, staging: StagingConfig) -> None:
        self.staging = staging
        self._conn = snowflake.connector.connect(**connect_kwargs(config))

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def cursor(self) -> Generator:
        cur = self._conn.cursor()
        try:
            yield cur
        finally:
            cur.close()

    def execute(self, sql: str, params: Optional[Any] = None) -> int:
        """Execute a single statement. Returns the affected row count (0 for DDL)."""
        with self.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount or 0

    def execute_statements(self, statements: Iterable[str]) -> int:
        """Execute statements in order, stopping at the first failure.

        Returns the number of statements executed.
        """
        count = 0
        with self.cursor() as cur:
            for index, sql in enumerate(statements):
                try:
                    cur.execute(sql)
                except Exception:
                    logger.error(
                        "Statement %d failed: %s", index + 1, sql.splitlines()[0]
                    )
                    raise
                count += 1
        logger.info("Executed statements", extra={"statement_count": count})
        return count

    def query(self, sql: str, params: Optional[Any] = None) -> list[dict[str, Any]]:
        """Run a query and return rows as dicts keyed by lower-case column name."""
        with self.cursor() as cur:
            cur.execute(sql, params)
            cols = [d[0].lower() for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]

    def scalar(self, sql: str, params: Optional[Any] = None) -> Any:
        with self.cursor() as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
            return row[0] if row else None

    # ------------------------------------------------------------------
    # Extraction run tracking
    # ------------------------------------------------------------------

    @property
    def runs_table(self) -> str:
        return self.staging.qualified(EXTRACTION_RUNS.name)

    def record_run_start(self) -> str:
        """Insert a new run row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        self.execute(
            f"""INSERT INTO {self.runs_table} (run_id, started_at, status)
                SELECT %s, CURRENT_TIMESTAMP(), 'RUNNING'""",
            (run_id,),
        )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        records_inserted: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        """Finalise a run row."""
        self.execute(
            f"""UPDATE {self.runs_table}
                SET status = %s,
                    finished_at = CURRENT_TIMESTAMP(),
                    records_inserted = %s,
                    error_message = %s,
                    last_updated = CURRENT_TIMESTAMP()
                WHERE run_id = %s""",
            (status, records_inserted, error_message, run_id),
        )

    def get_recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent client-side extraction runs for status display."""
        return self.query(
            f"""SELECT run_id, status, started_at, finished_at,
                       records_inserted, error_message
                FROM {self.runs_table}
                ORDER BY started_at DESC LIMIT %s""",
            (limit,),
        )

    def get_task_history(self, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent executions of the scheduled extraction task."""
        return self.query(
            f"""SELECT name, state, scheduled_time, completed_time,
                       return_value, error_message
                FROM TABLE({self.staging.database}.INFORMATION_SCHEMA.TASK_HISTORY(
                    TASK_NAME => %s, RESULT_LIMIT => %s))
                ORDER BY scheduled_time DESC""",
            (self.staging.task_name, limit),
        )
