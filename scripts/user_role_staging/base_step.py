"""Abstract base class for staging table refresh steps."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from scripts.user_role_staging.config import StagingConfig
from scripts.user_role_staging.db import Warehouse
from scripts.user_role_staging.schema import StagingTable

logger = logging.getLogger("staging.step")

ACCOUNT_USAGE = "SNOWFLAKE.ACCOUNT_USAGE"


class BaseStep(ABC):
    """Each step declares STEP_NAME and TABLE and overrides select_sql().

    A refresh is TRUNCATE followed by INSERT ... SELECT, so the table only
    ever holds the latest snapshot.
    """

    STEP_NAME: str = ""
    TABLE: StagingTable

    def __init__(self, staging: StagingConfig) -> None:
        self.staging = staging

    @property
    def table_name(self) -> str:
        return self.staging.qualified(self.TABLE.name)

    @property
    def insert_columns(self) -> list[str]:
        return self.TABLE.column_names

    @abstractmethod
    def select_sql(self) -> str:
        """SELECT producing insert_columns, in order."""

    def lookback_predicate(self, column: str = "event_timestamp") -> str:
        years = self.staging.login_lookback_years
        return f"{column} >= DATEADD(YEAR, -{years}, CURRENT_TIMESTAMP())"

    def truncate_sql(self) -> str:
        return f"TRUNCATE TABLE {self.table_name}"

    def insert_sql(self) -> str:
        cols = ",\n    ".join(self.insert_columns)
        return f"INSERT INTO {self.table_name} (\n    {cols}\n)\n{self.select_sql().strip()}"

    def statements(self) -> list[str]:
        return [self.truncate_sql(), self.insert_sql()]

    def run(self, warehouse: Warehouse) -> int:
        """Replace the table contents. Returns the number of rows inserted."""
        started = time.monotonic()
        warehouse.execute(self.truncate_sql())
        inserted = warehouse.execute(self.insert_sql())
        logger.info(
            "Refreshed %s",
            self.TABLE.name,
            extra={
                "step": self.STEP_NAME,
                "table": self.TABLE.name,
                "records": inserted,
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return inserted
