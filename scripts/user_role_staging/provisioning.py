"""Ordered setup statements for the staging schema.

Creates the database, schema and tables, installs the extraction procedure
and its daily task, then creates the read-only reader role. Everything except
EXTRACTION_RUNS is CREATE OR REPLACE / IF NOT EXISTS, so setup can be rerun.
"""

from __future__ import annotations

import logging

from scripts.user_role_staging.config import StagingConfig
from scripts.user_role_staging.db import Warehouse
from scripts.user_role_staging.procedure import (
    render_procedure,
    render_task,
    render_task_resume,
)
from scripts.user_role_staging.schema import ALL_TABLES, create_table_sql

logger = logging.getLogger("staging.provisioning")

READER_ROLE_COMMENT = "Read-only access to TRELICA staging tables"


def schema_statements(staging: StagingConfig) -> list[str]:
    statements = [
        f"CREATE DATABASE IF NOT EXISTS {staging.database}",
        f"CREATE SCHEMA IF NOT EXISTS {staging.location}",
    ]
    statements.extend(create_table_sql(t, staging) for t in ALL_TABLES)
    return statements


def task_statements(staging: StagingConfig, resume: bool = True) -> list[str]:
    # Resuming requires the EXECUTE TASK privilege
    statements = [render_task(staging)]
    if resume:
        statements.append(render_task_resume(staging))
    return statements


def reader_role_statements(staging: StagingConfig) -> list[str]:
    role = staging.reader_role
    statements = [
        f"CREATE ROLE IF NOT EXISTS {role}\n    COMMENT = '{READER_ROLE_COMMENT}'",
        f"GRANT USAGE ON DATABASE {staging.database} TO ROLE {role}",
        f"GRANT USAGE ON SCHEMA {staging.location} TO ROLE {role}",
    ]
    statements.extend(
        f"GRANT SELECT ON TABLE {staging.qualified(t.name)} TO ROLE {role}"
        for t in ALL_TABLES
    )
    statements.append(
        f"GRANT SELECT ON FUTURE TABLES IN SCHEMA {staging.location} TO ROLE {role}"
    )
    return statements


def setup_statements(
    staging: StagingConfig,
    include_task: bool = True,
    resume_task: bool = True,
) -> list[str]:
    statements = schema_statements(staging)
    statements.append(render_procedure(staging))
    if include_task:
        statements.extend(task_statements(staging, resume=resume_task))
    statements.extend(reader_role_statements(staging))
    return statements


def render_setup_script(
    staging: StagingConfig,
    include_task: bool = True,
    resume_task: bool = True,
) -> str:
    """The full setup as a single runnable SQL script."""
    header = (
        f"-- Snowflake user and role staging setup for {staging.location}\n"
        "-- Run as a role able to create databases, tasks and roles.\n"
    )
    body = "\n\n".join(
        s + ";" for s in setup_statements(staging, include_task, resume_task)
    )
    return header + "\n" + body + "\n"


def provision(
    warehouse: Warehouse,
    include_task: bool = True,
    resume_task: bool = True,
) -> int:
    """Execute the setup statements in order. Returns the number executed."""
    statements = setup_statements(warehouse.staging, include_task, resume_task)
    logger.info(
        "Provisioning %s", warehouse.staging.location,
        extra={"statement_count": len(statements)},
    )
    return warehouse.execute_statements(statements)
