"""Staging table definitions and DDL rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from scripts.user_role_staging.config import StagingConfig


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    not_null: bool = False
    default: Optional[str] = None

    def ddl(self) -> str:
        parts = [self.name, self.type]
        if self.not_null:
            parts.append("NOT NULL")
        if self.default is not None:
            parts.append(f"DEFAULT {self.default}")
        return " ".join(parts)


@dataclass(frozen=True)
class StagingTable:
    name: str
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...]
    # Snapshot tables are recreated on setup; history tables are kept
    replace: bool = True

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def _name(column: str, size: int = 255, not_null: bool = False) -> Column:
    return Column(column, f"VARCHAR({size})", not_null=not_null)


LAST_UPDATED = Column("last_updated", "TIMESTAMP_NTZ", default="CURRENT_TIMESTAMP()")

ROLES = StagingTable(
    name="ROLES_STAGING",
    columns=(
        _name("role_name", not_null=True),
        _name("role_owner"),
        Column("created_on", "TIMESTAMP_NTZ"),
        Column("comment", "VARCHAR(16777216)"),
        Column("assigned_user_count", "NUMBER(38,0)"),
        Column("granted_role_count", "NUMBER(38,0)"),
        Column("granted_to_role_count", "NUMBER(38,0)"),
        LAST_UPDATED,
    ),
    primary_key=("role_name",),
)

USER_ROLE_ASSIGNMENTS = StagingTable(
    name="USER_ROLE_ASSIGNMENTS_STAGING",
    columns=(
        _name("user_name", not_null=True),
        _name("role_name", not_null=True),
        Column("granted_on", "TIMESTAMP_NTZ"),
        _name("granted_by"),
        Column("default_role", "BOOLEAN", default="FALSE"),
        LAST_UPDATED,
    ),
    primary_key=("user_name", "role_name"),
)

USERS = StagingTable(
    name="USERS_STAGING",
    columns=(
        _name("user_name", not_null=True),
        _name("display_name"),
        _name("first_name"),
        _name("last_name"),
        _name("email"),
        Column("created_on", "TIMESTAMP_NTZ"),
        Column("disabled", "BOOLEAN"),
        Column("locked", "BOOLEAN"),
        _name("default_warehouse"),
        _name("default_namespace"),
        _name("default_role"),
        Column("ext_authn_duo", "BOOLEAN"),
        _name("ext_authn_uid"),
        Column("must_change_password", "BOOLEAN"),
        Column("snowflake_lock", "BOOLEAN"),
        LAST_UPDATED,
    ),
    primary_key=("user_name",),
)

USER_MFA_ENROLLMENT = StagingTable(
    name="USER_MFA_ENROLLMENT_STAGING",
    columns=(
        _name("user_name", not_null=True),
        Column("mfa_enrolled", "BOOLEAN", default="FALSE"),
        _name("enrollment_status", size=50),
        LAST_UPDATED,
    ),
    primary_key=("user_name",),
)

USER_SESSION_SUMMARY = StagingTable(
    name="USER_SESSION_SUMMARY_STAGING",
    columns=(
        _name("user_name", not_null=True),
        Column("last_successful_login", "TIMESTAMP_NTZ"),
        Column("days_since_last_login", "NUMBER(38,0)"),
        Column("failed_login_attempts_last_year", "NUMBER(38,0)"),
        _name("most_recent_client_ip"),
        LAST_UPDATED,
    ),
    primary_key=("user_name",),
)

EXTRACTION_RUNS = StagingTable(
    name="EXTRACTION_RUNS",
    columns=(
        Column("run_id", "VARCHAR(36)", not_null=True),
        Column("started_at", "TIMESTAMP_NTZ"),
        Column("finished_at", "TIMESTAMP_NTZ"),
        _name("status", size=20),
        Column("records_inserted", "NUMBER(38,0)", default="0"),
        Column("error_message", "VARCHAR(1000)"),
        LAST_UPDATED,
    ),
    primary_key=("run_id",),
    replace=False,
)

# Refresh order of the snapshot tables
STAGING_TABLES: tuple[StagingTable, ...] = (
    ROLES,
    USER_ROLE_ASSIGNMENTS,
    USERS,
    USER_MFA_ENROLLMENT,
    USER_SESSION_SUMMARY,
)

ALL_TABLES: tuple[StagingTable, ...] = STAGING_TABLES + (EXTRACTION_RUNS,)


def create_table_sql(table: StagingTable, staging: StagingConfig) -> str:
    verb = "CREATE OR REPLACE TABLE" if table.replace else "CREATE TABLE IF NOT EXISTS"
    body = [f"    {c.ddl()}" for c in table.columns]
    body.append(f"    PRIMARY KEY ({', '.join(table.primary_key)})")
    return f"{verb} {staging.qualified(table.name)} (\n" + ",\n".join(body) + "\n)"
