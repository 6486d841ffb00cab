"""Live user records."""

from __future__ import annotations

from scripts.user_role_staging.base_step import ACCOUNT_USAGE, BaseStep
from scripts.user_role_staging.schema import USERS


class UsersStep(BaseStep):
    STEP_NAME = "users"
    TABLE = USERS

    def select_sql(self) -> str:
        return f"""
SELECT
    name AS user_name,
    display_name,
    first_name,
    last_name,
    email,
    created_on,
    disabled,
    COALESCE(locked_until_time > CURRENT_TIMESTAMP(), FALSE) AS locked,
    default_warehouse,
    default_namespace,
    default_role,
    ext_authn_duo,
    ext_authn_uid,
    must_change_password,
    snowflake_lock,
    CURRENT_TIMESTAMP() AS last_updated
FROM {ACCOUNT_USAGE}.USERS
WHERE deleted_on IS NULL
"""
