"""Roles with owner, creation time and grant counts."""

from __future__ import annotations

from scripts.user_role_staging.base_step import ACCOUNT_USAGE, BaseStep
from scripts.user_role_staging.schema import ROLES


class RolesStep(BaseStep):
    STEP_NAME = "roles"
    TABLE = ROLES

    def select_sql(self) -> str:
        # granted_role_count: roles granted TO this role (parents it inherits)
        # granted_to_role_count: roles this role is granted TO (children)
        return f"""
WITH roles AS (
    SELECT
        name       AS role_name,
        owner      AS role_owner,
        created_on AS created_on,
        comment    AS comment
    FROM {ACCOUNT_USAGE}.ROLES
    WHERE deleted_on IS NULL
      AND role_type = 'ROLE'
),
user_counts AS (
    SELECT
        role AS role_name,
        COUNT(DISTINCT grantee_name) AS assigned_user_count
    FROM {ACCOUNT_USAGE}.GRANTS_TO_USERS
    WHERE deleted_on IS NULL
    GROUP BY role
),
role_parents AS (
    SELECT
        grantee_name AS role_name,
        COUNT(DISTINCT name) AS parent_role_count
    FROM {ACCOUNT_USAGE}.GRANTS_TO_ROLES
    WHERE deleted_on IS NULL
      AND granted_to = 'ROLE'
      AND granted_on = 'ROLE'
    GROUP BY grantee_name
),
role_children AS (
    SELECT
        name AS role_name,
        COUNT(DISTINCT grantee_name) AS child_role_count
    FROM {ACCOUNT_USAGE}.GRANTS_TO_ROLES
    WHERE deleted_on IS NULL
      AND granted_to = 'ROLE'
      AND granted_on = 'ROLE'
    GROUP BY name
)
SELECT
    r.role_name,
    r.role_owner,
    r.created_on,
    r.comment,
    COALESCE(u.assigned_user_count, 0) AS assigned_user_count,
    COALESCE(p.parent_role_count, 0)   AS granted_role_count,
    COALESCE(c.child_role_count, 0)    AS granted_to_role_count,
    CURRENT_TIMESTAMP()                AS last_updated
FROM roles r
LEFT JOIN user_counts u USING (role_name)
LEFT JOIN role_parents p USING (role_name)
LEFT JOIN role_children c USING (role_name)
"""
