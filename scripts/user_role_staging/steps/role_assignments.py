"""User-to-role grants, flagging each user's default role."""

from __future__ import annotations

from scripts.user_role_staging.base_step import ACCOUNT_USAGE, BaseStep
from scripts.user_role_staging.schema import USER_ROLE_ASSIGNMENTS


class RoleAssignmentsStep(BaseStep):
    STEP_NAME = "role_assignments"
    TABLE = USER_ROLE_ASSIGNMENTS

    def select_sql(self) -> str:
        # One row per (user, role): the latest live grant wins
        return f"""
SELECT
    g.grantee_name AS user_name,
    g.role         AS role_name,
    g.created_on   AS granted_on,
    g.granted_by   AS granted_by,
    COALESCE(g.role = u.default_role, FALSE) AS default_role,
    CURRENT_TIMESTAMP() AS last_updated
FROM {ACCOUNT_USAGE}.GRANTS_TO_USERS g
LEFT JOIN {ACCOUNT_USAGE}.USERS u
    ON u.name = g.grantee_name
   AND u.deleted_on IS NULL
WHERE g.deleted_on IS NULL
QUALIFY ROW_NUMBER() OVER (
    PARTITION BY g.grantee_name, g.role
    ORDER BY g.created_on DESC
) = 1
"""
