"""MFA enrollment derived from Duo flags and recent second factors."""

from __future__ import annotations

from scripts.user_role_staging.base_step import ACCOUNT_USAGE, BaseStep
from scripts.user_role_staging.schema import USER_MFA_ENROLLMENT

DUO = "DUO"
SNOWFLAKE_MFA = "SNOWFLAKE_MFA"
NOT_ENROLLED = "NOT_ENROLLED"


class MfaEnrollmentStep(BaseStep):
    STEP_NAME = "mfa_enrollment"
    TABLE = USER_MFA_ENROLLMENT

    def select_sql(self) -> str:
        return f"""
SELECT
    u.name AS user_name,
    CASE
        WHEN u.ext_authn_duo = TRUE THEN TRUE
        WHEN lh.second_authentication_factor IS NOT NULL THEN TRUE
        ELSE FALSE
    END AS mfa_enrolled,
    CASE
        WHEN u.ext_authn_duo = TRUE THEN '{DUO}'
        WHEN lh.second_authentication_factor IS NOT NULL THEN '{SNOWFLAKE_MFA}'
        ELSE '{NOT_ENROLLED}'
    END AS enrollment_status,
    CURRENT_TIMESTAMP() AS last_updated
FROM {ACCOUNT_USAGE}.USERS u
LEFT JOIN (
    SELECT DISTINCT
        user_name,
        FIRST_VALUE(second_authentication_factor) OVER (
            PARTITION BY user_name
            ORDER BY event_timestamp DESC
        ) AS second_authentication_factor
    FROM {ACCOUNT_USAGE}.LOGIN_HISTORY
    WHERE {self.lookback_predicate()}
      AND second_authentication_factor IS NOT NULL
) lh ON u.name = lh.user_name
WHERE u.deleted_on IS NULL
"""
