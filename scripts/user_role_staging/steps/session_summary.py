"""Per-user login activity over the lookback window."""

from __future__ import annotations

from scripts.user_role_staging.base_step import ACCOUNT_USAGE, BaseStep
from scripts.user_role_staging.schema import USER_SESSION_SUMMARY


class SessionSummaryStep(BaseStep):
    STEP_NAME = "session_summary"
    TABLE = USER_SESSION_SUMMARY

    def select_sql(self) -> str:
        # most_recent_client_ip is the IP of the latest successful login
        return f"""
WITH login_summary AS (
    SELECT
        user_name,
        MAX(CASE WHEN is_success = 'YES' THEN event_timestamp END) AS last_successful_login,
        COUNT(CASE WHEN is_success = 'NO' THEN 1 END) AS failed_attempts,
        MAX_BY(CASE WHEN is_success = 'YES' THEN client_ip END,
               CASE WHEN is_success = 'YES' THEN event_timestamp END) AS last_success_ip
    FROM {ACCOUNT_USAGE}.LOGIN_HISTORY
    WHERE {self.lookback_predicate()}
    GROUP BY user_name
)
SELECT
    ls.user_name,
    ls.last_successful_login,
    DATEDIFF(DAY, ls.last_successful_login, CURRENT_TIMESTAMP()) AS days_since_last_login,
    ls.failed_attempts AS failed_login_attempts_last_year,
    ls.last_success_ip AS most_recent_client_ip,
    CURRENT_TIMESTAMP() AS last_updated
FROM login_summary ls
WHERE ls.last_successful_login IS NOT NULL
   OR ls.failed_attempts > 0
"""
