"""Client-side equivalent of the EXTRACT_USER_ROLE_DATA procedure.

Runs every refresh step in order against a live connection, records the run
in EXTRACTION_RUNS and reports the outcome the same way the procedure does:
as a status string rather than an exception.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from scripts.user_role_staging.base_step import BaseStep
from scripts.user_role_staging.config import StagingConfig
from scripts.user_role_staging.db import Warehouse
from scripts.user_role_staging.steps.mfa_enrollment import MfaEnrollmentStep
from scripts.user_role_staging.steps.role_assignments import RoleAssignmentsStep
from scripts.user_role_staging.steps.roles import RolesStep
from scripts.user_role_staging.steps.session_summary import SessionSummaryStep
from scripts.user_role_staging.steps.users import UsersStep

logger = logging.getLogger("staging.extractor")

SUCCESS_PREFIX = "User and role data extraction completed successfully at "
ERROR_PREFIX = "Error during extraction: "

# Refresh order matches schema.STAGING_TABLES
STEP_CLASSES: tuple[type[BaseStep], ...] = (
    RolesStep,
    RoleAssignmentsStep,
    UsersStep,
    MfaEnrollmentStep,
    SessionSummaryStep,
)

STEP_REGISTRY: dict[str, type[BaseStep]] = {cls.STEP_NAME: cls for cls in STEP_CLASSES}


def build_steps(
    staging: StagingConfig, names: Optional[Sequence[str]] = None
) -> list[BaseStep]:
    """Instantiate steps in refresh order, optionally restricted to names."""
    if names:
        unknown = sorted(set(names) - set(STEP_REGISTRY))
        if unknown:
            raise ValueError(f"Unknown step(s): {', '.join(unknown)}")
        return [cls(staging) for cls in STEP_CLASSES if cls.STEP_NAME in names]
    return [cls(staging) for cls in STEP_CLASSES]


def is_error(message: str) -> bool:
    return message.startswith(ERROR_PREFIX)


class StagingExtractor:
    def __init__(
        self, warehouse: Warehouse, step_names: Optional[Sequence[str]] = None
    ) -> None:
        self.warehouse = warehouse
        self.steps = build_steps(warehouse.staging, step_names)

    def extract(self) -> dict[str, int]:
        """Refresh each staging table. Returns {step_name: rows_inserted}.

        Steps are independent; a failure stops the run and leaves earlier
        tables refreshed.
        """
        results: dict[str, int] = {}
        for step in self.steps:
            results[step.STEP_NAME] = step.run(self.warehouse)
        return results

    def run(self) -> str:
        """Extract with run tracking. Never raises; errors come back as text."""
        run_id: Optional[str] = None
        try:
            run_id = self.warehouse.record_run_start()
            results = self.extract()
            total = sum(results.values())
            self.warehouse.record_run_end(
                run_id=run_id, status="SUCCESS", records_inserted=total
            )
        except Exception as exc:
            logger.error(
                "Extraction failed: %s", exc, exc_info=True, extra={"run_id": run_id}
            )
            if run_id is not None:
                self._record_failure(run_id, exc)
            return f"{ERROR_PREFIX}{exc}"

        logger.info(
            "Extraction complete: %s", results, extra={"records": total, "run_id": run_id}
        )
        finished = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return f"{SUCCESS_PREFIX}{finished}"

    def _record_failure(self, run_id: str, exc: Exception) -> None:
        # Tracking errors must not mask the extraction error
        try:
            self.warehouse.record_run_end(
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
            )
        except Exception:
            logger.exception("Could not record failed run", extra={"run_id": run_id})
