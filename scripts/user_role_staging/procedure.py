"""Render the in-warehouse extraction procedure and its daily task.

The procedure body is built from the same step SQL the client-side extractor
runs, so both paths produce identical snapshots.
"""

from __future__ import annotations

from scripts.user_role_staging.config import StagingConfig
from scripts.user_role_staging.extractor import ERROR_PREFIX, SUCCESS_PREFIX, build_steps

TASK_COMMENT = "Daily extraction of user and role data to staging tables"


def _indent(sql: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line if line.strip() else "" for line in sql.splitlines())


def procedure_name(staging: StagingConfig) -> str:
    return staging.qualified(staging.procedure_name)


def task_name(staging: StagingConfig) -> str:
    return staging.qualified(staging.task_name)


def render_procedure(staging: StagingConfig) -> str:
    """CREATE OR REPLACE PROCEDURE returning a status string.

    Any error is caught by the EXCEPTION block and returned as text.
    """
    body: list[str] = []
    for step in build_steps(staging):
        body.append(f"-- {step.TABLE.name}")
        for sql in step.statements():
            body.append(sql.strip() + ";")
        body.append("")

    statements = _indent("\n".join(body))
    return (
        f"CREATE OR REPLACE PROCEDURE {procedure_name(staging)}()\n"
        "RETURNS VARCHAR\n"
        "LANGUAGE SQL\n"
        "EXECUTE AS OWNER\n"
        "AS\n"
        "$$\n"
        "BEGIN\n"
        f"{statements}\n"
        f"    RETURN '{SUCCESS_PREFIX}' || CURRENT_TIMESTAMP()::VARCHAR;\n"
        "EXCEPTION\n"
        "    WHEN OTHER THEN\n"
        f"        RETURN '{ERROR_PREFIX}' || SQLERRM;\n"
        "END;\n"
        "$$"
    )


def render_call(staging: StagingConfig) -> str:
    return f"CALL {procedure_name(staging)}()"


def render_task(staging: StagingConfig) -> str:
    """CREATE OR REPLACE TASK calling the procedure on the configured schedule.

    Without a task warehouse the task runs on serverless compute.
    """
    lines = [f"CREATE OR REPLACE TASK {task_name(staging)}"]
    if staging.task_warehouse:
        lines.append(f"    WAREHOUSE = {staging.task_warehouse}")
    lines.append(f"    SCHEDULE = '{staging.task_schedule}'")
    lines.append(f"    COMMENT = '{TASK_COMMENT}'")
    lines.append("AS")
    lines.append(f"    {render_call(staging)}")
    return "\n".join(lines)


def render_task_resume(staging: StagingConfig) -> str:
    return f"ALTER TASK {task_name(staging)} RESUME"


def render_task_suspend(staging: StagingConfig) -> str:
    return f"ALTER TASK {task_name(staging)} SUSPEND"
