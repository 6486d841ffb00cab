"""Tests for setup statement ordering, grants and execution."""
import pytest

from scripts.user_role_staging.config import StagingConfig
from scripts.user_role_staging.provisioning import (
    provision,
    reader_role_statements,
    render_setup_script,
    setup_statements,
)
from scripts.user_role_staging.schema import ALL_TABLES


class TestSetupStatements:
    def test_order(self, staging):
        statements = setup_statements(staging)

        assert statements[0] == "CREATE DATABASE IF NOT EXISTS TRELICA"
        assert statements[1] == "CREATE SCHEMA IF NOT EXISTS TRELICA.USER_ROLE_STAGING"
        kinds = [s.split("\n")[0].split(" (")[0] for s in statements]
        proc = next(i for i, k in enumerate(kinds) if k.startswith("CREATE OR REPLACE PROCEDURE"))
        task = next(i for i, k in enumerate(kinds) if k.startswith("CREATE OR REPLACE TASK"))
        role = next(i for i, k in enumerate(kinds) if k.startswith("CREATE ROLE"))
        last_table = max(i for i, k in enumerate(kinds) if "TABLE" in k and k.startswith("CREATE"))
        assert last_table < proc < task < role
        assert statements[task + 1].endswith("RESUME")

    def test_skip_task(self, staging):
        statements = setup_statements(staging, include_task=False)

        assert not any("TASK" in s.split("\n")[0] for s in statements)

    def test_task_left_suspended(self, staging):
        statements = setup_statements(staging, resume_task=False)

        assert any(s.startswith("CREATE OR REPLACE TASK") for s in statements)
        assert not any(s.endswith("RESUME") for s in statements)


class TestReaderRole:
    def test_grants(self, staging):
        statements = reader_role_statements(staging)

        assert statements[0].startswith("CREATE ROLE IF NOT EXISTS TRELICA_READER")
        assert "GRANT USAGE ON DATABASE TRELICA TO ROLE TRELICA_READER" in statements
        assert "GRANT USAGE ON SCHEMA TRELICA.USER_ROLE_STAGING TO ROLE TRELICA_READER" in statements
        for table in ALL_TABLES:
            assert (
                f"GRANT SELECT ON TABLE TRELICA.USER_ROLE_STAGING.{table.name} TO ROLE TRELICA_READER"
                in statements
            )
        assert statements[-1] == (
            "GRANT SELECT ON FUTURE TABLES IN SCHEMA TRELICA.USER_ROLE_STAGING TO ROLE TRELICA_READER"
        )

    def test_reader_role_is_read_only(self, staging):
        for sql in reader_role_statements(staging)[1:]:
            assert sql.startswith(("GRANT USAGE", "GRANT SELECT"))

    def test_custom_role(self):
        statements = reader_role_statements(StagingConfig(reader_role="AUDIT_READER"))

        assert all("AUDIT_READER" in s for s in statements)


class TestRenderSetupScript:
    def test_statements_terminated(self, staging):
        script = render_setup_script(staging)

        assert script.startswith("-- Snowflake user and role staging setup for TRELICA.USER_ROLE_STAGING")
        assert "CREATE DATABASE IF NOT EXISTS TRELICA;" in script
        assert "$$;" in script
        assert script.rstrip().endswith("TO ROLE TRELICA_READER;")


class TestProvision:
    def test_executes_all_statements(self, warehouse, fake_conn, staging):
        count = provision(warehouse)

        assert count == len(setup_statements(staging))
        assert fake_conn.statements == setup_statements(staging)

    def test_stops_at_first_failure(self, warehouse, fake_conn):
        fake_conn.failures = {"CREATE OR REPLACE TASK": RuntimeError("no EXECUTE TASK privilege")}

        with pytest.raises(RuntimeError, match="EXECUTE TASK"):
            provision(warehouse)

        assert fake_conn.statements[-1].startswith("CREATE OR REPLACE TASK")
        assert not any(s.startswith("CREATE ROLE") for s in fake_conn.statements)
