"""Tests for environment-driven configuration."""
import pytest
from unittest.mock import patch

from scripts.user_role_staging.config import (
    DEFAULT_TASK_SCHEDULE,
    load_config,
    load_snowflake_config,
    load_staging_config,
    validate_identifier,
)


class TestValidateIdentifier:
    def test_uppercases_valid_identifier(self):
        assert validate_identifier("trelica_reader", "X") == "TRELICA_READER"

    @pytest.mark.parametrize("value", ["1ABC", "a-b", "DB; DROP TABLE X", "", "a.b"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError, match="STAGING_DATABASE"):
            validate_identifier(value, "STAGING_DATABASE")


class TestStagingConfig:
    def test_defaults(self, clean_env):
        staging = load_staging_config()

        assert staging.database == "TRELICA"
        assert staging.schema == "USER_ROLE_STAGING"
        assert staging.reader_role == "TRELICA_READER"
        assert staging.task_schedule == DEFAULT_TASK_SCHEDULE
        assert staging.task_warehouse is None
        assert staging.login_lookback_years == 1
        assert staging.qualified("USERS_STAGING") == "TRELICA.USER_ROLE_STAGING.USERS_STAGING"

    def test_task_warehouse_falls_back_to_session_warehouse(self, clean_env):
        clean_env.setenv("SNOWFLAKE_WAREHOUSE", "compute_wh")

        assert load_staging_config().task_warehouse == "COMPUTE_WH"

    def test_explicit_task_warehouse_wins(self, clean_env):
        clean_env.setenv("SNOWFLAKE_WAREHOUSE", "COMPUTE_WH")
        clean_env.setenv("STAGING_TASK_WAREHOUSE", "ETL_WH")

        assert load_staging_config().task_warehouse == "ETL_WH"

    @pytest.mark.parametrize("schedule", ["60 MINUTE", "USING CRON 0 */6 * * * UTC"])
    def test_accepts_schedules(self, clean_env, schedule):
        clean_env.setenv("STAGING_TASK_SCHEDULE", schedule)

        assert load_staging_config().task_schedule == schedule

    @pytest.mark.parametrize("schedule", ["daily", "USING CRON 0 2 * * * UTC'; DROP"])
    def test_rejects_bad_schedule(self, clean_env, schedule):
        clean_env.setenv("STAGING_TASK_SCHEDULE", schedule)

        with pytest.raises(ValueError, match="STAGING_TASK_SCHEDULE"):
            load_staging_config()

    def test_rejects_zero_lookback(self, clean_env):
        clean_env.setenv("STAGING_LOGIN_LOOKBACK_YEARS", "0")

        with pytest.raises(ValueError, match="LOOKBACK"):
            load_staging_config()


class TestSnowflakeConfig:
    def test_account_required(self, clean_env):
        with pytest.raises(ValueError, match="SNOWFLAKE_ACCOUNT"):
            load_snowflake_config()

    def test_credentials_required(self, clean_env):
        clean_env.setenv("SNOWFLAKE_ACCOUNT", "acme-xy12345")
        clean_env.setenv("SNOWFLAKE_USER", "SVC")

        with pytest.raises(ValueError, match="SNOWFLAKE_PASSWORD"):
            load_snowflake_config()

    def test_password_auth(self, clean_env):
        clean_env.setenv("SNOWFLAKE_ACCOUNT", "acme-xy12345")
        clean_env.setenv("SNOWFLAKE_USER", "SVC")
        clean_env.setenv("SNOWFLAKE_PASSWORD", "s3cret")
        clean_env.setenv("SNOWFLAKE_ROLE", "accountadmin")

        config = load_snowflake_config()

        assert config.password == "s3cret"
        assert config.private_key_file is None
        assert config.role == "ACCOUNTADMIN"

    def test_key_pair_auth_ignores_password(self, clean_env):
        clean_env.setenv("SNOWFLAKE_ACCOUNT", "acme-xy12345")
        clean_env.setenv("SNOWFLAKE_USER", "SVC")
        clean_env.setenv("SNOWFLAKE_PASSWORD", "unused")
        clean_env.setenv("SNOWFLAKE_PRIVATE_KEY_FILE", "/keys/snowflake_private_key.pem")
        clean_env.setenv("SNOWFLAKE_PRIVATE_KEY_PASSPHRASE", "pp")

        config = load_snowflake_config()

        assert config.password is None
        assert config.private_key_file == "/keys/snowflake_private_key.pem"
        assert config.private_key_passphrase == "pp"

    def test_password_secret_reference_resolved(self, clean_env):
        clean_env.setenv("SNOWFLAKE_ACCOUNT", "acme-xy12345")
        clean_env.setenv("SNOWFLAKE_USER", "SVC")
        clean_env.setenv("SNOWFLAKE_PASSWORD", "aws-secret://snowflake/svc#password")

        with patch(
            "scripts.user_role_staging.secrets._resolve_aws_secret", return_value="from-store"
        ) as mock_aws:
            config = load_snowflake_config()

        assert config.password == "from-store"
        mock_aws.assert_called_once_with("snowflake/svc#password")

    def test_external_browser_needs_no_secret(self, clean_env):
        clean_env.setenv("SNOWFLAKE_ACCOUNT", "acme-xy12345")
        clean_env.setenv("SNOWFLAKE_USER", "me@example.com")
        clean_env.setenv("SNOWFLAKE_AUTHENTICATOR", "externalbrowser")

        assert load_snowflake_config().authenticator == "externalbrowser"


class TestLoadConfig:
    def test_dry_run_without_account(self, clean_env):
        config = load_config(require_connection=False)

        assert config.snowflake is None
        assert config.staging.database == "TRELICA"

    def test_connection_required_by_default(self, clean_env):
        with pytest.raises(ValueError, match="SNOWFLAKE_ACCOUNT"):
            load_config()
