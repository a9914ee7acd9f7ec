from __future__ import annotations

import pytest

from listingsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_gbp_config,
    get_sync_config,
    require_env_var,
    require_env_vars,
)

_SYNC_VARS = (
    "LISTINGSYNC_MAX_ATTEMPTS",
    "LISTINGSYNC_BASE_DELAY_SECONDS",
    "LISTINGSYNC_MAX_DELAY_SECONDS",
    "LISTINGSYNC_CALL_TIMEOUT_SECONDS",
    "LISTINGSYNC_MAX_CONCURRENT_SYNCS",
    "LISTINGSYNC_BULK_WORKERS",
    "LISTINGSYNC_BULK_MAX_ITEMS",
    "LISTINGSYNC_REPLY_MAX_LENGTH",
    "LISTINGSYNC_SYNC_MODE",
    "LISTINGSYNC_COMPLETENESS_WEIGHTS",
)


@pytest.fixture
def clean_sync_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _SYNC_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"])["EXAMPLE_VAR"] == "value"


def test_require_env_vars_names_every_missing_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)
    assert exc.value.names == ("MISSING_A", "MISSING_B")


def test_require_env_var_returns_single_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMP_VAR", "123")

    assert require_env_var("TEMP_VAR") == "123"


def test_gbp_config_reads_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GBP_ACCESS_TOKEN", "token")
    monkeypatch.setenv("GBP_ACCOUNT_ID", "7")
    monkeypatch.setenv("GBP_TIMEOUT_SECONDS", "5")

    config = get_gbp_config()

    assert config.access_token == "token"
    assert config.account_id == "7"
    assert config.resilience.timeout_seconds == 5.0
    assert config.resilience.ratelimit is not None


def test_gbp_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GBP_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("GBP_ACCOUNT_ID", "7")

    with pytest.raises(MissingConfigurationError, match="GBP_ACCESS_TOKEN"):
        get_gbp_config()


def test_sync_config_defaults(clean_sync_env: pytest.MonkeyPatch) -> None:
    config = get_sync_config()

    assert config.max_attempts == 4
    assert config.bulk_workers == 5
    assert config.bulk_max_items == 50
    assert config.mode == "full"
    assert config.completeness_weights == {}


def test_sync_config_reads_overrides(clean_sync_env: pytest.MonkeyPatch) -> None:
    clean_sync_env.setenv("LISTINGSYNC_MAX_ATTEMPTS", "2")
    clean_sync_env.setenv("LISTINGSYNC_SYNC_MODE", "incremental")
    clean_sync_env.setenv("LISTINGSYNC_REPLY_MAX_LENGTH", "280")
    clean_sync_env.setenv("LISTINGSYNC_COMPLETENESS_WEIGHTS", '{"description": 20}')

    config = get_sync_config()

    assert config.max_attempts == 2
    assert config.mode == "incremental"
    assert config.reply_max_length == 280
    assert config.completeness_weights == {"description": 20}


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("LISTINGSYNC_MAX_ATTEMPTS", "zero"),
        ("LISTINGSYNC_MAX_ATTEMPTS", "0"),
        ("LISTINGSYNC_CALL_TIMEOUT_SECONDS", "-1"),
        ("LISTINGSYNC_SYNC_MODE", "sometimes"),
        ("LISTINGSYNC_COMPLETENESS_WEIGHTS", "[1, 2]"),
        ("LISTINGSYNC_COMPLETENESS_WEIGHTS", "{not json"),
        ("LISTINGSYNC_COMPLETENESS_WEIGHTS", '{"description": "high"}'),
    ],
)
def test_invalid_sync_values_are_configuration_errors(
    clean_sync_env: pytest.MonkeyPatch, name: str, value: str
) -> None:
    clean_sync_env.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_sync_config()
