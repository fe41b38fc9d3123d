"""Unit tests for indexer config validation and application settings."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from bestbets_indexer.config import (
    CONFIG_RULES,
    ConfigIssue,
    IndexerSettings,
    LoggingSettings,
    Settings,
    load_config,
    parse_config,
    validate_config,
)
from bestbets_indexer.errors import ConfigurationError, ErrorCode

GOOD_STEP_CONFIG: dict[str, Any] = {
    "eshosts": ["http://localhost:9200"],
    "daysToKeep": 10,
    "aliasName": "bestbets_v1",
    "mappingPath": "es-mappings/mappings.json",
    "settingsPath": "es-mappings/settings.json",
    "analyzer": "nostem",
}


def _without(*keys: str, **overrides: Any) -> dict[str, Any]:
    config = {k: v for k, v in GOOD_STEP_CONFIG.items() if k not in keys}
    config.update(overrides)
    return config


# ---------------------------------------------------------------------------
# validate_config (advisory)
# ---------------------------------------------------------------------------


class TestValidateConfig:
    def test_valid_config_has_no_issues(self) -> None:
        assert validate_config(GOOD_STEP_CONFIG) == []

    @pytest.mark.parametrize(
        ("missing", "message"),
        [
            ("eshosts", "eshosts is required"),
            ("settingsPath", "settingsPath is required"),
            ("mappingPath", "mappingPath is required"),
            ("analyzer", "You must supply the name of analyzer defined in the settings"),
        ],
    )
    def test_single_missing_field(self, missing: str, message: str) -> None:
        assert validate_config(_without(missing)) == [ConfigIssue(field=missing, message=message)]

    def test_two_missing_fields_in_declaration_order(self) -> None:
        issues = validate_config(_without("mappingPath", "eshosts"))
        assert [issue.field for issue in issues] == ["eshosts", "mappingPath"]

    def test_everything_missing(self) -> None:
        issues = validate_config({})
        assert [issue.field for issue in issues] == [
            "eshosts",
            "settingsPath",
            "mappingPath",
            "analyzer",
        ]

    def test_none_config_treated_as_empty(self) -> None:
        assert len(validate_config(None)) == 4

    def test_rule_table_order(self) -> None:
        assert [rule.field for rule in CONFIG_RULES] == [
            "eshosts",
            "settingsPath",
            "mappingPath",
            "analyzer",
            "socketLimit",
        ]

    @pytest.mark.parametrize("hosts", [[], "", [""], None, 9200])
    def test_bad_hosts(self, hosts: Any) -> None:
        assert [i.field for i in validate_config(_without(eshosts=hosts))] == ["eshosts"]

    def test_non_string_settings_path(self) -> None:
        assert [i.field for i in validate_config(_without(settingsPath=[]))] == ["settingsPath"]

    @pytest.mark.parametrize("limit", ["chicken", -1, 0, True, 1.5])
    def test_bad_socket_limit(self, limit: Any) -> None:
        assert validate_config(_without(socketLimit=limit)) == [
            ConfigIssue(field="socketLimit", message="socketLimit must be a number greater than 0")
        ]

    def test_bad_retention_type_reported(self) -> None:
        issues = validate_config(_without(daysToKeep="ten"))
        assert [i.field for i in issues] == ["daysToKeep"]


# ---------------------------------------------------------------------------
# load_config (fail-fast)
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_defaults_applied(self) -> None:
        settings = load_config(_without("daysToKeep"))
        assert isinstance(settings, IndexerSettings)
        assert settings.days_to_keep == 10
        assert settings.min_indexes_to_keep == 2
        assert settings.socket_limit == 80
        assert settings.alias_name == "bestbets_v1"
        assert settings.analyzer == "nostem"

    def test_socket_limit_forwarded(self) -> None:
        assert load_config(_without(socketLimit=50)).socket_limit == 50

    def test_single_host_string_becomes_list(self) -> None:
        assert load_config(_without(eshosts="http://es:9200")).eshosts == ["http://es:9200"]

    @pytest.mark.parametrize("limit", ["chicken", -1, 1.5])
    def test_bad_socket_limit_raises(self, limit: Any) -> None:
        with pytest.raises(ConfigurationError, match="socketLimit must be a number greater than 0"):
            load_config(_without(socketLimit=limit))

    def test_raises_first_issue_only(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(_without("settingsPath", "analyzer"))
        assert exc_info.value.message == "settingsPath is required"
        assert exc_info.value.code == ErrorCode.CONFIGURATION_INVALID
        assert exc_info.value.recoverable is False

    @pytest.mark.parametrize(
        "config",
        [
            _without("eshosts"),
            _without("settingsPath"),
            _without("mappingPath"),
            _without("analyzer"),
            _without(socketLimit="chicken"),
            _without("mappingPath", "analyzer"),
        ],
    )
    def test_agrees_with_advisory_path(self, config: dict[str, Any]) -> None:
        expected = validate_config(config)[0].message
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config)
        assert exc_info.value.message == expected

    def test_parse_config_result(self) -> None:
        assert parse_config(GOOD_STEP_CONFIG).ok
        result = parse_config({})
        assert not result.ok
        assert result.settings is None


# ---------------------------------------------------------------------------
# Application settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.logging == LoggingSettings()
        assert settings.source.content_dir == "content"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BESTBETS__LOGGING__LEVEL", "DEBUG")
        assert Settings().logging.level == "DEBUG"

    def test_indexer_section_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BESTBETS__INDEXER", '{"eshosts": ["http://es:9200"]}')
        assert Settings().indexer == {"eshosts": ["http://es:9200"]}

    def test_unknown_nested_field_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(levle="DEBUG")  # type: ignore[call-arg]

    def test_bad_log_level_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(logging={"level": "LOUD"})  # type: ignore[arg-type]
