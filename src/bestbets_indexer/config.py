"""Configuration loading and validation.

Application settings are loaded in priority order (highest first):
  1. Environment variables  (BESTBETS__LOGGING__LEVEL=DEBUG)
  2. bestbets.yaml          (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The ``indexer`` section is the raw step config shared by the expander and
the index loader. It is checked by an ordered rule table that backs both the
advisory path (``validate_config``) and the fail-fast path (``load_config``),
so the two always agree on wording and triggering conditions.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from bestbets_indexer.errors import ConfigurationError

_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("bestbets")

DEFAULT_DAYS_TO_KEEP = 10
DEFAULT_MIN_INDEXES_TO_KEEP = 2
DEFAULT_SOCKET_LIMIT = 80


def _find_config_file() -> str | None:
    """Return the path of the first bestbets.yaml found, or None."""
    candidates = [
        Path("bestbets.yaml"),
        Path(_DEFAULT_CONFIG_DIR) / "bestbets.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


# ---------------------------------------------------------------------------
# Step config rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigIssue:
    """A single validation failure: which field, and what is wrong with it."""

    field: str
    message: str


@dataclass(frozen=True)
class ConfigRule:
    field: str
    message: str
    check: Callable[[Any], bool]  # True when the value is acceptable

    def evaluate(self, config: Mapping[str, Any]) -> ConfigIssue | None:
        if self.check(config.get(self.field)):
            return None
        return ConfigIssue(field=self.field, message=self.message)


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_host_list(value: Any) -> bool:
    if _is_non_empty_str(value):
        return True
    if isinstance(value, list | tuple):
        return bool(value) and all(_is_non_empty_str(host) for host in value)
    return False


def is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_socket_limit(value: Any) -> bool:
    # Optional: absent means the default pool size.
    return value is None or is_positive_int(value)


CONFIG_RULES: tuple[ConfigRule, ...] = (
    ConfigRule("eshosts", "eshosts is required", _is_host_list),
    ConfigRule("settingsPath", "settingsPath is required", _is_non_empty_str),
    ConfigRule("mappingPath", "mappingPath is required", _is_non_empty_str),
    ConfigRule(
        "analyzer",
        "You must supply the name of analyzer defined in the settings",
        _is_non_empty_str,
    ),
    ConfigRule("socketLimit", "socketLimit must be a number greater than 0", _is_socket_limit),
)


class IndexerSettings(BaseModel):
    """Typed view of a step config that passed the rule table."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    eshosts: list[str]
    alias_name: str | None = Field(default=None, alias="aliasName")
    days_to_keep: int = Field(default=DEFAULT_DAYS_TO_KEEP, alias="daysToKeep")
    min_indexes_to_keep: int = Field(
        default=DEFAULT_MIN_INDEXES_TO_KEEP, alias="minIndexesToKeep"
    )
    mapping_path: str = Field(alias="mappingPath")
    settings_path: str = Field(alias="settingsPath")
    socket_limit: int = Field(default=DEFAULT_SOCKET_LIMIT, alias="socketLimit")
    analyzer: str

    @field_validator("eshosts", mode="before")
    @classmethod
    def coerce_hosts(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("socket_limit", mode="before")
    @classmethod
    def default_socket_limit(cls, v: Any) -> Any:
        return DEFAULT_SOCKET_LIMIT if v is None else v

    @field_validator("days_to_keep", "min_indexes_to_keep", mode="before")
    @classmethod
    def default_retention(cls, v: Any, info: Any) -> Any:
        if v is None:
            if info.field_name == "days_to_keep":
                return DEFAULT_DAYS_TO_KEEP
            return DEFAULT_MIN_INDEXES_TO_KEEP
        return v


@dataclass
class ConfigResult:
    """Either a parsed ``IndexerSettings`` or the issues that prevented it."""

    settings: IndexerSettings | None = None
    issues: list[ConfigIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.settings is not None and not self.issues


def _issues_from_validation_error(exc: ValidationError) -> list[ConfigIssue]:
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "config"
        issues.append(ConfigIssue(field=loc, message=f"{loc}: {err['msg']}"))
    return issues


def parse_config(config: Mapping[str, Any] | None) -> ConfigResult:
    """Run the rule table, then build typed settings when every rule passed."""
    raw: Mapping[str, Any] = config or {}
    issues = [issue for rule in CONFIG_RULES if (issue := rule.evaluate(raw)) is not None]
    if issues:
        return ConfigResult(issues=issues)
    try:
        return ConfigResult(settings=IndexerSettings.model_validate(dict(raw)))
    except ValidationError as exc:
        return ConfigResult(issues=_issues_from_validation_error(exc))


def validate_config(config: Mapping[str, Any] | None) -> list[ConfigIssue]:
    """Advisory validation: every issue in rule order, never raises."""
    return parse_config(config).issues


def load_config(config: Mapping[str, Any] | None) -> IndexerSettings:
    """Fail-fast validation: raises on the first issue."""
    result = parse_config(config)
    if result.settings is None:
        raise ConfigurationError(result.issues[0].message)
    return result.settings


# ---------------------------------------------------------------------------
# Application settings
# ---------------------------------------------------------------------------


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class SourceSettings(BaseModel):
    """Where categories come from: the published-content service when
    ``hostname`` is set, otherwise ``content_dir``.
    """

    model_config = ConfigDict(extra="forbid")

    hostname: str | None = None
    content_dir: str = "content"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: BESTBETS__LOGGING__LEVEL=DEBUG
        env_prefix="BESTBETS__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="forbid",
    )

    logging: LoggingSettings = LoggingSettings()
    source: SourceSettings = SourceSettings()
    indexer: dict[str, Any] = {}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )
