"""Index schema files: mapping and settings JSON documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from bestbets_indexer.errors import ConfigurationError, ResourceLoadError


def load_schema_file(
    path: str | Path, field: str, *, base_dir: str | Path | None = None
) -> dict[str, Any]:
    """Read a JSON schema file named by config ``field``.

    Relative paths resolve against ``base_dir`` (the working directory when omitted).
    """
    full_path = Path(path)
    if base_dir is not None and not full_path.is_absolute():
        full_path = Path(base_dir) / full_path
    try:
        data = json.loads(full_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ResourceLoadError(f"{field} cannot be loaded: {full_path}") from exc
    if not isinstance(data, dict):
        raise ResourceLoadError(f"{field} cannot be loaded: {full_path}")
    return data


def _inline(value: Any, declared: dict[str, Any]) -> Any:
    if isinstance(value, str):
        return declared.get(value, value)
    return value


def analyzer_settings(settings: dict[str, Any], analyzer: str) -> dict[str, Any]:
    """Inline ``_analyze`` body for a named analyzer declared in the settings file.

    Only ``tokenizer`` and ``filter`` are carried over, and only when present.
    Custom tokenizers and filters declared next to the analyzer are inlined,
    since the analysis call runs without an index to resolve them against.
    """
    try:
        analysis = settings["settings"]["analysis"]
        definition = analysis["analyzer"][analyzer]
    except (KeyError, TypeError):
        raise ConfigurationError("Could not find analyzer in settings") from None
    if not isinstance(definition, dict):
        raise ConfigurationError("Could not find analyzer in settings")

    body: dict[str, Any] = {}
    tokenizer = definition.get("tokenizer")
    if tokenizer:
        body["tokenizer"] = _inline(tokenizer, analysis.get("tokenizer") or {})
    filters = definition.get("filter")
    if filters:
        if isinstance(filters, str):
            filters = [filters]
        declared = analysis.get("filter") or {}
        body["filter"] = [_inline(name, declared) for name in filters]
    return body
