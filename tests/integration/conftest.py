"""Integration fixtures: the real expander and lifecycle over the in-memory engine."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from bestbets_indexer.expander import CategoryExpander
from bestbets_indexer.lifecycle import IndexLifecycleManager
from bestbets_indexer.schema import analyzer_settings, load_schema_file
from bestbets_indexer.tokenizer import NameTokenizer

if TYPE_CHECKING:
    from bestbets_indexer.models.category import Category
    from conftest import FakeSearchEngine

REPO_ROOT = Path(__file__).resolve().parents[2]


class StaticSource:
    def __init__(self, categories: list[Category]) -> None:
        self.categories = categories

    async def get_records(self) -> list[Category]:
        return list(self.categories)


@pytest.fixture()
def schema() -> tuple[dict, dict]:
    mappings = load_schema_file("es-mappings/mappings.json", "mappingPath", base_dir=REPO_ROOT)
    settings = load_schema_file("es-mappings/settings.json", "settingsPath", base_dir=REPO_ROOT)
    return mappings, settings


@pytest.fixture()
def expander(engine: FakeSearchEngine, schema: tuple[dict, dict]) -> CategoryExpander:
    return CategoryExpander(NameTokenizer(engine, analyzer_settings(schema[1], "nostem")))


@pytest.fixture()
def manager(engine: FakeSearchEngine, schema: tuple[dict, dict]) -> IndexLifecycleManager:
    mappings, settings = schema
    return IndexLifecycleManager(engine, mappings, settings, alias_name="bestbets_v1")


@pytest.fixture()
def source(sample_categories: dict[str, Category]) -> StaticSource:
    return StaticSource(list(sample_categories.values()))
