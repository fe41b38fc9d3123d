"""Unit-specific fixtures (no I/O; the search engine is an in-memory fake)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from bestbets_indexer.expander import CategoryExpander
from bestbets_indexer.lifecycle import IndexLifecycleManager
from bestbets_indexer.tokenizer import NameTokenizer

if TYPE_CHECKING:
    from conftest import FakeSearchEngine

ANALYZER = {"tokenizer": "standard", "filter": ["lowercase"]}


@pytest.fixture()
def tokenizer(engine: FakeSearchEngine) -> NameTokenizer:
    return NameTokenizer(engine, ANALYZER)


@pytest.fixture()
def expander(tokenizer: NameTokenizer) -> CategoryExpander:
    return CategoryExpander(tokenizer)


@pytest.fixture()
def manager(engine: FakeSearchEngine) -> IndexLifecycleManager:
    return IndexLifecycleManager(
        engine,
        {"mappings": {"synonyms": {}}},
        {"settings": {"index": {}}},
        alias_name="bestbets_v1",
    )
