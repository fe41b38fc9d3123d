"""Shared fixtures: sample categories and an in-memory search engine."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import structlog

from bestbets_indexer.errors import UpstreamServiceError
from bestbets_indexer.models.category import Category, Synonym
from bestbets_indexer.models.index import BulkResult, IndexGeneration, PruneResult
from bestbets_indexer.search_client import generation_name


class FakeSearchEngine:
    """Records every call and keeps indices, documents and aliases in dicts.

    Operations listed in ``fail_on`` raise ``UpstreamServiceError``; texts in
    ``failing_texts`` make ``analyze_text`` fail. Token counts are word counts.
    """

    def __init__(self) -> None:
        self.indices: dict[str, dict[str, dict[str, dict[str, Any]]]] = {}
        self.aliases: dict[str, str] = {}
        self.index_bodies: dict[str, dict[str, Any]] = {}
        self.analyze_calls: list[str] = []
        self.optimized: list[str] = []
        self.prune_calls: list[tuple[str, int, int]] = []
        self.deleted: list[str] = []
        self.fail_on: set[str] = set()
        self.failing_texts: set[str] = set()
        self.error_ids: set[str] = set()
        self._clock = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise UpstreamServiceError(f"{operation} failed", status_code=503)

    async def create_index(
        self, alias: str, mappings: Mapping[str, Any], settings: Mapping[str, Any]
    ) -> IndexGeneration:
        self._maybe_fail("create_index")
        self._clock += timedelta(seconds=1)
        name = generation_name(alias, self._clock)
        self.indices[name] = {}
        self.index_bodies[name] = {**settings, **mappings}
        return IndexGeneration(name=name, alias=alias, created_at=self._clock)

    async def bulk_write(
        self,
        index_name: str,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> BulkResult:
        await asyncio.sleep(0)
        self._maybe_fail("bulk_write")
        store = self.indices[index_name].setdefault(collection, {})
        result = BulkResult()
        for doc_id, document in documents:
            if doc_id in self.error_ids:
                result.errors.append({"id": doc_id, "status": 400, "error": "mapper_parsing"})
                continue
            (result.updated if doc_id in store else result.created).append(doc_id)
            store[doc_id] = dict(document)
        return result

    async def write_document(
        self, index_name: str, collection: str, doc_id: str, document: Mapping[str, Any]
    ) -> str:
        await asyncio.sleep(0)
        self._maybe_fail("write_document")
        store = self.indices[index_name].setdefault(collection, {})
        outcome = "updated" if doc_id in store else "created"
        store[doc_id] = dict(document)
        return outcome

    async def optimize(self, index_name: str) -> None:
        self._maybe_fail("optimize")
        self.optimized.append(index_name)

    async def set_alias_target(self, alias: str, index_name: str) -> None:
        self._maybe_fail("set_alias_target")
        self.aliases[alias] = index_name

    async def list_and_prune(
        self, alias: str, days_to_keep: int, min_indexes_to_keep: int
    ) -> PruneResult:
        self.prune_calls.append((alias, days_to_keep, min_indexes_to_keep))
        self._maybe_fail("list_and_prune")
        return PruneResult(kept=sorted(self.indices, reverse=True))

    async def delete_index(self, index_name: str) -> bool:
        self._maybe_fail("delete_index")
        self.deleted.append(index_name)
        return self.indices.pop(index_name, None) is not None

    async def analyze_text(self, text: str, analyzer_settings: Mapping[str, Any]) -> int:
        self.analyze_calls.append(text)
        await asyncio.sleep(0)
        if text in self.failing_texts:
            raise UpstreamServiceError(f"Could not analyze {text}", status_code=500)
        return len(text.split())

    def documents(self, index_name: str, collection: str) -> dict[str, dict[str, Any]]:
        return self.indices.get(index_name, {}).get(collection, {})


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture()
def engine() -> FakeSearchEngine:
    return FakeSearchEngine()


@pytest.fixture()
def sample_categories() -> dict[str, Category]:
    return {
        "1045389": Category(
            category_id="1045389",
            name="Cancer Research Ideas",
            weight=100,
            language="en",
            include_synonyms=[Synonym(name="Clinical Trial Ideas")],
            display_html="<p>Research ideas</p>",
        ),
        "35884": Category(
            category_id="35884",
            name="Tobacco Control",
            weight=110,
            language="en",
            exclude_synonyms=[Synonym(name="monograph"), Synonym(name="Branch")],
            display_html="<p>Tobacco</p>",
        ),
        "1109313": Category(
            category_id="1109313",
            name="Mantle Cell Lymphoma",
            weight=300,
            language="en",
        ),
        "431121": Category(
            category_id="431121",
            name="Fotos de cáncer",
            weight=30,
            is_exact_match=True,
            language="es",
            include_synonyms=[
                Synonym(name="fotos"),
                Synonym(name="imagenes"),
                Synonym(name="fotos de cancer", is_exact_match=True),
                Synonym(name="imágenes de cáncer", is_exact_match=True),
                Synonym(name="Imágenes", is_exact_match=False),
                Synonym(name="imágenes"),
            ],
            exclude_synonyms=[Synonym(name="piel")],
        ),
        "DUPES": Category(
            category_id="DUPES",
            name="DUPES",
            weight=110,
            language="en",
            include_synonyms=[Synonym(name="dupes"), Synonym(name="not dupe")],
            exclude_synonyms=[Synonym(name="dupes"), Synonym(name="dupes")],
        ),
    }
