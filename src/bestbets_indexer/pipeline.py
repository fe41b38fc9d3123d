"""Wires source, expander and index lifecycle into one publishing run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import structlog

from bestbets_indexer.config import load_config
from bestbets_indexer.expander import CategoryExpander
from bestbets_indexer.lifecycle import IndexLifecycleManager, LifecycleState
from bestbets_indexer.schema import analyzer_settings, load_schema_file
from bestbets_indexer.search_client import SearchEngineClient, build_http_client
from bestbets_indexer.sources import (
    ContentSource,
    DirectoryCategorySource,
    PublishedContentSource,
)
from bestbets_indexer.tokenizer import NameTokenizer

if TYPE_CHECKING:
    from bestbets_indexer.config import Settings, SourceSettings
    from bestbets_indexer.models.index import PruneResult

log = structlog.get_logger()


@dataclass
class PipelineReport:
    index_name: str
    categories: int
    documents: int
    pruned: PruneResult

    def to_dict(self) -> dict[str, object]:
        return {
            "index_name": self.index_name,
            "categories": self.categories,
            "documents": self.documents,
            "kept": self.pruned.kept,
            "deleted": self.pruned.deleted,
        }


@dataclass
class Pipeline:
    source: ContentSource
    expander: CategoryExpander
    manager: IndexLifecycleManager
    client: SearchEngineClient

    async def run(self) -> PipelineReport:
        return await run_pipeline(self.source, self.expander, self.manager)

    async def aclose(self) -> None:
        await self.client.aclose()


async def run_pipeline(
    source: ContentSource,
    expander: CategoryExpander,
    manager: IndexLifecycleManager,
) -> PipelineReport:
    """Fetch, expand and load every category, then publish the new generation.

    Any failure before the alias swap aborts the generation and re-raises.
    """
    categories = await source.get_records()
    generation = await manager.begin()

    try:
        for category in categories:
            matches = await expander.expand(category)
            await manager.load_record(matches)
        pruned = await manager.end()
    except Exception:
        if manager.state is not LifecycleState.FINALIZED:
            log.error("pipeline_aborting", index_name=generation.name)
            try:
                await manager.abort()
            except Exception:
                # The load failure stays the one raised.
                log.error("pipeline_abort_failed", index_name=generation.name, exc_info=True)
        raise

    return PipelineReport(
        index_name=generation.name,
        categories=manager.records_loaded,
        documents=manager.documents_written,
        pruned=pruned,
    )


def build_source(settings: SourceSettings, http: httpx.AsyncClient) -> ContentSource:
    if settings.hostname:
        return PublishedContentSource(http, settings.hostname)
    return DirectoryCategorySource(settings.content_dir)


def build_pipeline(
    settings: Settings,
    *,
    source: ContentSource | None = None,
    base_dir: str | Path | None = None,
    http: httpx.AsyncClient | None = None,
) -> Pipeline:
    """Fail-fast construction: the first config or schema problem raises."""
    config = load_config(settings.indexer)
    mappings = load_schema_file(config.mapping_path, "mappingPath", base_dir=base_dir)
    index_settings = load_schema_file(config.settings_path, "settingsPath", base_dir=base_dir)
    analysis = analyzer_settings(index_settings, config.analyzer)

    http = http or build_http_client(config.socket_limit)
    client = SearchEngineClient(http, config.eshosts)
    manager = IndexLifecycleManager(
        client,
        mappings,
        index_settings,
        alias_name=config.alias_name,  # type: ignore[arg-type]  # validated by the manager
        days_to_keep=config.days_to_keep,
        min_indexes_to_keep=config.min_indexes_to_keep,
    )
    return Pipeline(
        source=source or build_source(settings.source, http),
        expander=CategoryExpander(NameTokenizer(client, analysis)),
        manager=manager,
        client=client,
    )
