"""Lifecycle of one index generation: create, load, publish behind the alias, prune.

    NOT_STARTED --begin--> CREATED --load_record--> LOADING --end--> FINALIZED
    NOT_STARTED | CREATED | LOADING --abort--> ABORTED

Every generation starts empty, so a bulk write reporting an "updated"
document can only mean two matches were given the same id: that is treated
as a defect, never as an update.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from bestbets_indexer.config import (
    DEFAULT_DAYS_TO_KEEP,
    DEFAULT_MIN_INDEXES_TO_KEEP,
    is_positive_int,
)
from bestbets_indexer.errors import ConfigurationError, InvariantViolationError

if TYPE_CHECKING:
    from bestbets_indexer.models.index import BulkResult, IndexGeneration, PruneResult
    from bestbets_indexer.models.match import Match

log = structlog.get_logger()

SYNONYMS_COLLECTION = "synonyms"
DISPLAY_COLLECTION = "categorydisplay"


class IndexClient(Protocol):
    async def create_index(
        self, alias: str, mappings: Mapping[str, Any], settings: Mapping[str, Any]
    ) -> IndexGeneration: ...

    async def bulk_write(
        self,
        index_name: str,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> BulkResult: ...

    async def write_document(
        self, index_name: str, collection: str, doc_id: str, document: Mapping[str, Any]
    ) -> str: ...

    async def optimize(self, index_name: str) -> None: ...

    async def set_alias_target(self, alias: str, index_name: str) -> None: ...

    async def list_and_prune(
        self, alias: str, days_to_keep: int, min_indexes_to_keep: int
    ) -> PruneResult: ...

    async def delete_index(self, index_name: str) -> bool: ...


class LifecycleState(StrEnum):
    NOT_STARTED = "not_started"
    CREATED = "created"
    LOADING = "loading"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class IndexLifecycleManager:
    """Builds a fresh generation and publishes it behind ``alias_name``."""

    def __init__(
        self,
        client: IndexClient,
        mappings: Mapping[str, Any],
        settings: Mapping[str, Any],
        *,
        alias_name: str,
        days_to_keep: int = DEFAULT_DAYS_TO_KEEP,
        min_indexes_to_keep: int = DEFAULT_MIN_INDEXES_TO_KEEP,
    ) -> None:
        if not isinstance(alias_name, str) or not alias_name.strip():
            raise ConfigurationError("aliasName is required for the index loader")
        if not is_positive_int(days_to_keep):
            raise ConfigurationError("daysToKeep is required for the index loader")
        if not is_positive_int(min_indexes_to_keep):
            raise ConfigurationError("minIndexesToKeep is required for the index loader")

        self._client = client
        self._mappings = dict(mappings)
        self._settings = dict(settings)
        self.alias_name = alias_name
        self.days_to_keep = days_to_keep
        self.min_indexes_to_keep = min_indexes_to_keep

        self.state = LifecycleState.NOT_STARTED
        self.generation: IndexGeneration | None = None
        self.records_loaded = 0
        self.documents_written = 0

    @property
    def index_name(self) -> str | None:
        return self.generation.name if self.generation else None

    def _require_state(self, operation: str, *allowed: LifecycleState) -> None:
        if self.state not in allowed:
            raise InvariantViolationError(f"Cannot {operation} while index is {self.state}")

    def _require_generation(self) -> IndexGeneration:
        if self.generation is None:
            raise InvariantViolationError(f"No index was created for {self.alias_name}")
        return self.generation

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def begin(self) -> IndexGeneration:
        self._require_state("begin", LifecycleState.NOT_STARTED)
        try:
            self.generation = await self._client.create_index(
                self.alias_name, self._mappings, self._settings
            )
        except Exception:
            log.error("index_create_failed", alias=self.alias_name, exc_info=True)
            raise
        self.state = LifecycleState.CREATED
        log.debug("index_begin", alias=self.alias_name, index_name=self.generation.name)
        return self.generation

    async def load_record(self, matches: Sequence[Match]) -> None:
        """Index one category's matches plus its display document."""
        self._require_state("load records", LifecycleState.CREATED, LifecycleState.LOADING)
        index_name = self._require_generation().name

        if not matches:
            log.error("category_without_matches", index_name=index_name)
            raise InvariantViolationError("A category resulted in 0 matches")

        category_id = matches[0].category_id
        display = next((m.category_display for m in matches if m.category_display), None)
        if display is None:
            log.error("category_display_missing", category_id=category_id, index_name=index_name)
            raise InvariantViolationError(f"Category {category_id} is missing its display")

        self.state = LifecycleState.LOADING
        # Ids are positional so the same ordered input always yields the same documents.
        documents = [
            (f"{match.category_id}_{position}", match.to_document())
            for position, match in enumerate(matches)
        ]
        try:
            bulk, _ = await asyncio.gather(
                self._client.bulk_write(index_name, SYNONYMS_COLLECTION, documents),
                self._client.write_document(
                    index_name, DISPLAY_COLLECTION, display.category_id, display.to_document()
                ),
            )
        except Exception:
            log.error(
                "synonyms_index_failed",
                category_id=category_id,
                index_name=index_name,
                exc_info=True,
            )
            raise

        if bulk.updated:
            message = f"Category {category_id} appears to have duplicates"
            log.error("category_duplicates", category_id=category_id, ids=bulk.updated)
            raise InvariantViolationError(message)
        if bulk.errors:
            message = f"Category {category_id} had document errors"
            log.error("category_document_errors", category_id=category_id, errors=bulk.errors)
            raise InvariantViolationError(message)

        self.records_loaded += 1
        self.documents_written += len(documents) + 1

    async def end(self) -> PruneResult:
        """Optimize, swap the alias, then prune old generations.

        Once the alias swap succeeds the publish stands: a pruning failure is
        logged and re-raised but the manager stays ``FINALIZED``.
        """
        if self.state is LifecycleState.CREATED:
            raise InvariantViolationError(f"No categories were loaded into {self.index_name}")
        self._require_state("end", LifecycleState.LOADING)
        index_name = self._require_generation().name

        try:
            await self._client.optimize(index_name)
            await self._client.set_alias_target(self.alias_name, index_name)
        except Exception:
            log.error("index_finalize_failed", index_name=index_name, exc_info=True)
            raise

        self.state = LifecycleState.FINALIZED
        log.info(
            "index_published",
            alias=self.alias_name,
            index_name=index_name,
            records=self.records_loaded,
            documents=self.documents_written,
        )

        try:
            return await self._client.list_and_prune(
                self.alias_name, self.days_to_keep, self.min_indexes_to_keep
            )
        except Exception:
            log.error("index_cleanup_failed", alias=self.alias_name, exc_info=True)
            raise

    async def abort(self) -> None:
        """Delete the in-progress generation, if any.

        Idempotent. After ``FINALIZED`` the generation is live, so nothing is deleted.
        """
        if self.state is LifecycleState.ABORTED:
            return
        if self.state is LifecycleState.FINALIZED:
            log.warning("abort_after_publish_ignored", index_name=self.index_name)
            return

        if self.generation is not None:
            try:
                await self._client.delete_index(self.generation.name)
            except Exception:
                log.error("index_abort_failed", index_name=self.generation.name, exc_info=True)
                raise
            self.generation.alive = False
            log.info("index_aborted", index_name=self.generation.name)

        self.state = LifecycleState.ABORTED
