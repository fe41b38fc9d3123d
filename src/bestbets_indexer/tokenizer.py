"""Token counts for names, cached per lowercased name with single-flight fetches.

At most one analysis request is outstanding per normalised name. The first
caller starts a task; concurrent callers for the same key await that same
task. A failed fetch propagates to every waiter and leaves the cache empty
so the next call retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

import structlog

log = structlog.get_logger()


class TextAnalyzer(Protocol):
    async def analyze_text(self, text: str, analyzer_settings: Mapping[str, Any]) -> int: ...


class NameTokenizer:
    def __init__(self, analyzer: TextAnalyzer, analyzer_settings: Mapping[str, Any]) -> None:
        self._analyzer = analyzer
        self._analyzer_settings = dict(analyzer_settings)
        self._cache: dict[str, int] = {}
        self._in_flight: dict[str, asyncio.Task[int]] = {}

    @property
    def analyzer_settings(self) -> dict[str, Any]:
        return dict(self._analyzer_settings)

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    async def resolve_token_count(self, name: str) -> int:
        key = name.lower()
        if key in self._cache:
            return self._cache[key]

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, name))
            self._in_flight[key] = task
        # shield: a cancelled waiter must not cancel the fetch other waiters share
        return await asyncio.shield(task)

    async def _fetch(self, key: str, name: str) -> int:
        try:
            count = await self._analyzer.analyze_text(name, self._analyzer_settings)
        except Exception as exc:
            log.error("tokenize_failed", name=name, error=str(exc))
            raise
        finally:
            self._in_flight.pop(key, None)
        self._cache[key] = count
        return count
