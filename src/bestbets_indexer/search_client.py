"""Async Elasticsearch REST client covering the primitives the indexer needs.

Every request goes through ``_request``: hosts are tried in the configured
order. Only a failure to connect moves on to the next host. Any other
transport error, and any HTTP status >= 400, is raised as
``UpstreamServiceError``. No request timeout is set here; callers that need
one wrap the awaited call themselves.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from bestbets_indexer.config import DEFAULT_SOCKET_LIMIT
from bestbets_indexer.errors import ConfigurationError, UpstreamServiceError
from bestbets_indexer.models.index import BulkResult, IndexGeneration, PruneResult

log = structlog.get_logger()

GENERATION_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_NDJSON = {"Content-Type": "application/x-ndjson"}


def build_http_limits(socket_limit: int = DEFAULT_SOCKET_LIMIT) -> httpx.Limits:
    """Connection pool capped at ``socket_limit`` sockets, all kept alive."""
    return httpx.Limits(max_connections=socket_limit, max_keepalive_connections=socket_limit)


def build_http_client(socket_limit: int = DEFAULT_SOCKET_LIMIT) -> httpx.AsyncClient:
    return httpx.AsyncClient(limits=build_http_limits(socket_limit), timeout=None)


def generation_name(alias: str, created_at: datetime) -> str:
    return f"{alias}_{created_at.strftime(GENERATION_TIMESTAMP_FORMAT)}"


def _generation_pattern(alias: str) -> re.Pattern[str]:
    # Only "<alias>_YYYYMMDD_HHMMSS"; keeps "<alias>_v2_..." generations of other aliases out.
    return re.compile(rf"^{re.escape(alias)}_\d{{8}}_\d{{6}}$")


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("reason") or error.get("type") or error)
    if error:
        return str(error)
    return response.reason_phrase or f"HTTP {response.status_code}"


class SearchEngineClient:
    """Thin async wrapper over the index, alias, bulk and analyze endpoints."""

    def __init__(self, http: httpx.AsyncClient, hosts: Sequence[str]) -> None:
        if not hosts:
            raise ConfigurationError("eshosts is required")
        self._http = http
        self._hosts = [host.rstrip("/") for host in hosts]

    @classmethod
    def from_hosts(
        cls, hosts: Sequence[str], socket_limit: int = DEFAULT_SOCKET_LIMIT
    ) -> SearchEngineClient:
        return cls(build_http_client(socket_limit), hosts)

    @property
    def hosts(self) -> list[str]:
        return list(self._hosts)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        content: str | None = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        allow_404: bool = False,
    ) -> httpx.Response:
        last_exc: httpx.TransportError | None = None
        for host in self._hosts:
            try:
                response = await self._http.request(
                    method,
                    f"{host}{path}",
                    json=json_body,
                    content=content,
                    headers=headers,
                    params=params,
                )
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                log.warning("search_host_unreachable", host=host, path=path, error=str(exc))
                last_exc = exc
                continue
            except httpx.TransportError as exc:
                # A request that may have reached the host is never replayed on another.
                log.error("search_request_failed", host=host, path=path, error=str(exc))
                raise UpstreamServiceError(
                    f"{method} {path} failed: {exc}", recoverable=True
                ) from exc

            if response.status_code == 404 and allow_404:
                return response
            if response.status_code >= 400:
                raise UpstreamServiceError(
                    f"{method} {path} failed: {_error_reason(response)}",
                    recoverable=response.status_code >= 500,
                    status_code=response.status_code,
                )
            return response

        raise UpstreamServiceError(
            f"{method} {path} failed: no search host reachable ({last_exc})",
            recoverable=True,
        ) from last_exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamServiceError(
                f"Unparseable response from {response.request.url}", recoverable=True
            ) from exc

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------

    async def create_index(
        self,
        alias: str,
        mappings: Mapping[str, Any],
        settings: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> IndexGeneration:
        """Create ``<alias>_<timestamp>`` with the merged settings and mappings bodies."""
        created_at = now or datetime.now(UTC)
        name = generation_name(alias, created_at)
        await self._request("PUT", f"/{name}", json_body={**settings, **mappings})
        log.info("index_created", index_name=name, alias=alias)
        return IndexGeneration(name=name, alias=alias, created_at=created_at)

    async def optimize(self, index_name: str) -> None:
        await self._request(
            "POST", f"/{index_name}/_forcemerge", params={"max_num_segments": 1}
        )

    async def delete_index(self, index_name: str) -> bool:
        """Delete an index. Returns False when it did not exist."""
        response = await self._request("DELETE", f"/{index_name}", allow_404=True)
        return response.status_code != 404

    async def list_generations(self, alias: str) -> list[IndexGeneration]:
        """All generations under ``alias``, newest first."""
        response = await self._request(
            "GET", f"/{alias}_*/_settings/index.creation_date", allow_404=True
        )
        if response.status_code == 404:
            return []

        pattern = _generation_pattern(alias)
        generations = []
        for name, body in self._json(response).items():
            if not pattern.match(name):
                continue
            millis = int(body["settings"]["index"]["creation_date"])
            generations.append(
                IndexGeneration(
                    name=name,
                    alias=alias,
                    created_at=datetime.fromtimestamp(millis / 1000, tz=UTC),
                )
            )
        generations.sort(key=lambda g: (g.created_at, g.name), reverse=True)
        return generations

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def bulk_write(
        self,
        index_name: str,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> BulkResult:
        """Index ``(id, document)`` pairs in one ``_bulk`` request.

        Per-document outcomes are sorted into created, updated and errors; the
        call itself only fails when the request as a whole fails.
        """
        if not documents:
            return BulkResult()

        lines = []
        for doc_id, document in documents:
            action = {"index": {"_index": index_name, "_type": collection, "_id": doc_id}}
            lines.append(json.dumps(action))
            lines.append(json.dumps(document))
        response = await self._request(
            "POST", "/_bulk", content="\n".join(lines) + "\n", headers=_NDJSON
        )

        result = BulkResult()
        for item in self._json(response).get("items", []):
            outcome = next(iter(item.values()))
            if outcome.get("error"):
                result.errors.append(
                    {
                        "id": outcome.get("_id"),
                        "status": outcome.get("status"),
                        "error": outcome["error"],
                    }
                )
            elif outcome.get("result") == "updated":
                result.updated.append(outcome.get("_id"))
            else:
                result.created.append(outcome.get("_id"))
        return result

    async def write_document(
        self,
        index_name: str,
        collection: str,
        doc_id: str,
        document: Mapping[str, Any],
    ) -> str:
        response = await self._request(
            "PUT",
            f"/{index_name}/{collection}/{quote(doc_id, safe='')}",
            json_body=dict(document),
        )
        return str(self._json(response).get("result", ""))

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    async def get_alias_targets(self, alias: str) -> list[str]:
        response = await self._request("GET", f"/_alias/{alias}", allow_404=True)
        if response.status_code == 404:
            return []
        return sorted(self._json(response))

    async def set_alias_target(self, alias: str, index_name: str) -> None:
        """Point ``alias`` at ``index_name`` only, in a single atomic ``_aliases`` call."""
        current = await self.get_alias_targets(alias)
        actions: list[dict[str, Any]] = [
            {"remove": {"index": name, "alias": alias}} for name in current if name != index_name
        ]
        actions.append({"add": {"index": index_name, "alias": alias}})
        await self._request("POST", "/_aliases", json_body={"actions": actions})
        log.info("alias_swapped", alias=alias, index_name=index_name, previous=current)

    async def list_and_prune(
        self,
        alias: str,
        days_to_keep: int,
        min_indexes_to_keep: int,
        *,
        now: datetime | None = None,
    ) -> PruneResult:
        """Delete old generations under ``alias``.

        The newest ``min_indexes_to_keep`` generations and whatever the alias
        currently points at are always kept; of the rest, only generations
        created more than ``days_to_keep`` days ago are deleted.
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(days=days_to_keep)
        generations = await self.list_generations(alias)
        live = set(await self.get_alias_targets(alias))

        result = PruneResult()
        for position, generation in enumerate(generations):
            if (
                position < min_indexes_to_keep
                or generation.name in live
                or generation.created_at >= cutoff
            ):
                result.kept.append(generation.name)
                continue
            await self.delete_index(generation.name)
            result.deleted.append(generation.name)

        log.info("indices_pruned", alias=alias, kept=result.kept, deleted=result.deleted)
        return result

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze_text(self, text: str, analyzer_settings: Mapping[str, Any]) -> int:
        """Number of tokens the analyzer produces for ``text``."""
        response = await self._request(
            "POST", "/_analyze", json_body={**analyzer_settings, "text": text}
        )
        return len(self._json(response).get("tokens", []))
