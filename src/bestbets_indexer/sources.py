"""Content sources that produce ``Category`` records.

Categories are authored as ``BestBetsCategory`` XML documents. String values
are trimmed and HTML-entity decoded; booleans are true only for the literal
``true``.

Two sources are provided: the published-content listing service over HTTP,
and a local directory of XML files.
"""

from __future__ import annotations

import asyncio
import copy
import html
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog
from lxml import etree  # type: ignore[import-untyped]
from pydantic import ValidationError

from bestbets_indexer.errors import ConfigurationError, ResourceLoadError
from bestbets_indexer.models.category import Category, Synonym

log = structlog.get_logger()

_ROOT_TAG = "BestBetsCategory"

_LANGUAGES = {
    "en": "en",
    "eng": "en",
    "en-us": "en",
    "es": "es",
    "esp": "es",
    "es-us": "es",
}


class ContentSource(Protocol):
    async def get_records(self) -> list[Category]: ...


# ---------------------------------------------------------------------------
# XML parsing
# ---------------------------------------------------------------------------


def _clean(text: str | None) -> str:
    if not text:
        return ""
    return html.unescape(text.strip())


def _text(element: Any, name: str) -> str:
    child = element.find(f"{{*}}{name}")
    return _clean(child.text) if child is not None else ""


def _bool(value: str) -> bool:
    return value == "true"


def normalize_language(value: str) -> str:
    """ISO 639-1 code for the language spellings found in content, or ``""``."""
    return _LANGUAGES.get(value.strip().lower(), "")


def _synonyms(element: Any, name: str) -> list[Synonym]:
    container = element.find(f"{{*}}{name}")
    if container is None:
        return []
    return [
        Synonym(
            name=_clean(syn.text),
            is_exact_match=_bool(_clean(syn.get("IsExactMatch"))),
        )
        for syn in container.findall("{*}synonym")
    ]


def _fragment(element: Any) -> str:
    # Drop namespace declarations inherited from the category root.
    fragment = copy.deepcopy(element)
    etree.cleanup_namespaces(fragment)
    markup = etree.tostring(fragment, encoding="unicode", with_tail=False)
    return markup + (element.tail or "")


def _display(element: Any) -> str:
    display = element.find("{*}CategoryDisplay")
    if display is None:
        return ""
    # HTML may arrive as CDATA text or as nested markup.
    markup = (display.text or "") + "".join(_fragment(child) for child in display)
    return markup.strip()


def parse_category_xml(content: str | bytes, origin: str = "<string>") -> Category:
    # lxml refuses str input that carries an encoding declaration.
    data = content.encode("utf-8") if isinstance(content, str) else content
    try:
        root = etree.fromstring(data)
    except etree.XMLSyntaxError as exc:
        raise ResourceLoadError(f"Cannot process XML, {origin}") from exc

    if etree.QName(root).localname != _ROOT_TAG:
        raise ResourceLoadError(f"Invalid BestBets Category, {origin}")

    language = normalize_language(_text(root, "Language"))
    if not language:
        raise ResourceLoadError(
            f"Invalid BestBets Category, {origin}, language is empty or unknown"
        )

    raw_weight = _text(root, "CategoryWeight")
    try:
        weight = int(raw_weight) if raw_weight else 0
    except ValueError:
        raise ResourceLoadError(
            f"Invalid BestBets Category, {origin}, weight {raw_weight!r} is not a number"
        ) from None

    try:
        return Category(
            category_id=_text(root, "CategoryId"),
            name=_text(root, "CategoryName"),
            weight=weight,
            is_exact_match=_bool(_text(root, "IsExactMatch")),
            language=language,
            display=_bool(_text(root, "Display")),
            include_synonyms=_synonyms(root, "IncludeSynonyms"),
            exclude_synonyms=_synonyms(root, "ExcludeSynonyms"),
            display_html=_display(root),
        )
    except ValidationError as exc:
        raise ResourceLoadError(f"Invalid BestBets Category, {origin}: {exc}") from exc


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class PublishedContentSource:
    """Lists the ``BestBets`` folder of the published-content service and
    downloads every category file it names, concurrently.
    """

    def __init__(self, http: httpx.AsyncClient, hostname: str, *, root: str = "BestBets") -> None:
        if not hostname or not hostname.strip():
            raise ConfigurationError("You must supply a source hostname")
        hostname = hostname.strip().rstrip("/")
        self._base_url = hostname if "://" in hostname else f"https://{hostname}"
        self._http = http
        self.root = root

    @property
    def base_url(self) -> str:
        return self._base_url

    async def get_category_list(self) -> list[Mapping[str, Any]]:
        try:
            response = await self._http.get(
                f"{self._base_url}/PublishedContent/List",
                params={"root": self.root, "path": "/", "fmt": "json"},
            )
            response.raise_for_status()
            listing = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.error("category_list_fetch_failed", base_url=self._base_url, error=str(exc))
            raise ResourceLoadError(
                "Could not fetch Best Bets Categories List from server."
            ) from exc

        files = listing.get("Files") if isinstance(listing, dict) else None
        return list(files or [])

    async def get_category(self, listing: Mapping[str, Any]) -> Category:
        path = str(listing.get("FullWebPath", ""))
        try:
            response = await self._http.get(f"{self._base_url}{path}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("category_fetch_failed", path=path, error=str(exc))
            raise ResourceLoadError(f"Could not fetch {path}") from exc
        return parse_category_xml(response.content, path)

    async def get_records(self) -> list[Category]:
        log.debug("content_fetch_begin", base_url=self._base_url, root=self.root)
        files = await self.get_category_list()
        categories = await asyncio.gather(*(self.get_category(item) for item in files))
        log.debug("content_fetch_complete", categories=len(categories))
        return list(categories)


class DirectoryCategorySource:
    """Reads every ``*.xml`` category file in a directory, in filename order."""

    def __init__(self, content_dir: str | Path) -> None:
        self.content_dir = Path(content_dir)

    async def get_records(self) -> list[Category]:
        if not self.content_dir.is_dir():
            raise ResourceLoadError(f"Content directory not found: {self.content_dir}")

        paths = sorted(self.content_dir.glob("*.xml"))
        log.debug("content_fetch_begin", content_dir=str(self.content_dir), files=len(paths))
        try:
            contents = await asyncio.gather(*(asyncio.to_thread(path.read_bytes) for path in paths))
        except OSError as exc:
            log.error("content_fetch_failed", content_dir=str(self.content_dir), error=str(exc))
            raise ResourceLoadError(f"Could not read categories from {self.content_dir}") from exc
        categories = [
            parse_category_xml(content, str(path))
            for path, content in zip(paths, contents, strict=True)
        ]
        log.debug("content_fetch_complete", categories=len(categories))
        return categories
