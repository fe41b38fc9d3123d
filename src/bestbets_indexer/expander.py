"""Expands a category into the ordered match records that get indexed."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from bestbets_indexer.models.match import CategoryDisplay, Match

if TYPE_CHECKING:
    from bestbets_indexer.models.category import Category, Synonym
    from bestbets_indexer.tokenizer import NameTokenizer

log = structlog.get_logger()


class CategoryExpander:
    """Turns one ``Category`` into ``[category, *includes, *excludes]`` matches."""

    def __init__(self, tokenizer: NameTokenizer) -> None:
        self._tokenizer = tokenizer

    @property
    def tokenizer(self) -> NameTokenizer:
        return self._tokenizer

    @staticmethod
    def names_to_tokenize(category: Category) -> list[str]:
        """Distinct names (case-insensitive), first-seen casing and position kept."""
        names = [
            category.name,
            *(syn.name for syn in category.include_synonyms),
            *(syn.name for syn in category.exclude_synonyms),
        ]
        seen: set[str] = set()
        distinct = []
        for name in names:
            key = name.lower()
            if key not in seen:
                seen.add(key)
                distinct.append(name)
        return distinct

    async def tokenize_names(self, names: Sequence[str]) -> dict[str, int]:
        counts = await asyncio.gather(
            *(self._tokenizer.resolve_token_count(name) for name in names)
        )
        return dict(zip(names, counts, strict=True))

    async def expand(self, category: Category) -> list[Match]:
        try:
            resolved = await self.tokenize_names(self.names_to_tokenize(category))
        except Exception:
            log.error("category_expand_failed", category_id=category.category_id)
            raise
        lookup = {name.lower(): count for name, count in resolved.items()}

        category_match = Match(
            category_id=category.category_id,
            category_name=category.name,
            synonym_text=category.name,
            language=category.language,
            is_negated=False,
            is_exact=category.is_exact_match,
            token_count=lookup[category.name.lower()],
            weight=category.weight,
            category_display=CategoryDisplay(
                category_id=category.category_id,
                name=category.name,
                weight=category.weight,
                content=category.display_html,
            ),
        )
        includes = [
            self._synonym_match(category, syn, False, lookup) for syn in category.include_synonyms
        ]
        excludes = [
            self._synonym_match(category, syn, True, lookup) for syn in category.exclude_synonyms
        ]
        return [category_match, *includes, *excludes]

    @staticmethod
    def _synonym_match(
        category: Category, synonym: Synonym, is_negated: bool, lookup: dict[str, int]
    ) -> Match:
        return Match(
            category_id=category.category_id,
            category_name=category.name,
            synonym_text=synonym.name,
            language=category.language,
            is_negated=is_negated,
            is_exact=synonym.is_exact_match,
            token_count=lookup[synonym.name.lower()],
            weight=category.weight,
        )
