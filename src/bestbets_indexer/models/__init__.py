from __future__ import annotations

from bestbets_indexer.models.category import Category, Synonym
from bestbets_indexer.models.index import BulkResult, IndexGeneration, PruneResult
from bestbets_indexer.models.match import CategoryDisplay, Match

__all__ = [
    # category
    "Category",
    "Synonym",
    # match
    "Match",
    "CategoryDisplay",
    # index
    "IndexGeneration",
    "BulkResult",
    "PruneResult",
]
