from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class CategoryDisplay(BaseModel):
    """Display payload attached to the category's own match record."""

    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    weight: int
    content: str

    def to_document(self) -> dict[str, Any]:
        return {
            "contentid": self.category_id,
            "name": self.name,
            "weight": self.weight,
            "content": self.content,
        }


class Match(BaseModel):
    """Atomic indexed unit: a category name or one of its synonyms."""

    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    synonym_text: str
    language: str
    is_negated: bool
    is_exact: bool
    token_count: int
    weight: int = 0
    category_display: CategoryDisplay | None = None

    @property
    def is_category(self) -> bool:
        return self.category_display is not None

    def to_document(self) -> dict[str, Any]:
        """Body of the ``synonyms`` document. The display payload is never included."""
        return {
            "category": self.category_name,
            "contentid": self.category_id,
            "synonym": self.synonym_text,
            "language": self.language,
            "is_negated": self.is_negated,
            "is_exact": self.is_exact,
            "tokencount": self.token_count,
        }
