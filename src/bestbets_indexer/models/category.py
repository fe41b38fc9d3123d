from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class Synonym(BaseModel):
    """One include or exclude synonym of a category."""

    model_config = ConfigDict(frozen=True)

    name: str
    is_exact_match: bool = False


class Category(BaseModel):
    """A best bets category as produced by a content source."""

    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    weight: int = 0
    is_exact_match: bool = False
    language: str
    display: bool = True
    include_synonyms: list[Synonym] = []
    exclude_synonyms: list[Synonym] = []
    display_html: str = ""  # Raw HTML shown as the best bet

    @field_validator("category_id")
    @classmethod
    def validate_category_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("category_id must not be empty")
        return v
