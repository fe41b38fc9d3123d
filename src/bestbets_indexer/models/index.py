from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class IndexGeneration(BaseModel):
    """One physical, timestamp-named instance of the index behind an alias."""

    name: str  # "<alias>_<YYYYMMDD_HHMMSS>"
    alias: str
    created_at: datetime
    alive: bool = True


class BulkResult(BaseModel):
    """Outcome of one bulk write, as reported per document by the engine."""

    created: list[str] = []
    updated: list[str] = []
    errors: list[dict] = []


class PruneResult(BaseModel):
    """Generations kept and deleted by a retention pass."""

    kept: list[str] = []
    deleted: list[str] = []
