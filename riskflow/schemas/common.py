"""
Response envelopes shared by every list endpoint.
"""
from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from riskflow.services.lookups import PageResult

T = TypeVar("T", bound=BaseModel)


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def of(cls, result: PageResult, schema: type[T]) -> "Page[T]":
        return cls(
            items=[schema.model_validate(row) for row in result.items],
            page=result.page,
            limit=result.limit,
            total_items=result.total,
            total_pages=result.total_pages,
            has_next_page=result.page < result.total_pages,
            has_prev_page=result.page > 1,
        )


class ReviewNotes(BaseModel):
    """Body of approve / reject / validate calls."""
    notes: Optional[str] = Field(None, max_length=500)
