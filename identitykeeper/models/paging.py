"""
Paged Listing Models.

``PagedResults`` is what the listing operations return: one page of
records plus the ``Page`` metadata a controller needs to render
navigation.  Page indexes are 1-based.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Page(BaseModel):
    """Position of a page within a listing."""

    page_index: int = Field(ge=1)
    items_per_page: int = Field(ge=1)
    total_items: int = Field(ge=0)

    @property
    def total_pages(self) -> int:
        if self.total_items == 0:
            return 0
        return (self.total_items + self.items_per_page - 1) // self.items_per_page

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0

    @property
    def offset(self) -> int:
        return (self.page_index - 1) * self.items_per_page


class PagedResults(BaseModel, Generic[T]):
    """One page of results."""

    page: Page
    results: list[T] = Field(default_factory=list)
