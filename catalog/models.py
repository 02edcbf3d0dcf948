"""
Pydantic models for the book catalog.
Defines the Book entity, its public DTO and the pagination types shared by both stores.
"""

import math
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortBy(str, Enum):
    """Sortable book fields."""
    ID = "id"
    NAME = "name"
    PUBLISH_DATE = "publish_date"
    AUTHOR = "author"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "asc"
    DESC = "desc"


class Book(BaseModel):
    """
    Internal book entity as held by the primary store and mirrored into the index.

    All fields are optional: documents read back from the search index are
    whatever was last pushed there and are not re-validated.
    """
    id: Optional[int] = Field(None, description="Identifier assigned by the primary store")
    name: Optional[str] = Field(None, description="Book title")
    publish_date: Optional[date] = Field(None, description="Publication date")
    author: Optional[str] = Field(None, description="Author name")


class BookDTO(BaseModel):
    """Public representation of a book exchanged with API clients."""
    id: Optional[int] = Field(None, description="Unique book identifier")
    name: str = Field(..., min_length=1, description="Book title")
    publish_date: Optional[date] = Field(None, alias="publishDate", description="Publication date")
    author: Optional[str] = Field(None, description="Author name")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "name": "Dune",
                "publishDate": "1965-08-01",
                "author": "Herbert",
            }
        },
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Reject names made only of whitespace."""
        if not v.strip():
            raise ValueError('name must not be blank')
        return v


MAX_PER_PAGE = 1000


class PageSpec(BaseModel):
    """Request for a bounded, ordered slice of a result set. Pages start at 1."""
    page: int = Field(1, ge=1, description="Page number")
    per_page: int = Field(20, ge=1, le=MAX_PER_PAGE, description="Items per page")
    sort_by: Optional[SortBy] = Field(None, description="Sort field; store default when unset")
    sort_order: SortOrder = Field(SortOrder.ASC, description="Sort order")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @classmethod
    def from_sort_param(
        cls,
        page: int = 1,
        per_page: int = 20,
        sort: Optional[str] = None
    ) -> "PageSpec":
        """
        Build a page spec from a ``field,direction`` sort parameter (e.g. ``id,desc``).

        Raises:
            ValueError: if the field or direction is not recognised
        """
        sort_by = None
        sort_order = SortOrder.ASC
        if sort:
            field, _, direction = sort.partition(",")
            try:
                sort_by = SortBy(field.strip().lower())
                if direction:
                    sort_order = SortOrder(direction.strip().lower())
            except ValueError:
                raise ValueError(f"Invalid sort parameter: {sort!r}")
        return cls(page=page, per_page=per_page, sort_by=sort_by, sort_order=sort_order)


class BookPage(BaseModel):
    """A page of books plus the metadata needed to paginate."""
    books: List[BookDTO] = Field(..., description="List of books")
    total: int = Field(..., description="Total number of matching books")
    page: int = Field(..., description="Current page number")
    per_page: int = Field(..., description="Number of books per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")

    @classmethod
    def build(cls, books: List[BookDTO], total: int, page_spec: PageSpec) -> "BookPage":
        total_pages = math.ceil(total / page_spec.per_page)
        return cls(
            books=books,
            total=total,
            page=page_spec.page,
            per_page=page_spec.per_page,
            total_pages=total_pages,
            has_next=page_spec.page < total_pages,
            has_prev=page_spec.page > 1,
        )
