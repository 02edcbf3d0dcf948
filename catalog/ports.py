"""
Adapter contracts consumed by the book service.

``PrimaryStore`` is the source of truth. ``SearchIndex`` is a derived,
eventually-consistent view of it keyed by the same identifiers.
"""

from typing import List, Optional, Protocol, Tuple

from catalog.models import Book, PageSpec


class PrimaryStore(Protocol):
    """Durable record storage for books."""

    async def insert(self, book: Book) -> Book:
        """Persist a new book and return it with its assigned identifier."""
        ...

    async def update(self, book: Book) -> Book:
        """
        Overwrite every mutable field of the record with ``book.id``.

        Raises:
            BookNotFoundError: if no record has that identifier
        """
        ...

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        ...

    async def find_page(self, page_spec: PageSpec) -> Tuple[List[Book], int]:
        """Return one page of books and the total record count."""
        ...

    async def delete_by_id(self, book_id: int) -> bool:
        """Remove a record; returns whether one existed."""
        ...


class SearchIndex(Protocol):
    """Full-text mirror of the primary store."""

    async def put(self, book_id: int, book: Book) -> None:
        ...

    async def delete_by_id(self, book_id: int) -> bool:
        ...

    async def query_page(self, query: str, page_spec: PageSpec) -> Tuple[List[Book], int]:
        """Run a query-string search and return one page of hits and the total hit count."""
        ...

    async def clear(self) -> None:
        """Remove every indexed document."""
        ...
