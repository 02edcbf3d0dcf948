"""
Exception hierarchy for the book catalog.

Primary store and search query failures propagate to the caller. Index write
failures are raised by the index adapter but stop at the service boundary.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog errors."""


class PrimaryStoreError(CatalogError):
    """The primary store could not complete a read or write."""


class BookNotFoundError(CatalogError):
    """An update referenced an identifier the primary store does not hold."""

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with ID '{book_id}' not found")


class IndexWriteError(CatalogError):
    """Mirroring a change into the search index failed."""

    def __init__(self, message: str, book_id: Optional[int] = None):
        self.book_id = book_id
        super().__init__(message)


class IndexQueryError(CatalogError):
    """The search index could not execute a query."""


class MalformedQueryError(IndexQueryError):
    """The search index rejected the query text as invalid."""
