"""
Pytest configuration and shared fixtures.
"""

from datetime import date
from typing import Dict, List, Optional, Tuple

import pytest

from catalog.exceptions import BookNotFoundError, IndexWriteError, PrimaryStoreError
from catalog.models import Book, BookDTO, PageSpec, SortBy, SortOrder
from catalog.monitoring import IndexSyncMonitor
from catalog.service import BookService


class InMemoryBookStore:
    """Primary store double keeping books in a dict."""

    def __init__(self):
        self.records: Dict[int, Book] = {}
        self.next_id = 1
        self.fail_writes = False
        self.connect_error: Optional[Exception] = None
        self.connected = False
        self.disconnect_calls = 0

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False
        self.disconnect_calls += 1

    async def ping(self) -> bool:
        return self.connected

    def _check_writable(self):
        if self.fail_writes:
            raise PrimaryStoreError("primary store unavailable")

    async def insert(self, book: Book) -> Book:
        self._check_writable()
        stored = book.model_copy(update={"id": self.next_id})
        self.next_id += 1
        self.records[stored.id] = stored
        return stored

    async def update(self, book: Book) -> Book:
        self._check_writable()
        if book.id not in self.records:
            raise BookNotFoundError(book.id)
        self.records[book.id] = book.model_copy()
        return self.records[book.id]

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        return self.records.get(book_id)

    async def find_page(self, page_spec: PageSpec) -> Tuple[List[Book], int]:
        books = sorted(self.records.values(), key=lambda book: book.id)
        if page_spec.sort_by and page_spec.sort_by != SortBy.ID:
            field = page_spec.sort_by.value
            books.sort(key=lambda book: (getattr(book, field) is None, getattr(book, field) or ""))
        if page_spec.sort_order == SortOrder.DESC:
            books.reverse()
        start = page_spec.offset
        return books[start:start + page_spec.per_page], len(books)

    async def delete_by_id(self, book_id: int) -> bool:
        self._check_writable()
        return self.records.pop(book_id, None) is not None


class InMemoryBookIndex:
    """Search index double matching whole words, with ``field:value`` support."""

    def __init__(self):
        self.documents: Dict[int, Book] = {}
        self.fail_writes = False
        self.query_error: Optional[Exception] = None
        self.connect_error: Optional[Exception] = None
        self.connected = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        return self.connected

    def _check_writable(self, book_id: int):
        if self.fail_writes:
            raise IndexWriteError("search index unavailable", book_id=book_id)

    async def put(self, book_id: int, book: Book) -> None:
        self._check_writable(book_id)
        self.documents[book_id] = book.model_copy()

    async def delete_by_id(self, book_id: int) -> bool:
        self._check_writable(book_id)
        return self.documents.pop(book_id, None) is not None

    async def query_page(self, query: str, page_spec: PageSpec) -> Tuple[List[Book], int]:
        if self.query_error is not None:
            raise self.query_error
        hits = [
            book for _, book in sorted(self.documents.items())
            if any(self._matches(book, term) for term in query.split())
        ]
        start = page_spec.offset
        return hits[start:start + page_spec.per_page], len(hits)

    async def clear(self) -> None:
        self.documents.clear()

    @staticmethod
    def _matches(book: Book, term: str) -> bool:
        field, _, value = term.partition(":")
        if value:
            candidates = [getattr(book, field, None)]
        else:
            value = term
            candidates = [book.id, book.name, book.author, book.publish_date]
        for candidate in candidates:
            if candidate is None:
                continue
            if value.lower() in str(candidate).lower().split():
                return True
        return False


@pytest.fixture
def store():
    return InMemoryBookStore()


@pytest.fixture
def index():
    return InMemoryBookIndex()


@pytest.fixture
def monitor():
    return IndexSyncMonitor(max_alerts_per_hour=10)


@pytest.fixture
def service(store, index, monitor):
    return BookService(store, index, monitor)


@pytest.fixture
def dune_dto():
    """The book used across the end-to-end scenarios."""
    return BookDTO(name="Dune", author="Herbert", publish_date=date(1965, 8, 1))


@pytest.fixture
def sample_books():
    return [
        BookDTO(name="Dune", author="Herbert", publish_date=date(1965, 8, 1)),
        BookDTO(name="Neuromancer", author="Gibson", publish_date=date(1984, 7, 1)),
        BookDTO(name="Foundation", author="Asimov", publish_date=date(1951, 6, 1)),
        BookDTO(name="Hyperion", author="Simmons", publish_date=date(1989, 5, 26)),
        BookDTO(name="Solaris", author="Lem"),
    ]
