"""
Book service keeping the primary store and the search index in step.

Every write goes to the primary store first and is then mirrored into the
search index under the same identifier. A failed mirror write never fails the
operation: it is logged and recorded by the ``IndexSyncMonitor`` so the stale
index entry stays visible to operators. Reads by id or page come from the
primary store only, free-text search from the index only.
"""

from typing import Dict, List, Optional

import structlog

from catalog.mapper import book_to_dto, books_to_dtos, dto_to_book
from catalog.models import MAX_PER_PAGE, Book, BookDTO, BookPage, PageSpec
from catalog.monitoring import IndexSyncMonitor
from catalog.ports import PrimaryStore, SearchIndex

logger = structlog.get_logger(__name__)


class BookService:
    """Service for managing books across the primary store and the search index."""

    def __init__(
        self,
        store: PrimaryStore,
        index: SearchIndex,
        monitor: Optional[IndexSyncMonitor] = None
    ):
        self.store = store
        self.index = index
        self.monitor = monitor or IndexSyncMonitor()

    async def save(self, book_dto: BookDTO) -> BookDTO:
        """
        Save a book.

        Inserts when the DTO has no id, otherwise overwrites the stored record.

        Args:
            book_dto: the book to save

        Returns:
            The persisted book as held by the primary store
        """
        logger.debug("Request to save Book", book=book_dto.model_dump())
        book = dto_to_book(book_dto)
        if book.id is None:
            stored = await self.store.insert(book)
        else:
            stored = await self.store.update(book)
        await self._mirror_put(stored)
        return book_to_dto(stored)

    async def find_all(self, page_spec: PageSpec) -> BookPage:
        """
        Get a page of books from the primary store.

        Args:
            page_spec: the pagination information

        Returns:
            The page of books with pagination metadata
        """
        logger.debug("Request to get all Books", page=page_spec.page, per_page=page_spec.per_page)
        books, total = await self.store.find_page(page_spec)
        return BookPage.build(books_to_dtos(books), total, page_spec)

    async def find_one(self, book_id: int) -> Optional[BookDTO]:
        """
        Get one book by id.

        Returns:
            The book, or None when the primary store has no such id
        """
        logger.debug("Request to get Book", book_id=book_id)
        return book_to_dto(await self.store.find_by_id(book_id))

    async def delete(self, book_id: int) -> None:
        """Delete the book from the primary store, then from the search index."""
        logger.debug("Request to delete Book", book_id=book_id)
        await self.store.delete_by_id(book_id)
        await self._mirror_delete(book_id)

    async def search(self, query: str, page_spec: PageSpec) -> BookPage:
        """
        Search for the books corresponding to the query.

        Args:
            query: query-string expression, e.g. ``Dune`` or ``author:Herbert``
            page_spec: the pagination information

        Returns:
            The page of matching books with pagination metadata
        """
        logger.debug("Request to search for a page of Books", query=query)
        books, total = await self.index.query_page(query, page_spec)
        return BookPage.build(books_to_dtos(books), total, page_spec)

    async def reindex(self, page_size: int = 100, fresh: bool = False) -> Dict:
        """
        Rebuild the search index from the primary store.

        Args:
            page_size: number of books read from the primary store per batch, capped at MAX_PER_PAGE
            fresh: remove every indexed document before mirroring

        Returns:
            Dictionary with the number of mirrored books and the ids that failed
        """
        logger.info("Reindexing books", page_size=page_size, fresh=fresh)
        if fresh:
            await self.index.clear()
            self.monitor.clear()

        mirrored = 0
        failed: List[int] = []
        page_spec = PageSpec(page=1, per_page=max(1, min(page_size, MAX_PER_PAGE)))
        while True:
            books, total = await self.store.find_page(page_spec)
            for book in books:
                if await self._mirror_put(book):
                    mirrored += 1
                else:
                    failed.append(book.id)
            if page_spec.offset + len(books) >= total or not books:
                break
            page_spec = page_spec.model_copy(update={"page": page_spec.page + 1})

        logger.info("Reindex completed", mirrored=mirrored, failed=len(failed))
        return {"mirrored": mirrored, "failed": failed}

    async def _mirror_put(self, book: Book) -> bool:
        try:
            await self.index.put(book.id, book)
        except Exception as e:
            logger.error("Failed to mirror book into search index",
                         book_id=book.id, error=str(e), exc_info=True)
            self.monitor.record_failure(book.id, "put", str(e))
            return False
        self.monitor.record_success(book.id)
        return True

    async def _mirror_delete(self, book_id: int) -> bool:
        try:
            await self.index.delete_by_id(book_id)
        except Exception as e:
            logger.error("Failed to remove book from search index",
                         book_id=book_id, error=str(e), exc_info=True)
            self.monitor.record_failure(book_id, "delete", str(e))
            return False
        self.monitor.record_success(book_id)
        return True
