"""
Elasticsearch search index for books.

The index mirrors the primary store: each book is stored as a document whose
``_id`` is the book identifier. Queries use the Lucene query-string syntax so
clients can combine free terms, quoted phrases and ``field:value`` filters.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from elasticsearch import (
    ApiError,
    AsyncElasticsearch,
    BadRequestError,
    NotFoundError,
    TransportError,
)

from catalog.exceptions import IndexQueryError, IndexWriteError, MalformedQueryError
from catalog.models import Book, PageSpec, SortBy, SortOrder

logger = structlog.get_logger(__name__)

BOOK_MAPPINGS = {
    "properties": {
        "id": {"type": "long"},
        "name": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "author": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "publish_date": {"type": "date", "format": "strict_date"},
    }
}

SORT_FIELDS = {
    SortBy.ID: "id",
    SortBy.NAME: "name.keyword",
    SortBy.PUBLISH_DATE: "publish_date",
    SortBy.AUTHOR: "author.keyword",
}

INDEX_ERRORS = (ApiError, TransportError)


class ElasticsearchBookIndex:
    """Async Elasticsearch adapter holding the searchable copy of each book."""

    def __init__(
        self,
        url: str,
        index_name: str = "books",
        request_timeout: float = 10.0,
        refresh: Union[bool, str] = "wait_for",
        max_result_window: int = 10000,
        client: Optional[AsyncElasticsearch] = None
    ):
        """
        Initialize the index adapter.

        Args:
            url: Elasticsearch endpoint
            index_name: Name of the books index
            request_timeout: Per-request timeout in seconds
            refresh: Refresh policy applied to writes
            max_result_window: Deepest hit (from + size) the index will serve
            client: Pre-built client, mainly for tests
        """
        self.url = url
        self.index_name = index_name
        self.request_timeout = request_timeout
        self.refresh = refresh
        self.max_result_window = max_result_window
        self.client = client
        self.index_ready = False

    async def connect(self) -> None:
        """Create the client and make sure the books index exists."""
        if self.client is None:
            self.client = AsyncElasticsearch(self.url, request_timeout=self.request_timeout)
        await self.ensure_index()
        logger.info("Search index ready", url=self.url, index=self.index_name)

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.close()
            logger.info("Disconnected from Elasticsearch")

    async def ensure_index(self) -> None:
        """Create the books index with its mappings when missing."""
        try:
            if not await self.client.indices.exists(index=self.index_name):
                await self.client.indices.create(index=self.index_name, mappings=BOOK_MAPPINGS)
                logger.info("Created search index", index=self.index_name)
        except INDEX_ERRORS as e:
            logger.error("Failed to ensure search index", index=self.index_name, error=str(e))
            raise IndexQueryError(f"Failed to prepare index {self.index_name}: {e}") from e
        self.index_ready = True

    async def _ensure_writable(self, book_id: Optional[int] = None) -> None:
        # Writing into a missing index would let Elasticsearch create it without the mappings
        if self.index_ready:
            return
        try:
            await self.ensure_index()
        except IndexQueryError as e:
            raise IndexWriteError(str(e), book_id=book_id) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except INDEX_ERRORS as e:
            logger.warning("Elasticsearch ping failed", error=str(e))
            return False

    async def put(self, book_id: int, book: Book) -> None:
        """Index or overwrite the document for ``book_id``."""
        await self._ensure_writable(book_id)
        try:
            await self.client.index(
                index=self.index_name,
                id=str(book_id),
                document=self._to_document(book_id, book),
                refresh=self.refresh,
            )
            logger.debug("Indexed book", book_id=book_id)
        except INDEX_ERRORS as e:
            raise IndexWriteError(f"Failed to index book {book_id}: {e}", book_id=book_id) from e

    async def delete_by_id(self, book_id: int) -> bool:
        """
        Remove the document for ``book_id``.

        Returns:
            bool: True if a document was removed, False if none existed
        """
        try:
            await self.client.delete(index=self.index_name, id=str(book_id), refresh=self.refresh)
            logger.debug("Removed book from index", book_id=book_id)
            return True
        except NotFoundError:
            logger.debug("Book not present in index", book_id=book_id)
            return False
        except INDEX_ERRORS as e:
            raise IndexWriteError(f"Failed to remove book {book_id} from index: {e}", book_id=book_id) from e

    async def query_page(self, query: str, page_spec: PageSpec) -> Tuple[List[Book], int]:
        """
        Run a query-string search.

        Results are ordered by relevance unless the page spec names a sort field.

        Returns:
            Tuple of the books on the page and the total number of hits
        """
        if not self.index_ready:
            await self.ensure_index()

        # Hits past max_result_window cannot be fetched; such pages come back empty with the real total
        size = max(0, min(page_spec.per_page, self.max_result_window - page_spec.offset))
        offset = page_spec.offset if size else 0

        try:
            response = await self.client.search(
                index=self.index_name,
                query={"query_string": {"query": query, "lenient": True}},
                from_=offset,
                size=size,
                sort=self._sort_clause(page_spec),
                track_total_hits=True,
            )
        except BadRequestError as e:
            logger.warning("Search query rejected", query=query, error=str(e))
            raise MalformedQueryError(f"Invalid search query {query!r}: {e}") from e
        except INDEX_ERRORS as e:
            logger.error("Search query failed", query=query, error=str(e))
            raise IndexQueryError(f"Search failed: {e}") from e

        hits = response["hits"]
        books = [self._from_hit(hit) for hit in hits["hits"]]
        return books, hits["total"]["value"]

    async def count(self) -> int:
        try:
            response = await self.client.count(index=self.index_name)
        except INDEX_ERRORS as e:
            raise IndexQueryError(f"Failed to count indexed books: {e}") from e
        return response["count"]

    async def clear(self) -> None:
        """Remove every document from the books index."""
        await self._ensure_writable()
        try:
            await self.client.delete_by_query(
                index=self.index_name,
                query={"match_all": {}},
                refresh=True,
            )
            logger.info("Cleared search index", index=self.index_name)
        except INDEX_ERRORS as e:
            raise IndexWriteError(f"Failed to clear index {self.index_name}: {e}") from e

    @staticmethod
    def _sort_clause(page_spec: PageSpec) -> List[Dict[str, Any]]:
        order = "asc" if page_spec.sort_order == SortOrder.ASC else "desc"
        if page_spec.sort_by is None:
            return [{"_score": {"order": "desc"}}, {"id": {"order": "asc"}}]
        clause = [{SORT_FIELDS[page_spec.sort_by]: {"order": order}}]
        if page_spec.sort_by != SortBy.ID:
            clause.append({"id": {"order": order}})
        return clause

    @staticmethod
    def _to_document(book_id: int, book: Book) -> Dict[str, Any]:
        document = book.model_dump(mode="json")
        document["id"] = book_id
        return document

    @staticmethod
    def _from_hit(hit: Dict[str, Any]) -> Book:
        source = dict(hit.get("_source") or {})
        if source.get("id") is None:
            source["id"] = int(hit["_id"])
        return Book.model_validate(source)
