"""
Unit tests for the Elasticsearch search index adapter.
The client is mocked; error objects are built the way the transport builds them.
"""

import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import BadRequestError, ConnectionError as ESConnectionError, NotFoundError

from catalog.exceptions import IndexQueryError, IndexWriteError, MalformedQueryError
from catalog.models import Book, PageSpec, SortBy, SortOrder
from catalog.search import BOOK_MAPPINGS, ElasticsearchBookIndex


def api_meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def search_response(hits, total):
    return {"hits": {"total": {"value": total, "relation": "eq"}, "hits": hits}}


class TestElasticsearchBookIndex:
    """Test cases for ElasticsearchBookIndex class."""

    @pytest.fixture
    def client(self):
        """Create a mock Elasticsearch client."""
        client = MagicMock()
        client.index = AsyncMock()
        client.delete = AsyncMock()
        client.search = AsyncMock(return_value=search_response([], 0))
        client.count = AsyncMock(return_value={"count": 0})
        client.delete_by_query = AsyncMock()
        client.ping = AsyncMock(return_value=True)
        client.close = AsyncMock()
        client.indices.exists = AsyncMock(return_value=False)
        client.indices.create = AsyncMock()
        return client

    @pytest.fixture
    def index(self, client):
        return ElasticsearchBookIndex("http://localhost:9200", index_name="books", client=client)

    @pytest.mark.asyncio
    async def test_connect_creates_missing_index(self, index, client):
        await index.connect()

        client.indices.create.assert_awaited_once_with(index="books", mappings=BOOK_MAPPINGS)

    @pytest.mark.asyncio
    async def test_connect_keeps_existing_index(self, index, client):
        client.indices.exists.return_value = True

        await index.connect()

        client.indices.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_put_uses_book_id_as_document_id(self, index, client):
        """Test that the document is stored under the primary store id."""
        book = Book(id=1, name="Dune", author="Herbert", publish_date=date(1965, 8, 1))

        await index.put(1, book)

        client.index.assert_awaited_once_with(
            index="books",
            id="1",
            document={"id": 1, "name": "Dune", "publish_date": "1965-08-01", "author": "Herbert"},
            refresh="wait_for",
        )

    @pytest.mark.asyncio
    async def test_put_failure_raises_index_write_error(self, index, client):
        client.index.side_effect = ESConnectionError("connection refused")

        with pytest.raises(IndexWriteError) as exc_info:
            await index.put(1, Book(id=1, name="Dune"))

        assert exc_info.value.book_id == 1

    @pytest.mark.asyncio
    async def test_delete_existing_document(self, index, client):
        assert await index.delete_by_id(1) is True
        client.delete.assert_awaited_once_with(index="books", id="1", refresh="wait_for")

    @pytest.mark.asyncio
    async def test_delete_missing_document_is_not_an_error(self, index, client):
        """Test that deleting an absent document reports False instead of raising."""
        client.delete.side_effect = NotFoundError("not_found", api_meta(404), {"result": "not_found"})

        assert await index.delete_by_id(1) is False

    @pytest.mark.asyncio
    async def test_delete_failure_raises_index_write_error(self, index, client):
        client.delete.side_effect = ESConnectionError("connection refused")

        with pytest.raises(IndexWriteError):
            await index.delete_by_id(1)

    @pytest.mark.asyncio
    async def test_query_page_builds_query_string_search(self, index, client):
        """Test the request shape and hit conversion."""
        client.search.return_value = search_response(
            [{"_id": "1", "_source": {"id": 1, "name": "Dune", "publish_date": "1965-08-01", "author": "Herbert"}}],
            31,
        )

        books, total = await index.query_page("Dune", PageSpec(page=2, per_page=10))

        assert total == 31
        assert books == [Book(id=1, name="Dune", author="Herbert", publish_date=date(1965, 8, 1))]
        client.search.assert_awaited_once_with(
            index="books",
            query={"query_string": {"query": "Dune", "lenient": True}},
            from_=10,
            size=10,
            sort=[{"_score": {"order": "desc"}}, {"id": {"order": "asc"}}],
            track_total_hits=True,
        )

    @pytest.mark.asyncio
    async def test_query_page_takes_id_from_hit_when_source_lacks_it(self, index, client):
        client.search.return_value = search_response([{"_id": "4", "_source": {"name": "Hyperion"}}], 1)

        books, _ = await index.query_page("Hyperion", PageSpec())

        assert books[0].id == 4

    @pytest.mark.asyncio
    async def test_query_page_sorts_on_keyword_fields(self, index, client):
        await index.query_page("*", PageSpec(sort_by=SortBy.NAME, sort_order=SortOrder.DESC))

        sort = client.search.await_args.kwargs["sort"]
        assert sort == [{"name.keyword": {"order": "desc"}}, {"id": {"order": "desc"}}]

    @pytest.mark.asyncio
    async def test_rejected_query_raises_malformed_query_error(self, index, client):
        client.search.side_effect = BadRequestError(
            "search_phase_execution_exception", api_meta(400), {"error": "parse_exception"}
        )

        with pytest.raises(MalformedQueryError):
            await index.query_page('"Dune', PageSpec())

    @pytest.mark.asyncio
    async def test_unreachable_index_raises_index_query_error(self, index, client):
        client.search.side_effect = ESConnectionError("connection refused")

        with pytest.raises(IndexQueryError) as exc_info:
            await index.query_page("Dune", PageSpec())

        assert not isinstance(exc_info.value, MalformedQueryError)

    @pytest.mark.asyncio
    async def test_put_prepares_index_left_missing_at_startup(self, index, client):
        """Test that a failed startup check is retried before the next write."""
        client.indices.exists.side_effect = ESConnectionError("connection refused")
        with pytest.raises(IndexQueryError):
            await index.connect()

        with pytest.raises(IndexWriteError):
            await index.put(1, Book(id=1, name="Dune"))
        client.index.assert_not_awaited()

        client.indices.exists.side_effect = None
        await index.put(1, Book(id=1, name="Dune"))

        client.indices.create.assert_awaited_once_with(index="books", mappings=BOOK_MAPPINGS)
        client.index.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_deep_page_is_trimmed_to_result_window(self, index, client):
        """Test that a page straddling the result window only asks for the reachable hits."""
        await index.query_page("Dune", PageSpec(page=67, per_page=150))

        kwargs = client.search.await_args.kwargs
        assert kwargs["from_"] == 9900
        assert kwargs["size"] == 100

    @pytest.mark.asyncio
    async def test_page_past_result_window_is_empty(self, index, client):
        """Test that pages beyond the result window return no hits but the real total."""
        client.search.return_value = search_response([], 25000)

        books, total = await index.query_page("Dune", PageSpec(page=101, per_page=100))

        assert books == []
        assert total == 25000
        kwargs = client.search.await_args.kwargs
        assert kwargs["from_"] == 0
        assert kwargs["size"] == 0

    @pytest.mark.asyncio
    async def test_count_and_clear(self, index, client):
        client.count.return_value = {"count": 12}

        assert await index.count() == 12

        await index.clear()
        client.delete_by_query.assert_awaited_once_with(
            index="books", query={"match_all": {}}, refresh=True
        )

    @pytest.mark.asyncio
    async def test_ping_failure_returns_false(self, index, client):
        client.ping.side_effect = ESConnectionError("connection refused")

        assert await index.ping() is False
