"""
FastAPI main application for the Book Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.config import config as api_config
from api.headers import (
    entity_creation_headers,
    entity_deletion_headers,
    entity_update_headers,
    failure_headers,
    pagination_headers,
)
from api.models import ErrorResponse, HealthResponse
from catalog.database import MongoBookStore
from catalog.exceptions import (
    BookNotFoundError,
    IndexQueryError,
    MalformedQueryError,
    PrimaryStoreError,
)
from catalog.models import BookDTO, BookPage, PageSpec
from catalog.monitoring import IndexSyncMonitor
from catalog.search import ElasticsearchBookIndex
from catalog.service import BookService
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

ENTITY_NAME = "book"

# Wired by the lifespan handler
primary_store: Optional[MongoBookStore] = None
search_index: Optional[ElasticsearchBookIndex] = None
book_service: Optional[BookService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global primary_store, search_index, book_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Book Catalog API")

    primary_store = MongoBookStore(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        collection_name=config.mongodb_collection,
        counters_collection_name=config.mongodb_counters_collection,
        timeout_ms=config.mongodb_timeout_ms
    )
    search_index = ElasticsearchBookIndex(
        url=config.elasticsearch_url,
        index_name=config.elasticsearch_index,
        request_timeout=config.elasticsearch_timeout,
        refresh=config.get_refresh_policy(),
        max_result_window=config.elasticsearch_max_result_window
    )

    try:
        await primary_store.connect()
    except Exception as e:
        logger.error("Failed to connect to primary store", error=str(e))
        await primary_store.disconnect()
        primary_store = None
        search_index = None
        raise

    try:
        await search_index.connect()
    except IndexQueryError as e:
        # The index is prepared again on its next use; until then writes are recorded as divergent
        logger.error("Search index unavailable at startup", error=str(e))

    book_service = BookService(
        primary_store,
        search_index,
        IndexSyncMonitor(max_alerts_per_hour=config.index_alert_max_per_hour)
    )

    try:
        yield
    finally:
        logger.info("Shutting down Book Catalog API")
        book_service = None
        await search_index.disconnect()
        await primary_store.disconnect()
        primary_store = None
        search_index = None


app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for managing books, backed by MongoDB with an Elasticsearch mirror.

    ## Consistency

    * Create, update and delete succeed or fail on the MongoDB outcome alone.
    * Each write is then mirrored into Elasticsearch. A failed mirror write is
      logged and reported by `/health` but does not fail the request.
    * `GET /api/books` and `GET /api/books/{id}` read MongoDB only;
      `GET /api/_search/books` reads Elasticsearch only and is eventually consistent.
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
    expose_headers=api_config.cors_expose_headers,
)


def get_book_service() -> BookService:
    """Dependency returning the wired book service."""
    if book_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Book service not available"
        )
    return book_service


def _error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers
    )


def _book_content(book_dto: BookDTO) -> dict:
    return book_dto.model_dump(mode="json", by_alias=True)


def _page_response(page: BookPage, base_url: str, query: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        content=page.model_dump(mode="json", by_alias=True),
        headers=pagination_headers(page, base_url, query)
    )


def _page_spec(page: int, per_page: int, sort: Optional[str]) -> PageSpec:
    try:
        return PageSpec.from_sort_param(
            page=page,
            per_page=min(per_page, config.max_page_size),
            sort=sort
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return _error_response(exc.status_code, exc.detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as bad requests."""
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        detail="; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
    )


@app.exception_handler(BookNotFoundError)
async def book_not_found_handler(request: Request, exc: BookNotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(PrimaryStoreError)
async def primary_store_error_handler(request: Request, exc: PrimaryStoreError):
    logger.error("Primary store failure", error=str(exc), path=request.url.path)
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Primary store unavailable",
        detail=str(exc) if api_config.debug else None
    )


@app.exception_handler(MalformedQueryError)
async def malformed_query_handler(request: Request, exc: MalformedQueryError):
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid search query", detail=str(exc))


@app.exception_handler(IndexQueryError)
async def index_query_error_handler(request: Request, exc: IndexQueryError):
    logger.error("Search index failure", error=str(exc), path=request.url.path)
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Search index unavailable",
        detail=str(exc) if api_config.debug else None
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=str(exc) if api_config.debug else None
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Report primary store, search index and mirror status."""
    database_status = "unavailable"
    index_status = "unavailable"
    if primary_store is not None:
        database_status = "healthy" if await primary_store.ping() else "unhealthy"
    if search_index is not None:
        index_status = "healthy" if await search_index.ping() else "unhealthy"

    divergent = 0
    if book_service is not None:
        divergent = book_service.monitor.snapshot()["divergent_count"]

    if database_status != "healthy":
        overall = "unhealthy"
    elif index_status != "healthy" or divergent:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=database_status,
        search_index_status=index_status,
        divergent_books=divergent
    )


# Books endpoints
@app.post("/api/books", response_model=BookDTO, status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(book_dto: BookDTO, service: BookService = Depends(get_book_service)):
    """
    Create a new book.

    Returns 400 when the payload already carries an ID.
    """
    logger.debug("REST request to save Book", book=book_dto.model_dump(mode="json"))
    if book_dto.id is not None:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "A new book cannot already have an ID",
            headers=failure_headers(ENTITY_NAME, "idexists")
        )

    result = await service.save(book_dto)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=_book_content(result),
        headers={
            "Location": f"/api/books/{result.id}",
            **entity_creation_headers(ENTITY_NAME, str(result.id)),
        }
    )


@app.put("/api/books", response_model=BookDTO, tags=["Books"])
async def update_book(book_dto: BookDTO, service: BookService = Depends(get_book_service)):
    """
    Update an existing book.

    A payload without ID is created instead; an unknown ID returns 404.
    """
    logger.debug("REST request to update Book", book=book_dto.model_dump(mode="json"))
    if book_dto.id is None:
        return await create_book(book_dto, service)

    result = await service.save(book_dto)
    return JSONResponse(
        content=_book_content(result),
        headers=entity_update_headers(ENTITY_NAME, str(book_dto.id))
    )


@app.get("/api/books", response_model=BookPage, tags=["Books"])
async def get_all_books(
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    per_page: int = Query(config.default_page_size, ge=1, description="Items per page"),
    sort: Optional[str] = Query(None, description="Sort as field,direction e.g. name,desc"),
    service: BookService = Depends(get_book_service)
):
    """
    Get a page of books from the primary store.

    - **sort**: one of id, name, publish_date, author, optionally followed by ,asc or ,desc
    """
    logger.debug("REST request to get a page of Books")
    result = await service.find_all(_page_spec(page, per_page, sort))
    return _page_response(result, "/api/books")


@app.get("/api/books/{book_id}", response_model=BookDTO, tags=["Books"])
async def get_book(book_id: int, service: BookService = Depends(get_book_service)):
    """Get a single book by ID."""
    logger.debug("REST request to get Book", book_id=book_id)
    book = await service.find_one(book_id)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with ID '{book_id}' not found"
        )
    return JSONResponse(content=_book_content(book))


@app.delete("/api/books/{book_id}", tags=["Books"])
async def delete_book(book_id: int, service: BookService = Depends(get_book_service)):
    """Delete a book by ID."""
    logger.debug("REST request to delete Book", book_id=book_id)
    await service.delete(book_id)
    return Response(
        status_code=status.HTTP_200_OK,
        headers=entity_deletion_headers(ENTITY_NAME, str(book_id))
    )


@app.get("/api/_search/books", response_model=BookPage, tags=["Search"])
async def search_books(
    query: str = Query(..., min_length=1, description="Query string, e.g. Dune or author:Herbert"),
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    per_page: int = Query(config.default_page_size, ge=1, description="Items per page"),
    sort: Optional[str] = Query(None, description="Sort as field,direction; relevance when omitted"),
    service: BookService = Depends(get_book_service)
):
    """
    Search books in the search index.

    Results may lag behind recent writes.
    """
    logger.debug("REST request to search for a page of Books", query=query)
    result = await service.search(query, _page_spec(page, per_page, sort))
    return _page_response(result, "/api/_search/books", query)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
