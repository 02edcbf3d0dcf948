"""
MongoDB primary store for book records.
Handles connection, indexing, identifier allocation and CRUD operations.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from catalog.exceptions import BookNotFoundError, PrimaryStoreError
from catalog.models import Book, PageSpec, SortBy, SortOrder

logger = structlog.get_logger(__name__)

SORT_FIELDS = {
    SortBy.ID: "_id",
    SortBy.NAME: "name",
    SortBy.PUBLISH_DATE: "publish_date",
    SortBy.AUTHOR: "author",
}


class MongoBookStore:
    """
    Async MongoDB store for books, the source of truth for the catalog.

    Book identifiers are sequential integers kept in a counters collection
    and used directly as the document ``_id``.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str = "books",
        counters_collection_name: str = "counters",
        timeout_ms: int = 5000
    ):
        """
        Initialize the store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the books collection
            counters_collection_name: Name of the collection holding id sequences
            timeout_ms: Server selection timeout in milliseconds
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.counters_collection_name = counters_collection_name
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None
        self.counters: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and create indexes."""
        try:
            self.client = AsyncIOMotorClient(
                self.connection_url,
                serverSelectionTimeoutMS=self.timeout_ms
            )
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]
            self.counters = self.database[self.counters_collection_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

            await self._create_indexes()

        except PyMongoError as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise PrimaryStoreError(f"Failed to connect to MongoDB: {e}") from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create indexes backing the sortable fields."""
        await self.collection.create_index("name")
        await self.collection.create_index("author")
        await self.collection.create_index("publish_date")
        logger.info("Successfully created MongoDB indexes")

    async def ping(self) -> bool:
        """Return True when the server answers a ping."""
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("MongoDB ping failed", error=str(e))
            return False

    async def _next_id(self) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": self.collection_name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return int(counter["seq"])

    async def insert(self, book: Book) -> Book:
        """
        Insert a new book, allocating its identifier.

        Args:
            book: Book without an identifier

        Returns:
            The stored book with its identifier
        """
        try:
            book_id = await self._next_id()
            document = self._to_document(book)
            document["_id"] = book_id
            await self.collection.insert_one(document)
            logger.debug("Successfully inserted book", book_id=book_id, book_name=book.name)
            return self._from_document(document)

        except PyMongoError as e:
            logger.error("Failed to insert book", book_name=book.name, error=str(e))
            raise PrimaryStoreError(f"Failed to insert book: {e}") from e

    async def update(self, book: Book) -> Book:
        """
        Replace every field of an existing book.

        Args:
            book: Book carrying the identifier of the record to overwrite

        Returns:
            The book as stored after the replacement
        """
        try:
            document = await self.collection.find_one_and_replace(
                {"_id": book.id},
                self._to_document(book),
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book.id, error=str(e))
            raise PrimaryStoreError(f"Failed to update book {book.id}: {e}") from e

        if document is None:
            logger.warning("Book not found for update", book_id=book.id)
            raise BookNotFoundError(book.id)

        logger.debug("Successfully updated book", book_id=book.id)
        return self._from_document(document)

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        """
        Get a book by identifier.

        Returns:
            Book if found, None otherwise
        """
        try:
            document = await self.collection.find_one({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise PrimaryStoreError(f"Failed to get book {book_id}: {e}") from e

        if document is None:
            return None
        return self._from_document(document)

    async def find_page(self, page_spec: PageSpec) -> Tuple[List[Book], int]:
        """
        Get one page of books ordered by the requested field.

        Returns:
            Tuple of the books on the page and the total number of books
        """
        direction = ASCENDING if page_spec.sort_order == SortOrder.ASC else DESCENDING
        sort_field = SORT_FIELDS[page_spec.sort_by or SortBy.ID]
        sort_query = [(sort_field, direction)]
        if sort_field != "_id":
            sort_query.append(("_id", direction))

        try:
            total = await self.collection.count_documents({})
            cursor = (
                self.collection.find({})
                .sort(sort_query)
                .skip(page_spec.offset)
                .limit(page_spec.per_page)
            )
            documents = await cursor.to_list(length=page_spec.per_page)

        except PyMongoError as e:
            logger.error("Failed to get books", error=str(e), page_spec=page_spec.model_dump())
            raise PrimaryStoreError(f"Failed to get books: {e}") from e

        return [self._from_document(document) for document in documents], total

    async def delete_by_id(self, book_id: int) -> bool:
        """
        Delete a book by identifier.

        Returns:
            bool: True if deleted, False if not found
        """
        try:
            result = await self.collection.delete_one({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise PrimaryStoreError(f"Failed to delete book {book_id}: {e}") from e

        if result.deleted_count > 0:
            logger.debug("Successfully deleted book", book_id=book_id)
            return True

        logger.warning("Book not found for deletion", book_id=book_id)
        return False

    async def count(self) -> int:
        """Get total number of books in the collection."""
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            logger.error("Failed to get books count", error=str(e))
            raise PrimaryStoreError(f"Failed to count books: {e}") from e

    @staticmethod
    def _to_document(book: Book) -> Dict[str, Any]:
        # BSON has no date type, publish dates are stored as midnight datetimes
        publish_date = None
        if book.publish_date is not None:
            publish_date = datetime.combine(book.publish_date, time.min)
        return {
            "name": book.name,
            "publish_date": publish_date,
            "author": book.author,
        }

    @staticmethod
    def _from_document(document: Dict[str, Any]) -> Book:
        publish_date = document.get("publish_date")
        if isinstance(publish_date, datetime):
            publish_date = publish_date.date()
        elif publish_date is not None and not isinstance(publish_date, date):
            publish_date = date.fromisoformat(str(publish_date))
        return Book(
            id=document["_id"],
            name=document.get("name"),
            publish_date=publish_date,
            author=document.get("author"),
        )
