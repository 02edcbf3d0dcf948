"""Mapping between the Book entity and its public DTO."""

from typing import Iterable, List, Optional

from catalog.models import Book, BookDTO


def book_to_dto(book: Optional[Book]) -> Optional[BookDTO]:
    """Build the DTO for an entity without re-validating it."""
    if book is None:
        return None
    return BookDTO.model_construct(
        id=book.id,
        name=book.name,
        publish_date=book.publish_date,
        author=book.author,
    )


def dto_to_book(book_dto: Optional[BookDTO]) -> Optional[Book]:
    if book_dto is None:
        return None
    return Book(
        id=book_dto.id,
        name=book_dto.name,
        publish_date=book_dto.publish_date,
        author=book_dto.author,
    )


def books_to_dtos(books: Iterable[Book]) -> List[BookDTO]:
    return [book_to_dto(book) for book in books]
