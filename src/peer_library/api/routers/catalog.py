"""Local catalog endpoints: books, copies, contacts and libraries."""

from fastapi import APIRouter, Response, status

from ...database.book_repository import BookCreateSchema, BookRepository, BookUpdateSchema
from ...database.copy_repository import CopyCreateSchema, CopyRepository
from ...database.library_repository import (
    ContactCreateSchema,
    ContactRepository,
    LibraryCreateSchema,
    LibraryRepository,
)
from ...models.book import Book
from ...models.contact import Contact, Library
from ...models.copy import Copy
from ..dependencies import DbSession
from ..schemas import BookListResponse, CopyStatusUpdate

router = APIRouter(tags=["Catalog"])


# === Books ===


@router.get("/books", response_model=BookListResponse)
def list_books(session: DbSession, q: str | None = None):
    """Full catalog, or the books matching ``q``. Peers download this on sync."""
    books = BookRepository(session)
    results = books.search(q) if q else books.get_all(order_by="title")
    return BookListResponse(books=results, total=len(results))


@router.post("/books", response_model=Book, status_code=status.HTTP_201_CREATED)
def create_book(data: BookCreateSchema, session: DbSession):
    return BookRepository(session).create(data)


@router.get("/books/{book_id}", response_model=Book)
def get_book(book_id: int, session: DbSession):
    return BookRepository(session).require(book_id)


@router.put("/books/{book_id}", response_model=Book)
def update_book(book_id: int, data: BookUpdateSchema, session: DbSession):
    return BookRepository(session).update(book_id, data)


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(book_id: int, session: DbSession):
    BookRepository(session).delete(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/books/{book_id}/copies", response_model=list[Copy])
def list_book_copies(book_id: int, session: DbSession):
    BookRepository(session).require(book_id)
    return CopyRepository(session).list_for_book(book_id)


# === Copies ===


@router.post("/copies", response_model=Copy, status_code=status.HTTP_201_CREATED)
def create_copy(data: CopyCreateSchema, session: DbSession):
    return CopyRepository(session).create(data)


@router.get("/copies/{copy_id}", response_model=Copy)
def get_copy(copy_id: int, session: DbSession):
    return CopyRepository(session).require(copy_id)


@router.put("/copies/{copy_id}/status", response_model=Copy)
def set_copy_status(copy_id: int, data: CopyStatusUpdate, session: DbSession):
    return CopyRepository(session).set_status(copy_id, data.status)


@router.delete("/copies/{copy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_copy(copy_id: int, session: DbSession):
    CopyRepository(session).delete(copy_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Contacts and libraries ===


@router.get("/contacts", response_model=list[Contact])
def list_contacts(session: DbSession):
    return ContactRepository(session).get_all(order_by="name")


@router.post("/contacts", response_model=Contact, status_code=status.HTTP_201_CREATED)
def create_contact(data: ContactCreateSchema, session: DbSession):
    return ContactRepository(session).create(data)


@router.get("/libraries", response_model=list[Library])
def list_libraries(session: DbSession):
    return LibraryRepository(session).get_all()


@router.post("/libraries", response_model=Library, status_code=status.HTTP_201_CREATED)
def create_library(data: LibraryCreateSchema, session: DbSession):
    return LibraryRepository(session).create(data)
