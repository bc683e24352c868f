import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, require_admin
from openbookcorner.db.session import get_db
from openbookcorner.models.library import Library
from openbookcorner.schemas.book import BookCreate, BookListResponse, BookResponse, BookUpdate
from openbookcorner.services.book import create_book, delete_book, get_book, list_books, update_book

router = APIRouter(prefix="/api/v1/books", tags=["books"])

# Shared error response definitions
_AUTH_RESPONSES: dict = {
    401: {"description": "Missing, invalid, or expired Bearer token."},
}
_ADMIN_RESPONSES: dict = {
    **_AUTH_RESPONSES,
    403: {"description": "Forbidden — Library Admin role required."},
}
_NOT_FOUND_RESPONSE: dict = {
    404: {"description": "Book not found in this library."},
}


@router.get(
    "",
    response_model=BookListResponse,
    summary="List books",
    description=(
        "Returns a **paginated, filterable** list of the current library's catalog.\n\n"
        "**Filters (all optional, combinable):**\n\n"
        "| Parameter | Behaviour |\n"
        "|-----------|----------|\n"
        "| `q` | Case-insensitive substring match across title, author and ISBN |\n"
        "| `author` | Case-insensitive substring match on the author only |\n"
        "| `available` | `true` — at least one copy on the shelf; `false` — all copies out |\n\n"
        "Results are ordered by title."
    ),
    responses={**_AUTH_RESPONSES},
)
async def list_books_endpoint(
    q: str | None = Query(None, description="Free-text search.", examples=["pragmatic"]),
    author: str | None = Query(None, description="Filter by author name."),
    available: bool | None = Query(None, description="Filter by shelf availability."),
    page: int = Query(1, ge=1, description="Page number (1-based)."),
    page_size: int = Query(20, ge=1, le=100, description="Number of items per page (1–100)."),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookListResponse:
    return await list_books(
        db, library, q=q, author=author, available=available, page=page, page_size=page_size
    )


@router.post(
    "",
    response_model=BookResponse,
    status_code=201,
    dependencies=[require_admin],
    summary="Add a book",
    description="Adds a book with `quantity` copies, all of them on the shelf.",
    responses={
        **_ADMIN_RESPONSES,
        409: {"description": "A book with the same ISBN already exists in this library."},
    },
)
async def create_book_endpoint(
    data: BookCreate,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookResponse:
    book = await create_book(db, library, data)
    return BookResponse.model_validate(book)


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    summary="Get a book",
    responses={**_AUTH_RESPONSES, **_NOT_FOUND_RESPONSE},
)
async def get_book_endpoint(
    book_id: uuid.UUID,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookResponse:
    book = await get_book(db, library, book_id)
    return BookResponse.model_validate(book)


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    dependencies=[require_admin],
    summary="Update a book",
    description=(
        "Partially updates a book; omitted fields keep their values.\n\n"
        "Changing `quantity` adjusts the copies on the shelf by the same amount. "
        "It cannot go below the number of copies currently borrowed."
    ),
    responses={
        **_ADMIN_RESPONSES,
        **_NOT_FOUND_RESPONSE,
        409: {"description": "Duplicate ISBN, or quantity below copies out."},
    },
)
async def update_book_endpoint(
    book_id: uuid.UUID,
    data: BookUpdate,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookResponse:
    book = await update_book(db, library, book_id, data)
    return BookResponse.model_validate(book)


@router.delete(
    "/{book_id}",
    status_code=204,
    dependencies=[require_admin],
    summary="Delete a book",
    description=(
        "Permanently removes a book and its borrow history.\n\n"
        "Books with copies currently borrowed cannot be deleted."
    ),
    responses={
        **_ADMIN_RESPONSES,
        **_NOT_FOUND_RESPONSE,
        409: {"description": "The book has copies currently borrowed."},
    },
)
async def delete_book_endpoint(
    book_id: uuid.UUID,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> None:
    await delete_book(db, library, book_id)
