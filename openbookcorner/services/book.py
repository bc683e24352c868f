import logging
import math
import uuid

from fastapi import HTTPException
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.models.book import Book
from openbookcorner.models.borrow import BorrowStatus, BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.schemas.book import BookCreate, BookListResponse, BookResponse, BookUpdate

logger = logging.getLogger(__name__)

_DUPLICATE_ISBN = "A book with this ISBN already exists in this library"


async def list_books(
    db: AsyncSession,
    library: Library,
    *,
    q: str | None = None,
    author: str | None = None,
    available: bool | None = None,
    page: int = 1,
    page_size: int = 20,
) -> BookListResponse:
    stmt = select(Book).where(Book.library_id == library.id)

    if q:
        stmt = stmt.where(
            or_(
                Book.title.ilike(f"%{q}%"),
                Book.author.ilike(f"%{q}%"),
                Book.isbn.ilike(f"%{q}%"),
            )
        )
    if author:
        stmt = stmt.where(Book.author.ilike(f"%{author}%"))
    if available is True:
        stmt = stmt.where(Book.available_quantity > 0)
    elif available is False:
        stmt = stmt.where(Book.available_quantity == 0)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total: int = (await db.execute(count_stmt)).scalar_one()

    data_stmt = (
        stmt.order_by(Book.title, Book.id).offset((page - 1) * page_size).limit(page_size)
    )
    rows = (await db.execute(data_stmt)).scalars().all()

    pages = math.ceil(total / page_size) if page_size else 1

    return BookListResponse(
        items=[BookResponse.model_validate(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


async def get_book(
    db: AsyncSession, library: Library, book_id: uuid.UUID, *, for_update: bool = False
) -> Book:
    stmt = select(Book).where(Book.id == book_id, Book.library_id == library.id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    book = await db.scalar(stmt)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


async def find_book_by_isbn(db: AsyncSession, library: Library, isbn: str) -> Book | None:
    return await db.scalar(select(Book).where(Book.library_id == library.id, Book.isbn == isbn))


async def create_book(db: AsyncSession, library: Library, data: BookCreate) -> Book:
    book = Book(
        library_id=library.id,
        title=data.title,
        author=data.author,
        isbn=data.isbn or None,
        description=data.description,
        quantity=data.quantity,
        available_quantity=data.quantity,
    )
    db.add(book)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=_DUPLICATE_ISBN)
    await db.refresh(book)
    logger.info("Book %s added to library %s (%d copies)", book.id, library.slug, book.quantity)
    return book


async def update_book(
    db: AsyncSession, library: Library, book_id: uuid.UUID, data: BookUpdate
) -> Book:
    book = await get_book(db, library, book_id, for_update=True)

    update_data = data.model_dump(exclude_unset=True)
    new_quantity = update_data.pop("quantity", None)
    if new_quantity is not None:
        out = book.quantity - book.available_quantity
        if new_quantity < out:
            raise HTTPException(
                status_code=409,
                detail=f"Cannot reduce quantity below the {out} copies currently borrowed",
            )
        book.quantity = new_quantity
        book.available_quantity = new_quantity - out

    for field, value in update_data.items():
        if field in ("title", "author") and value is None:
            continue
        setattr(book, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail=_DUPLICATE_ISBN)
    await db.refresh(book)
    return book


async def delete_book(db: AsyncSession, library: Library, book_id: uuid.UUID) -> None:
    book = await get_book(db, library, book_id)

    active = await db.scalar(
        select(func.count(BorrowTransaction.id)).where(
            BorrowTransaction.book_id == book.id,
            BorrowTransaction.status == BorrowStatus.BORROWED,
        )
    )
    if active:
        raise HTTPException(
            status_code=409, detail="Cannot delete a book that is currently borrowed"
        )

    # Remove historical borrow records before deleting the book (FK is RESTRICT)
    await db.execute(delete(BorrowTransaction).where(BorrowTransaction.book_id == book.id))

    await db.delete(book)
    await db.commit()
    logger.info("Book %s deleted from library %s", book_id, library.slug)
