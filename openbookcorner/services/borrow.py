import logging
import uuid
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.db.base import utcnow
from openbookcorner.models.book import Book
from openbookcorner.models.borrow import BorrowStatus, BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.borrow import BorrowFilter
from openbookcorner.services.book import get_book
from openbookcorner.services.email import notify
from openbookcorner.services.user import get_library_user

logger = logging.getLogger(__name__)

_ALREADY_HOLDING = "This user already has a copy of this book"


async def _resolve_borrower(
    db: AsyncSession, library: Library, current_user: User, user_id: uuid.UUID | None
) -> User:
    if user_id is None or user_id == current_user.id:
        return current_user
    if not current_user.is_admin:
        raise HTTPException(
            status_code=403, detail="Only library admins can borrow on behalf of another user"
        )
    borrower = await get_library_user(db, library, user_id)
    if not borrower.is_active:
        raise HTTPException(status_code=409, detail="Borrower account is deactivated")
    return borrower


def _active_borrows(library: Library, user: User):
    return select(func.count(BorrowTransaction.id)).where(
        BorrowTransaction.library_id == library.id,
        BorrowTransaction.user_id == user.id,
        BorrowTransaction.status == BorrowStatus.BORROWED,
    )


async def borrow_book(
    db: AsyncSession,
    library: Library,
    *,
    book_id: uuid.UUID,
    current_user: User,
    user_id: uuid.UUID | None = None,
) -> BorrowTransaction:
    """
    Lend one copy of a book.

    The copy is claimed with a conditional ``UPDATE ... WHERE
    available_quantity > 0``, so two concurrent requests for the last copy
    cannot both succeed. The partial unique index on (book_id, user_id) for
    active borrows stops the same reader taking a second copy.
    """
    borrower = await _resolve_borrower(db, library, current_user, user_id)
    book = await get_book(db, library, book_id)
    now = utcnow()

    overdue = await db.scalar(
        _active_borrows(library, borrower).where(BorrowTransaction.due_date < now)
    )
    if overdue:
        raise HTTPException(
            status_code=409,
            detail="Borrower has overdue books that must be returned first",
        )

    active = await db.scalar(_active_borrows(library, borrower)) or 0
    if active >= library.max_active_borrows:
        raise HTTPException(
            status_code=409,
            detail=f"Borrow limit of {library.max_active_borrows} books reached",
        )

    holding = await db.scalar(
        _active_borrows(library, borrower).where(BorrowTransaction.book_id == book.id)
    )
    if holding:
        raise HTTPException(status_code=409, detail=_ALREADY_HOLDING)

    claimed = await db.execute(
        update(Book)
        .where(Book.id == book.id, Book.available_quantity > 0)
        .values(available_quantity=Book.available_quantity - 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        raise HTTPException(status_code=409, detail="No copies available")

    borrow = BorrowTransaction(
        library_id=library.id,
        book_id=book.id,
        user_id=borrower.id,
        borrowed_at=now,
        due_date=now + timedelta(days=library.loan_period_days),
    )
    db.add(borrow)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request for the same reader and book won the unique index.
        await db.rollback()
        raise HTTPException(status_code=409, detail=_ALREADY_HOLDING)

    await db.refresh(borrow)
    await db.refresh(book)
    logger.info(
        "Borrow %s: user %s took book %s (%d/%d left)",
        borrow.id,
        borrower.id,
        book.id,
        book.available_quantity,
        book.quantity,
    )

    await notify(
        to=borrower.email,
        template="borrow_confirmation",
        context={
            "name": borrower.name,
            "title": book.title,
            "author": book.author,
            "library_name": library.name,
            "due_date": borrow.due_date,
        },
    )
    return borrow


async def _get_active_borrow(
    db: AsyncSession, library: Library, borrow_id: uuid.UUID, current_user: User, action: str
) -> BorrowTransaction:
    borrow = await db.scalar(
        select(BorrowTransaction).where(
            BorrowTransaction.id == borrow_id,
            BorrowTransaction.library_id == library.id,
            BorrowTransaction.status == BorrowStatus.BORROWED,
        )
    )
    if borrow is None:
        raise HTTPException(status_code=404, detail="Active borrow not found")
    if not current_user.is_admin and borrow.user_id != current_user.id:
        raise HTTPException(status_code=403, detail=f"Cannot {action} another user's borrow")
    return borrow


async def return_book(
    db: AsyncSession, library: Library, *, borrow_id: uuid.UUID, current_user: User
) -> BorrowTransaction:
    """
    Return a borrowed copy.

    - READER can only return their own active borrow.
    - LIBRARY_ADMIN / SUPER_ADMIN can return any active borrow in the library.
    """
    borrow = await _get_active_borrow(db, library, borrow_id, current_user, "return")

    borrow.status = BorrowStatus.RETURNED
    borrow.returned_at = utcnow()

    await db.execute(
        update(Book)
        .where(Book.id == borrow.book_id, Book.available_quantity < Book.quantity)
        .values(available_quantity=Book.available_quantity + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(borrow)
    logger.info("Borrow %s returned by user %s", borrow.id, current_user.id)
    return borrow


async def renew_borrow(
    db: AsyncSession, library: Library, *, borrow_id: uuid.UUID, current_user: User
) -> BorrowTransaction:
    borrow = await _get_active_borrow(db, library, borrow_id, current_user, "renew")

    if borrow.is_overdue:
        raise HTTPException(status_code=409, detail="Overdue borrows cannot be renewed")
    if borrow.renewal_count >= library.max_renewals:
        raise HTTPException(status_code=409, detail="Renewal limit reached for this borrow")

    borrow.due_date = borrow.due_date + timedelta(days=library.loan_period_days)
    borrow.renewal_count += 1
    # Re-arm the due-soon reminder for the new date.
    borrow.due_reminder_sent_at = None

    await db.commit()
    await db.refresh(borrow)
    logger.info("Borrow %s renewed until %s", borrow.id, borrow.due_date.isoformat())
    return borrow


async def list_borrows(
    db: AsyncSession,
    library: Library,
    *,
    current_user: User,
    status: BorrowFilter | None = None,
    user_id: uuid.UUID | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[BorrowTransaction], int]:
    """
    List borrows in the library.

    - READER sees only their own borrows.
    - Admins see all and may filter by ``user_id``.
    """
    base = select(BorrowTransaction).where(BorrowTransaction.library_id == library.id)
    if not current_user.is_admin:
        base = base.where(BorrowTransaction.user_id == current_user.id)
    elif user_id is not None:
        base = base.where(BorrowTransaction.user_id == user_id)

    if status == BorrowFilter.ACTIVE:
        base = base.where(BorrowTransaction.status == BorrowStatus.BORROWED)
    elif status == BorrowFilter.RETURNED:
        base = base.where(BorrowTransaction.status == BorrowStatus.RETURNED)
    elif status == BorrowFilter.OVERDUE:
        base = base.where(
            BorrowTransaction.status == BorrowStatus.BORROWED,
            BorrowTransaction.due_date < utcnow(),
        )

    total: int = (await db.scalar(select(func.count()).select_from(base.subquery()))) or 0

    rows = await db.scalars(
        base.order_by(BorrowTransaction.borrowed_at.desc(), BorrowTransaction.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(rows.all()), total
