import uuid

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.db.base import utcnow
from openbookcorner.models.book import Book
from openbookcorner.models.book_request import BookDonation, BookRequest, DonationStatus, RequestStatus
from openbookcorner.models.borrow import BorrowStatus, BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.models.user import User, UserRole
from openbookcorner.schemas.library import LibraryCreate, LibraryStats, LibraryUpdate
from openbookcorner.schemas.user import AdminInvite
from openbookcorner.services.user import invite_user


async def list_libraries(db: AsyncSession) -> list[Library]:
    result = await db.scalars(select(Library).order_by(Library.name))
    return list(result.all())


async def get_library(db: AsyncSession, library_id: uuid.UUID) -> Library:
    library = await db.get(Library, library_id)
    if library is None:
        raise HTTPException(status_code=404, detail="Library not found")
    return library


async def create_library(db: AsyncSession, data: LibraryCreate) -> Library:
    # Unset policy fields fall back to the column defaults from settings.
    library = Library(**data.model_dump(exclude_none=True))
    db.add(library)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A library with this slug already exists")
    await db.refresh(library)
    return library


async def update_library(db: AsyncSession, library_id: uuid.UUID, data: LibraryUpdate) -> Library:
    library = await get_library(db, library_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(library, field, value)
    await db.commit()
    await db.refresh(library)
    return library


async def add_library_admin(
    db: AsyncSession, library_id: uuid.UUID, data: AdminInvite, *, invited_by: User
) -> User:
    library = await get_library(db, library_id)
    return await invite_user(
        db,
        library,
        email=data.email,
        name=data.name,
        role=UserRole.LIBRARY_ADMIN,
        invited_by=invited_by,
    )


async def library_stats(db: AsyncSession, library: Library) -> LibraryStats:
    titles, copies, available = (
        await db.execute(
            select(
                func.count(Book.id),
                func.coalesce(func.sum(Book.quantity), 0),
                func.coalesce(func.sum(Book.available_quantity), 0),
            ).where(Book.library_id == library.id)
        )
    ).one()

    active = select(func.count(BorrowTransaction.id)).where(
        BorrowTransaction.library_id == library.id,
        BorrowTransaction.status == BorrowStatus.BORROWED,
    )
    active_borrows = await db.scalar(active) or 0
    overdue_borrows = await db.scalar(active.where(BorrowTransaction.due_date < utcnow())) or 0

    active_readers = (
        await db.scalar(
            select(func.count(User.id)).where(
                User.library_id == library.id,
                User.role == UserRole.READER,
                User.is_active.is_(True),
            )
        )
        or 0
    )
    pending_requests = (
        await db.scalar(
            select(func.count(BookRequest.id)).where(
                BookRequest.library_id == library.id,
                BookRequest.status == RequestStatus.PENDING,
            )
        )
        or 0
    )
    pending_donations = (
        await db.scalar(
            select(func.count(BookDonation.id)).where(
                BookDonation.library_id == library.id,
                BookDonation.status == DonationStatus.PENDING,
            )
        )
        or 0
    )

    return LibraryStats(
        titles=titles,
        copies=copies,
        copies_out=copies - available,
        active_borrows=active_borrows,
        overdue_borrows=overdue_borrows,
        active_readers=active_readers,
        pending_requests=pending_requests,
        pending_donations=pending_donations,
    )
