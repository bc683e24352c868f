import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.db.base import utcnow
from openbookcorner.models.book import Book
from openbookcorner.models.book_request import BookDonation, DonationStatus
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.book_request import DonationCreate
from openbookcorner.services.email import notify

logger = logging.getLogger(__name__)


async def create_donation(
    db: AsyncSession, library: Library, data: DonationCreate, *, current_user: User
) -> BookDonation:
    donation = BookDonation(library_id=library.id, user_id=current_user.id, **data.model_dump())
    db.add(donation)
    await db.commit()
    await db.refresh(donation)
    logger.info("Donation %s offered by user %s", donation.id, current_user.id)
    return donation


async def list_donations(
    db: AsyncSession,
    library: Library,
    *,
    current_user: User,
    status: DonationStatus | None = None,
) -> list[BookDonation]:
    stmt = select(BookDonation).where(BookDonation.library_id == library.id)
    if not current_user.is_admin:
        stmt = stmt.where(BookDonation.user_id == current_user.id)
    if status is not None:
        stmt = stmt.where(BookDonation.status == status)
    result = await db.scalars(stmt.order_by(BookDonation.created_at.desc(), BookDonation.id))
    return list(result.all())


async def _get_pending_donation(
    db: AsyncSession, library: Library, donation_id: uuid.UUID
) -> BookDonation:
    donation = await db.scalar(
        select(BookDonation)
        .where(BookDonation.id == donation_id, BookDonation.library_id == library.id)
        .with_for_update()
    )
    if donation is None:
        raise HTTPException(status_code=404, detail="Donation not found")
    if donation.status != DonationStatus.PENDING:
        raise HTTPException(status_code=409, detail="Donation has already been decided")
    return donation


async def _notify_donor(db: AsyncSession, library: Library, donation: BookDonation) -> None:
    donor = await db.get(User, donation.user_id)
    if donor is None:
        return
    await notify(
        to=donor.email,
        template="donation_decision",
        context={
            "name": donor.name,
            "title": donation.title,
            "library_name": library.name,
            "status_label": donation.status.value.lower(),
            "admin_note": donation.admin_note,
        },
    )


async def accept_donation(
    db: AsyncSession, library: Library, donation_id: uuid.UUID
) -> BookDonation:
    """Add the donated copies to the catalog.

    Copies join an existing book with the same ISBN; otherwise a new book is
    created from the donation's title and author.
    """
    donation = await _get_pending_donation(db, library, donation_id)

    book = None
    if donation.isbn:
        book = await db.scalar(
            select(Book)
            .where(Book.library_id == library.id, Book.isbn == donation.isbn)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    if book is not None:
        book.quantity += donation.quantity
        book.available_quantity += donation.quantity
    else:
        book = Book(
            library_id=library.id,
            title=donation.title,
            author=donation.author,
            isbn=donation.isbn,
            quantity=donation.quantity,
            available_quantity=donation.quantity,
        )
        db.add(book)

    try:
        await db.flush()
        donation.status = DonationStatus.ACCEPTED
        donation.book_id = book.id
        donation.decided_at = utcnow()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=409, detail="A book with this ISBN already exists in this library"
        )
    await db.refresh(donation)
    logger.info(
        "Donation %s accepted: %d copies added to book %s",
        donation.id,
        donation.quantity,
        book.id,
    )

    await _notify_donor(db, library, donation)
    return donation


async def reject_donation(
    db: AsyncSession, library: Library, donation_id: uuid.UUID, admin_note: str | None
) -> BookDonation:
    donation = await _get_pending_donation(db, library, donation_id)
    donation.status = DonationStatus.REJECTED
    donation.admin_note = admin_note
    donation.decided_at = utcnow()
    await db.commit()
    await db.refresh(donation)

    await _notify_donor(db, library, donation)
    return donation
