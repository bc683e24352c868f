"""
Daily job: due-soon reminders, overdue notices and cleanup of stale sign-in rows.

Run from a scheduler once a day with:
    python -m openbookcorner.jobs.reminders
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.core.config import settings
from openbookcorner.core.logging import setup_logging
from openbookcorner.db.base import utcnow
from openbookcorner.db.session import AsyncSessionLocal
from openbookcorner.models.book import Book
from openbookcorner.models.borrow import BorrowStatus, BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.models.session import EmailVerificationCode, UserSession
from openbookcorner.models.user import User
from openbookcorner.services.email import notify

logger = logging.getLogger(__name__)


@dataclass
class ReminderSummary:
    due_reminders: int = 0
    overdue_notices: int = 0
    purged_codes: int = 0
    purged_sessions: int = 0


def _active_borrows_with_context():
    return (
        select(BorrowTransaction, Book, User, Library)
        .join(Book, Book.id == BorrowTransaction.book_id)
        .join(User, User.id == BorrowTransaction.user_id)
        .join(Library, Library.id == BorrowTransaction.library_id)
        .where(
            BorrowTransaction.status == BorrowStatus.BORROWED,
            Library.is_active.is_(True),
            User.is_active.is_(True),
        )
        .order_by(BorrowTransaction.due_date)
    )


async def send_due_reminders(db: AsyncSession, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    horizon = now + timedelta(days=settings.DUE_SOON_DAYS)
    rows = await db.execute(
        _active_borrows_with_context().where(
            BorrowTransaction.due_date >= now,
            BorrowTransaction.due_date <= horizon,
            BorrowTransaction.due_reminder_sent_at.is_(None),
        )
    )

    sent = 0
    for borrow, book, user, library in rows.all():
        delivered = await notify(
            to=user.email,
            template="due_reminder",
            context={
                "name": user.name,
                "title": book.title,
                "author": book.author,
                "library_name": library.name,
                "due_date": borrow.due_date,
                "renewals_left": max(0, library.max_renewals - borrow.renewal_count),
            },
        )
        if delivered:
            borrow.due_reminder_sent_at = now
            sent += 1
    await db.commit()
    return sent


async def send_overdue_notices(db: AsyncSession, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    resend_before = now - timedelta(hours=settings.OVERDUE_NOTICE_INTERVAL_HOURS)
    rows = await db.execute(
        _active_borrows_with_context().where(
            BorrowTransaction.due_date < now,
            or_(
                BorrowTransaction.overdue_notice_sent_at.is_(None),
                BorrowTransaction.overdue_notice_sent_at <= resend_before,
            ),
        )
    )

    sent = 0
    for borrow, book, user, library in rows.all():
        days_overdue = max(1, math.ceil((now - borrow.due_date).total_seconds() / 86400))
        delivered = await notify(
            to=user.email,
            template="overdue_notice",
            context={
                "name": user.name,
                "title": book.title,
                "author": book.author,
                "library_name": library.name,
                "due_date": borrow.due_date,
                "days_overdue": days_overdue,
            },
        )
        if delivered:
            borrow.overdue_notice_sent_at = now
            sent += 1
    await db.commit()
    return sent


async def purge_stale_auth(db: AsyncSession, *, now: datetime | None = None) -> tuple[int, int]:
    """Delete expired sign-in codes and sessions that expired or were signed out."""
    now = now or utcnow()
    codes = await db.execute(
        delete(EmailVerificationCode)
        .where(EmailVerificationCode.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    sessions = await db.execute(
        delete(UserSession)
        .where(or_(UserSession.expires_at <= now, UserSession.revoked_at.is_not(None)))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return codes.rowcount, sessions.rowcount


async def run_reminders(db: AsyncSession, *, now: datetime | None = None) -> ReminderSummary:
    now = now or utcnow()
    summary = ReminderSummary(
        due_reminders=await send_due_reminders(db, now=now),
        overdue_notices=await send_overdue_notices(db, now=now),
    )
    summary.purged_codes, summary.purged_sessions = await purge_stale_auth(db, now=now)
    logger.info(
        "Reminder run finished: %d due reminders, %d overdue notices, "
        "purged %d codes and %d sessions",
        summary.due_reminders,
        summary.overdue_notices,
        summary.purged_codes,
        summary.purged_sessions,
    )
    return summary


async def main() -> None:
    setup_logging()
    async with AsyncSessionLocal() as session:
        summary = await run_reminders(session)
    print(
        f"Sent {summary.due_reminders} due reminders and {summary.overdue_notices} overdue notices; "
        f"purged {summary.purged_codes} codes and {summary.purged_sessions} sessions."
    )


if __name__ == "__main__":
    asyncio.run(main())
