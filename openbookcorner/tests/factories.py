"""Row builders and client helpers shared by the test modules."""

import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from httpx import ASGITransport, AsyncClient

from openbookcorner.auth.dependencies import get_current_user
from openbookcorner.db.base import utcnow
from openbookcorner.db.session import get_db
from openbookcorner.main import app
from openbookcorner.models.book import Book
from openbookcorner.models.borrow import BorrowTransaction
from openbookcorner.models.library import Library
from openbookcorner.models.user import User, UserRole
from openbookcorner.services.email import EmailMessage


@dataclass
class SentEmail:
    message: EmailMessage
    template: str
    context: dict = field(default_factory=dict)


class Outbox(list):
    def append(self, message: EmailMessage, *, template: str, context: dict) -> None:  # type: ignore[override]
        super().append(SentEmail(message=message, template=template, context=context))

    def by_template(self, template: str) -> list[SentEmail]:
        return [sent for sent in self if sent.template == template]


async def make_library(db, **overrides) -> Library:
    data = {
        "name": "Test Library",
        "slug": f"lib-{uuid.uuid4().hex[:8]}",
        "loan_period_days": 14,
        "max_active_borrows": 3,
        "max_renewals": 1,
        **overrides,
    }
    library = Library(**data)
    db.add(library)
    await db.commit()
    await db.refresh(library)
    return library


async def make_user(
    db, library: Library | None, *, role: UserRole = UserRole.READER, **overrides
) -> User:
    user = User(
        email=overrides.pop("email", f"user_{uuid.uuid4().hex[:8]}@example.com"),
        name=overrides.pop("name", "Test User"),
        role=role,
        library_id=library.id if library is not None else None,
        **overrides,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_book(db, library: Library, *, quantity: int = 1, **overrides) -> Book:
    book = Book(
        library_id=library.id,
        title=overrides.pop("title", f"Test Book {uuid.uuid4().hex[:6]}"),
        author=overrides.pop("author", "Test Author"),
        quantity=quantity,
        available_quantity=quantity,
        **overrides,
    )
    db.add(book)
    await db.commit()
    await db.refresh(book)
    return book


async def make_borrow(
    db, library: Library, book: Book, user: User, *, due_in: timedelta = timedelta(days=14)
) -> BorrowTransaction:
    """Insert an active borrow directly, e.g. one that is already overdue."""
    now = utcnow()
    borrow = BorrowTransaction(
        library_id=library.id,
        book_id=book.id,
        user_id=user.id,
        borrowed_at=now - timedelta(days=14),
        due_date=now + due_in,
    )
    book.available_quantity -= 1
    db.add(borrow)
    await db.commit()
    await db.refresh(borrow)
    return borrow


@contextlib.asynccontextmanager
async def client_as(user: User, db, *, library_id: uuid.UUID | None = None):
    """HTTP client authenticated as *user*, using the test DB session."""

    async def _override_user():
        return user

    async def _override_db():
        yield db

    headers = {"X-Library-Id": str(library_id)} if library_id else {}
    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_db] = _override_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test", headers=headers
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_current_user, None)
        app.dependency_overrides.pop(get_db, None)
