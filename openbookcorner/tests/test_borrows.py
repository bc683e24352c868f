"""Borrow, return and renew tests.

Anonymous boundary checks live in test_rbac.py; everything here runs
against the in-memory SQLite database.
"""

import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import HTTPException

from openbookcorner.models.borrow import BorrowStatus
from openbookcorner.models.user import UserRole
from openbookcorner.services.borrow import borrow_book, return_book
from openbookcorner.tests.factories import client_as, make_book, make_borrow, make_library, make_user


@pytest_asyncio.fixture
async def library(db):
    return await make_library(db, loan_period_days=14, max_active_borrows=2, max_renewals=1)


@pytest_asyncio.fixture
async def reader(db, library):
    return await make_user(db, library)


@pytest_asyncio.fixture
async def admin(db, library):
    return await make_user(db, library, role=UserRole.LIBRARY_ADMIN)


# ---------------------------------------------------------------------------
# Borrowing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_borrow_available_book(db, library, reader, outbox) -> None:
    """Borrowing takes one copy off the shelf and sets the due date."""
    book = await make_book(db, library, quantity=2)

    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["book_id"] == str(book.id)
    assert body["user_id"] == str(reader.id)
    assert body["status"] == "BORROWED"
    assert body["returned_at"] is None
    assert body["is_overdue"] is False

    borrowed_at = datetime.fromisoformat(body["borrowed_at"])
    due_date = datetime.fromisoformat(body["due_date"])
    assert due_date - borrowed_at == timedelta(days=14)

    await db.refresh(book)
    assert book.available_quantity == 1

    [confirmation] = outbox.by_template("borrow_confirmation")
    assert confirmation.message.to == reader.email
    assert book.title in confirmation.message.subject


@pytest.mark.asyncio
async def test_borrow_last_copy_then_none_left(db, library, reader) -> None:
    book = await make_book(db, library, quantity=1)
    other = await make_user(db, library)

    async with client_as(reader, db) as ac:
        first = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})
    assert first.status_code == 201

    async with client_as(other, db) as ac:
        second = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})
    assert second.status_code == 409
    assert second.json()["detail"] == "No copies available"

    await db.refresh(book)
    assert book.available_quantity == 0


@pytest.mark.asyncio
async def test_borrow_nonexistent_book(db, reader) -> None:
    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/borrows", json={"book_id": str(uuid.uuid4())})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_borrow_blocked_by_overdue(db, library, reader) -> None:
    late = await make_book(db, library)
    await make_borrow(db, library, late, reader, due_in=timedelta(days=-1))
    book = await make_book(db, library)

    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})

    assert resp.status_code == 409
    assert "overdue" in resp.json()["detail"].lower()


@pytest.mark.asyncio
async def test_borrow_limit(db, library, reader) -> None:
    for _ in range(library.max_active_borrows):
        await make_borrow(db, library, await make_book(db, library), reader)
    book = await make_book(db, library)

    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Borrow limit of 2 books reached"


@pytest.mark.asyncio
async def test_borrow_same_title_twice(db, library, reader) -> None:
    book = await make_book(db, library, quantity=3)

    async with client_as(reader, db) as ac:
        first = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})
        second = await ac.post("/api/v1/borrows", json={"book_id": str(book.id)})

    assert first.status_code == 201
    assert second.status_code == 409
    assert "already has a copy" in second.json()["detail"]


@pytest.mark.asyncio
async def test_double_borrow_prevented_by_service(db, library, reader) -> None:
    """Calling borrow_book twice for a single-copy book raises 409 on the second call."""
    other = await make_user(db, library)
    book = await make_book(db, library)

    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)
    assert borrow.status == BorrowStatus.BORROWED

    with pytest.raises(HTTPException) as exc_info:
        await borrow_book(db, library, book_id=book.id, current_user=other)

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_admin_borrows_on_behalf_of_reader(db, library, admin, reader) -> None:
    book = await make_book(db, library)

    async with client_as(admin, db) as ac:
        resp = await ac.post(
            "/api/v1/borrows", json={"book_id": str(book.id), "user_id": str(reader.id)}
        )

    assert resp.status_code == 201, resp.text
    assert resp.json()["user_id"] == str(reader.id)


@pytest.mark.asyncio
async def test_reader_cannot_borrow_on_behalf(db, library, reader) -> None:
    other = await make_user(db, library)
    book = await make_book(db, library)

    async with client_as(reader, db) as ac:
        resp = await ac.post(
            "/api/v1/borrows", json={"book_id": str(book.id), "user_id": str(other.id)}
        )

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_lend_to_other_library_user(db, library, admin) -> None:
    outsider = await make_user(db, await make_library(db))
    book = await make_book(db, library)

    async with client_as(admin, db) as ac:
        resp = await ac.post(
            "/api/v1/borrows", json={"book_id": str(book.id), "user_id": str(outsider.id)}
        )

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_lend_to_deactivated_user(db, library, admin) -> None:
    inactive = await make_user(db, library, is_active=False)
    book = await make_book(db, library)

    async with client_as(admin, db) as ac:
        resp = await ac.post(
            "/api/v1/borrows", json={"book_id": str(book.id), "user_id": str(inactive.id)}
        )

    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Returning
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_return_own_borrow(db, library, reader) -> None:
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)

    async with client_as(reader, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/return")

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "RETURNED"
    assert body["returned_at"] is not None
    assert body["is_overdue"] is False

    await db.refresh(book)
    assert book.available_quantity == 1


@pytest.mark.asyncio
async def test_return_other_users_borrow_forbidden(db, library, reader) -> None:
    other = await make_user(db, library)
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)

    async with client_as(other, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/return")

    assert resp.status_code == 403
    assert "another user" in resp.json()["detail"].lower()


@pytest.mark.asyncio
async def test_admin_returns_any_borrow(db, library, admin, reader) -> None:
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)

    async with client_as(admin, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/return")

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "RETURNED"


@pytest.mark.asyncio
async def test_return_twice_not_found(db, library, reader) -> None:
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)
    await return_book(db, library, borrow_id=borrow.id, current_user=reader)

    async with client_as(reader, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/return")

    assert resp.status_code == 404

    await db.refresh(book)
    assert book.available_quantity == book.quantity


@pytest.mark.asyncio
async def test_book_available_again_after_return(db, library, reader) -> None:
    """After return, the copy can be borrowed by another reader."""
    other = await make_user(db, library)
    book = await make_book(db, library)

    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)
    await return_book(db, library, borrow_id=borrow.id, current_user=reader)

    again = await borrow_book(db, library, book_id=book.id, current_user=other)
    assert again.status == BorrowStatus.BORROWED
    assert again.user_id == other.id


@pytest.mark.asyncio
async def test_return_overdue_book(db, library, reader) -> None:
    book = await make_book(db, library)
    borrow = await make_borrow(db, library, book, reader, due_in=timedelta(days=-3))

    async with client_as(reader, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/return")

    assert resp.status_code == 200
    assert resp.json()["is_overdue"] is False


# ---------------------------------------------------------------------------
# Renewing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_renew_extends_due_date(db, library, reader) -> None:
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)
    original_due = borrow.due_date

    async with client_as(reader, db) as ac:
        first = await ac.post(f"/api/v1/borrows/{borrow.id}/renew")
        second = await ac.post(f"/api/v1/borrows/{borrow.id}/renew")

    assert first.status_code == 200, first.text
    assert first.json()["renewal_count"] == 1
    assert datetime.fromisoformat(first.json()["due_date"]) - original_due == timedelta(days=14)

    assert second.status_code == 409
    assert second.json()["detail"] == "Renewal limit reached for this borrow"


@pytest.mark.asyncio
async def test_renew_overdue_rejected(db, library, reader) -> None:
    book = await make_book(db, library)
    borrow = await make_borrow(db, library, book, reader, due_in=timedelta(hours=-1))

    async with client_as(reader, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/renew")

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Overdue borrows cannot be renewed"


@pytest.mark.asyncio
async def test_renew_other_users_borrow_forbidden(db, library, reader) -> None:
    other = await make_user(db, library)
    book = await make_book(db, library)
    borrow = await borrow_book(db, library, book_id=book.id, current_user=reader)

    async with client_as(other, db) as ac:
        resp = await ac.post(f"/api/v1/borrows/{borrow.id}/renew")

    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_borrows_reader_sees_own_only(db, library, reader) -> None:
    other = await make_user(db, library)
    await make_borrow(db, library, await make_book(db, library), reader)
    await make_borrow(db, library, await make_book(db, library), other)

    async with client_as(reader, db) as ac:
        # user_id is ignored for readers
        resp = await ac.get("/api/v1/borrows", params={"user_id": str(other.id)})

    assert resp.status_code == 200, resp.text
    user_ids = {item["user_id"] for item in resp.json()["items"]}
    assert user_ids == {str(reader.id)}


@pytest.mark.asyncio
async def test_list_borrows_admin_sees_all(db, library, admin, reader) -> None:
    other = await make_user(db, library)
    await make_borrow(db, library, await make_book(db, library), reader)
    await make_borrow(db, library, await make_book(db, library), other)

    async with client_as(admin, db) as ac:
        everyone = await ac.get("/api/v1/borrows")
        one_user = await ac.get("/api/v1/borrows", params={"user_id": str(other.id)})

    assert everyone.json()["total"] == 2
    assert {i["user_id"] for i in one_user.json()["items"]} == {str(other.id)}


@pytest.mark.asyncio
async def test_list_borrows_status_filters(db, library, admin, reader) -> None:
    on_time = await make_borrow(db, library, await make_book(db, library), reader)
    late = await make_borrow(
        db, library, await make_book(db, library), reader, due_in=timedelta(days=-2)
    )
    done = await make_borrow(db, library, await make_book(db, library), admin)
    await return_book(db, library, borrow_id=done.id, current_user=admin)

    async with client_as(admin, db) as ac:
        active = await ac.get("/api/v1/borrows", params={"status": "active"})
        overdue = await ac.get("/api/v1/borrows", params={"status": "overdue"})
        returned = await ac.get("/api/v1/borrows", params={"status": "returned"})
        bogus = await ac.get("/api/v1/borrows", params={"status": "lost"})

    assert {i["id"] for i in active.json()["items"]} == {str(on_time.id), str(late.id)}
    assert [i["id"] for i in overdue.json()["items"]] == [str(late.id)]
    assert overdue.json()["items"][0]["is_overdue"] is True
    assert [i["id"] for i in returned.json()["items"]] == [str(done.id)]
    assert bogus.status_code == 422


@pytest.mark.asyncio
async def test_list_borrows_pagination(db, library, admin) -> None:
    for _ in range(3):
        reader = await make_user(db, library)
        await make_borrow(db, library, await make_book(db, library), reader)

    async with client_as(admin, db) as ac:
        resp = await ac.get("/api/v1/borrows", params={"page": 2, "page_size": 2})

    assert resp.json()["total"] == 3
    assert len(resp.json()["items"]) == 1
