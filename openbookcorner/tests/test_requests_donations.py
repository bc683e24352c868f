"""Book requests and donations: reader submissions, admin decisions, donor emails."""

import uuid

import pytest
import pytest_asyncio

from openbookcorner.models.book import Book
from openbookcorner.models.user import UserRole
from openbookcorner.tests.factories import client_as, make_book, make_library, make_user


@pytest_asyncio.fixture
async def library(db):
    return await make_library(db, name="Berlin Office")


@pytest_asyncio.fixture
async def reader(db, library):
    return await make_user(db, library)


@pytest_asyncio.fixture
async def admin(db, library):
    return await make_user(db, library, role=UserRole.LIBRARY_ADMIN)


async def _open_request(db, reader, **payload) -> dict:
    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/book-requests", json={"title": "Dune", **payload})
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _offer(db, reader, **payload) -> dict:
    body = {"title": "Dune", "author": "Frank Herbert", **payload}
    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/donations", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Book requests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reader_opens_request(db, library, reader) -> None:
    body = await _open_request(db, reader, author="Frank Herbert", note="Team book club")

    assert body["status"] == "PENDING"
    assert body["user_id"] == str(reader.id)
    assert body["library_id"] == str(library.id)
    assert body["decided_at"] is None


@pytest.mark.asyncio
async def test_request_title_required(db, reader) -> None:
    async with client_as(reader, db) as ac:
        resp = await ac.post("/api/v1/book-requests", json={"title": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_requests_listing_scope(db, library, reader, admin) -> None:
    other = await make_user(db, library)
    await _open_request(db, reader)
    await _open_request(db, other, title="Sapiens")

    async with client_as(reader, db) as ac:
        own = await ac.get("/api/v1/book-requests")
    async with client_as(admin, db) as ac:
        everything = await ac.get("/api/v1/book-requests")
        pending = await ac.get("/api/v1/book-requests", params={"status": "PENDING"})
        approved = await ac.get("/api/v1/book-requests", params={"status": "APPROVED"})

    assert [r["title"] for r in own.json()] == ["Dune"]
    assert len(everything.json()) == 2
    assert len(pending.json()) == 2
    assert approved.json() == []


@pytest.mark.asyncio
async def test_request_lifecycle(db, reader, admin, outbox) -> None:
    request = await _open_request(db, reader)

    async with client_as(admin, db) as ac:
        approved = await ac.patch(
            f"/api/v1/book-requests/{request['id']}",
            json={"status": "APPROVED", "admin_note": "Ordering this week"},
        )
        fulfilled = await ac.patch(
            f"/api/v1/book-requests/{request['id']}", json={"status": "FULFILLED"}
        )
        reopened = await ac.patch(
            f"/api/v1/book-requests/{request['id']}", json={"status": "PENDING"}
        )

    assert approved.status_code == 200, approved.text
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["admin_note"] == "Ordering this week"
    assert approved.json()["decided_at"] is not None

    assert fulfilled.status_code == 200
    assert fulfilled.json()["status"] == "FULFILLED"
    # The note from the earlier decision is kept.
    assert fulfilled.json()["admin_note"] == "Ordering this week"

    assert reopened.status_code == 409
    assert reopened.json()["detail"] == "Cannot move a FULFILLED request to PENDING"

    decisions = outbox.by_template("request_decision")
    assert [d.context["status_label"] for d in decisions] == ["approved", "fulfilled"]
    assert all(d.message.to == reader.email for d in decisions)
    assert "Ordering this week" in decisions[0].message.text


@pytest.mark.asyncio
async def test_pending_request_cannot_jump_to_fulfilled(db, reader, admin) -> None:
    request = await _open_request(db, reader)

    async with client_as(admin, db) as ac:
        resp = await ac.patch(
            f"/api/v1/book-requests/{request['id']}", json={"status": "FULFILLED"}
        )

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_approved_request_can_still_be_rejected(db, reader, admin) -> None:
    request = await _open_request(db, reader)

    async with client_as(admin, db) as ac:
        await ac.patch(f"/api/v1/book-requests/{request['id']}", json={"status": "APPROVED"})
        rejected = await ac.patch(
            f"/api/v1/book-requests/{request['id']}",
            json={"status": "REJECTED", "admin_note": "Out of print"},
        )

    assert rejected.status_code == 200
    assert rejected.json()["status"] == "REJECTED"


@pytest.mark.asyncio
async def test_withdraw_request(db, library, reader, admin) -> None:
    mine = await _open_request(db, reader)
    other = await make_user(db, library)
    theirs = await _open_request(db, other, title="Sapiens")
    decided = await _open_request(db, reader, title="Emma")

    async with client_as(admin, db) as ac:
        await ac.patch(f"/api/v1/book-requests/{decided['id']}", json={"status": "REJECTED"})

    async with client_as(reader, db) as ac:
        withdrawn = await ac.delete(f"/api/v1/book-requests/{mine['id']}")
        not_mine = await ac.delete(f"/api/v1/book-requests/{theirs['id']}")
        too_late = await ac.delete(f"/api/v1/book-requests/{decided['id']}")
        remaining = await ac.get("/api/v1/book-requests")

    assert withdrawn.status_code == 204
    assert not_mine.status_code == 403
    assert too_late.status_code == 409
    assert [r["title"] for r in remaining.json()] == ["Emma"]


# ---------------------------------------------------------------------------
# Donations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reader_offers_donation(db, reader) -> None:
    body = await _offer(db, reader, quantity=2, note="Read it twice")

    assert body["status"] == "PENDING"
    assert body["quantity"] == 2
    assert body["book_id"] is None


@pytest.mark.asyncio
async def test_donation_quantity_bounds(db, reader) -> None:
    async with client_as(reader, db) as ac:
        resp = await ac.post(
            "/api/v1/donations", json={"title": "T", "author": "A", "quantity": 0}
        )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_accept_donation_creates_book(db, library, reader, admin, outbox) -> None:
    donation = await _offer(db, reader, isbn="9780441013593", quantity=2)

    async with client_as(admin, db) as ac:
        resp = await ac.post(f"/api/v1/donations/{donation['id']}/accept")

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "ACCEPTED"
    assert body["book_id"] is not None

    book = await db.get(Book, uuid.UUID(body["book_id"]))
    assert book is not None
    assert book.library_id == library.id
    assert (book.quantity, book.available_quantity) == (2, 2)

    [email] = outbox.by_template("donation_decision")
    assert email.message.to == reader.email
    assert email.context["status_label"] == "accepted"


@pytest.mark.asyncio
async def test_accept_donation_merges_by_isbn(db, library, reader, admin) -> None:
    existing = await make_book(db, library, quantity=1, isbn="9780441013593")
    donation = await _offer(db, reader, isbn="9780441013593", quantity=3)

    async with client_as(admin, db) as ac:
        resp = await ac.post(f"/api/v1/donations/{donation['id']}/accept")
        again = await ac.post(f"/api/v1/donations/{donation['id']}/accept")

    assert resp.status_code == 200, resp.text
    assert resp.json()["book_id"] == str(existing.id)
    assert again.status_code == 409

    await db.refresh(existing)
    assert (existing.quantity, existing.available_quantity) == (4, 4)


@pytest.mark.asyncio
async def test_reject_donation(db, reader, admin, outbox) -> None:
    donation = await _offer(db, reader)

    async with client_as(admin, db) as ac:
        resp = await ac.post(
            f"/api/v1/donations/{donation['id']}/reject",
            json={"admin_note": "We already have three copies"},
        )
        listed = await ac.get("/api/v1/donations", params={"status": "REJECTED"})

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["book_id"] is None
    assert [d["id"] for d in listed.json()] == [donation["id"]]

    [email] = outbox.by_template("donation_decision")
    assert "We already have three copies" in email.message.text


@pytest.mark.asyncio
async def test_reader_sees_only_own_donations(db, library, reader) -> None:
    other = await make_user(db, library)
    await _offer(db, reader)
    await _offer(db, other, title="Emma", author="Jane Austen")

    async with client_as(reader, db) as ac:
        resp = await ac.get("/api/v1/donations")

    assert [d["title"] for d in resp.json()] == ["Dune"]


@pytest.mark.asyncio
async def test_blank_isbn_donations_become_separate_books(db, library, reader, admin) -> None:
    first = await _offer(db, reader, isbn="")
    second = await _offer(db, reader, title="Emma", author="Jane Austen", isbn="   ")
    assert first["isbn"] is None
    assert second["isbn"] is None

    async with client_as(admin, db) as ac:
        accepted = [
            await ac.post(f"/api/v1/donations/{d['id']}/accept") for d in (first, second)
        ]

    assert [r.status_code for r in accepted] == [200, 200]
    book_ids = {r.json()["book_id"] for r in accepted}
    assert len(book_ids) == 2
    for book_id in book_ids:
        book = await db.get(Book, uuid.UUID(book_id))
        assert book.isbn is None


@pytest.mark.asyncio
async def test_blank_isbn_request_stored_as_none(db, reader) -> None:
    body = await _open_request(db, reader, isbn=" ")
    assert body["isbn"] is None
