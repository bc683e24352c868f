"""RBAC boundary tests.

Anonymous requests: no overrides, the real auth dependencies run.
Role checks: `client_as` overrides get_current_user with a stored user.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from openbookcorner.main import app
from openbookcorner.models.user import UserRole
from openbookcorner.tests.factories import client_as, make_book, make_library, make_user

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def anon_client():
    """Client with no auth override — all auth deps run normally."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Anonymous: 401 before any database access
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/v1/books"),
        ("post", "/api/v1/books"),
        ("put", f"/api/v1/books/{uuid.uuid4()}"),
        ("delete", f"/api/v1/books/{uuid.uuid4()}"),
        ("get", "/api/v1/borrows"),
        ("post", "/api/v1/borrows"),
        ("post", f"/api/v1/borrows/{uuid.uuid4()}/return"),
        ("get", "/api/v1/users"),
        ("get", "/api/v1/libraries"),
        ("get", "/api/v1/stats"),
        ("get", "/api/v1/book-requests"),
        ("get", "/api/v1/donations"),
        ("post", "/api/v1/auth/logout"),
    ],
)
async def test_no_auth(anon_client: AsyncClient, method: str, path: str) -> None:
    resp = await anon_client.request(method, path, json={})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_health_is_public(anon_client: AsyncClient) -> None:
    resp = await anon_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Readers: 403 on admin endpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reader_cannot_manage_catalog(db) -> None:
    library = await make_library(db)
    reader = await make_user(db, library)
    book = await make_book(db, library)

    async with client_as(reader, db) as ac:
        created = await ac.post("/api/v1/books", json={"title": "T", "author": "A"})
        updated = await ac.put(f"/api/v1/books/{book.id}", json={"title": "New"})
        deleted = await ac.delete(f"/api/v1/books/{book.id}")
        listed = await ac.get("/api/v1/books")

    assert created.status_code == 403
    assert updated.status_code == 403
    assert deleted.status_code == 403
    assert listed.status_code == 200


@pytest.mark.asyncio
async def test_reader_cannot_reach_admin_surfaces(db) -> None:
    library = await make_library(db)
    reader = await make_user(db, library)

    async with client_as(reader, db) as ac:
        users = await ac.get("/api/v1/users")
        stats = await ac.get("/api/v1/stats")
        libraries = await ac.get("/api/v1/libraries")
        decide = await ac.patch(
            f"/api/v1/book-requests/{uuid.uuid4()}", json={"status": "APPROVED"}
        )
        accept = await ac.post(f"/api/v1/donations/{uuid.uuid4()}/accept")

    assert users.status_code == 403
    assert stats.status_code == 403
    assert libraries.status_code == 403
    assert decide.status_code == 403
    assert accept.status_code == 403


@pytest.mark.asyncio
async def test_library_admin_cannot_manage_libraries(db) -> None:
    library = await make_library(db)
    admin = await make_user(db, library, role=UserRole.LIBRARY_ADMIN)

    async with client_as(admin, db) as ac:
        listed = await ac.get("/api/v1/libraries")
        created = await ac.post("/api/v1/libraries", json={"name": "X", "slug": "x-lib"})

    assert listed.status_code == 403
    assert created.status_code == 403


# ---------------------------------------------------------------------------
# Super admins: choose a library with X-Library-Id
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_super_admin_needs_library_header(db) -> None:
    super_admin = await make_user(db, None, role=UserRole.SUPER_ADMIN)

    async with client_as(super_admin, db) as ac:
        resp = await ac.get("/api/v1/books")

    assert resp.status_code == 400
    assert resp.json()["detail"] == "X-Library-Id header is required"


@pytest.mark.asyncio
async def test_super_admin_unknown_library(db) -> None:
    super_admin = await make_user(db, None, role=UserRole.SUPER_ADMIN)

    async with client_as(super_admin, db, library_id=uuid.uuid4()) as ac:
        resp = await ac.get("/api/v1/books")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_super_admin_acts_in_selected_library(db) -> None:
    library = await make_library(db)
    super_admin = await make_user(db, None, role=UserRole.SUPER_ADMIN)

    async with client_as(super_admin, db, library_id=library.id) as ac:
        created = await ac.post("/api/v1/books", json={"title": "Dune", "author": "Herbert"})
        stats = await ac.get("/api/v1/stats")

    assert created.status_code == 201, created.text
    assert created.json()["library_id"] == str(library.id)
    assert stats.status_code == 200
    assert stats.json()["titles"] == 1


@pytest.mark.asyncio
async def test_user_without_library_forbidden(db) -> None:
    orphan = await make_user(db, None)

    async with client_as(orphan, db) as ac:
        resp = await ac.get("/api/v1/books")

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_super_admin_malformed_library_header(db) -> None:
    super_admin = await make_user(db, None, role=UserRole.SUPER_ADMIN)

    async with client_as(super_admin, db) as ac:
        resp = await ac.get("/api/v1/books", headers={"X-Library-Id": "not-a-uuid"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_library_header_ignored_for_readers(db) -> None:
    library = await make_library(db)
    reader = await make_user(db, library)
    await make_book(db, library)

    async with client_as(reader, db) as ac:
        resp = await ac.get("/api/v1/books", headers={"X-Library-Id": "not-a-uuid"})

    assert resp.status_code == 200, resp.text
    assert resp.json()["total"] == 1
