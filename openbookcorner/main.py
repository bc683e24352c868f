import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from openbookcorner import __version__
from openbookcorner.api.v1.auth import router as auth_router
from openbookcorner.api.v1.book_requests import router as book_requests_router
from openbookcorner.api.v1.books import router as books_router
from openbookcorner.api.v1.borrows import router as borrows_router
from openbookcorner.api.v1.donations import router as donations_router
from openbookcorner.api.v1.health import router as health_router
from openbookcorner.api.v1.libraries import router as libraries_router
from openbookcorner.api.v1.stats import router as stats_router
from openbookcorner.api.v1.users import router as users_router
from openbookcorner.core.config import settings
from openbookcorner.core.logging import setup_logging

logger = logging.getLogger(__name__)

_TAG_METADATA: list[dict[str, Any]] = [
    {
        "name": "health",
        "description": "Server liveness probe. No authentication required.",
    },
    {
        "name": "auth",
        "description": (
            "Passwordless sign-in. Request a six-digit code by email, exchange it at "
            "`/auth/verify` for a Bearer token, and pass it in every protected request:\n\n"
            "```\nAuthorization: Bearer <token>\n```"
        ),
    },
    {
        "name": "libraries",
        "description": "Tenant management. Restricted to **Super Admins**.",
    },
    {
        "name": "users",
        "description": "Invite and manage the people of one library. **Library Admins** only.",
    },
    {
        "name": "books",
        "description": (
            "The library catalog.\n\n"
            "- **GET** endpoints are open to every member of the library.\n"
            "- **POST / PUT / DELETE** require the **Library Admin** role."
        ),
    },
    {
        "name": "borrows",
        "description": (
            "Borrow, return and renew.\n\n"
            "> **Business rule:** a copy can be out to at most one reader at a time, "
            "and readers with overdue books cannot borrow more."
        ),
    },
    {"name": "book requests", "description": "Readers ask the library to acquire titles."},
    {"name": "donations", "description": "Readers offer their own copies to the library."},
    {"name": "stats", "description": "Dashboard counters for Library Admins."},
]

_APP_DESCRIPTION = """\
**OpenBookCorner** — lending for office book corners, one isolated library per organisation.

## Roles & Permissions

| Role | Capabilities |
|------|--------------|
| **Super Admin** | Create and manage libraries and their admins; act in any library via `X-Library-Id` |
| **Library Admin** | Manage the catalog, users, requests and donations of their library |
| **Reader** | Browse, borrow, return and renew; request and donate books |

Every request is scoped to the caller's library. Records belonging to another library
are reported as `404 Not Found`.
"""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("OpenBookCorner %s starting (%s)", __version__, settings.APP_ENV)
    yield


app = FastAPI(
    title="OpenBookCorner",
    description=_APP_DESCRIPTION,
    version=__version__,
    openapi_tags=_TAG_METADATA,
    license_info={"name": "MIT"},
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(libraries_router)
app.include_router(users_router)
app.include_router(books_router)
app.include_router(borrows_router)
app.include_router(book_requests_router)
app.include_router(donations_router)
app.include_router(stats_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Custom OpenAPI schema: registers the BearerAuth security scheme so the
# "Authorize" button works in Swagger UI and ReDoc.
# ---------------------------------------------------------------------------


def _custom_openapi() -> dict[str, Any]:
    if app.openapi_schema:
        return app.openapi_schema  # type: ignore[return-value]

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        tags=app.openapi_tags,
        license_info=app.license_info,
        routes=app.routes,
    )

    schema.setdefault("components", {}).setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "Access token returned by `POST /api/v1/auth/verify`.",
    }

    app.openapi_schema = schema  # type: ignore[assignment]
    return schema  # type: ignore[return-value]


app.openapi = _custom_openapi  # type: ignore[method-assign]
