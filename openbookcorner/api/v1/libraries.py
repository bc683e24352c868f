import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_user, require_role
from openbookcorner.db.session import get_db
from openbookcorner.models.user import User, UserRole
from openbookcorner.schemas.library import LibraryCreate, LibraryResponse, LibraryUpdate
from openbookcorner.schemas.user import AdminInvite, UserResponse
from openbookcorner.services.library import (
    add_library_admin,
    create_library,
    get_library,
    list_libraries,
    update_library,
)

router = APIRouter(
    prefix="/api/v1/libraries",
    tags=["libraries"],
    dependencies=[require_role(UserRole.SUPER_ADMIN)],
)

_SUPER_ADMIN_RESPONSES: dict = {
    401: {"description": "Missing, invalid, or expired Bearer token."},
    403: {"description": "Forbidden — Super Admin role required."},
}
_NOT_FOUND_RESPONSE: dict = {404: {"description": "Library not found."}}


@router.get(
    "",
    response_model=list[LibraryResponse],
    summary="List libraries",
    responses={**_SUPER_ADMIN_RESPONSES},
)
async def list_libraries_endpoint(db: AsyncSession = Depends(get_db)) -> list[LibraryResponse]:
    libraries = await list_libraries(db)
    return [LibraryResponse.model_validate(library) for library in libraries]


@router.post(
    "",
    response_model=LibraryResponse,
    status_code=201,
    summary="Create a library",
    description=(
        "Creates a new tenant. Loan policy fields left out fall back to the server "
        "defaults (`DEFAULT_LOAN_PERIOD_DAYS`, `DEFAULT_MAX_ACTIVE_BORROWS`, "
        "`DEFAULT_MAX_RENEWALS`)."
    ),
    responses={
        **_SUPER_ADMIN_RESPONSES,
        409: {"description": "A library with this slug already exists."},
    },
)
async def create_library_endpoint(
    data: LibraryCreate,
    db: AsyncSession = Depends(get_db),
) -> LibraryResponse:
    library = await create_library(db, data)
    return LibraryResponse.model_validate(library)


@router.get(
    "/{library_id}",
    response_model=LibraryResponse,
    summary="Get a library",
    responses={**_SUPER_ADMIN_RESPONSES, **_NOT_FOUND_RESPONSE},
)
async def get_library_endpoint(
    library_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> LibraryResponse:
    library = await get_library(db, library_id)
    return LibraryResponse.model_validate(library)


@router.patch(
    "/{library_id}",
    response_model=LibraryResponse,
    summary="Update a library",
    description="Rename a library, change its loan policy, or (de)activate it.",
    responses={**_SUPER_ADMIN_RESPONSES, **_NOT_FOUND_RESPONSE},
)
async def update_library_endpoint(
    library_id: uuid.UUID,
    data: LibraryUpdate,
    db: AsyncSession = Depends(get_db),
) -> LibraryResponse:
    library = await update_library(db, library_id, data)
    return LibraryResponse.model_validate(library)


@router.post(
    "/{library_id}/admins",
    response_model=UserResponse,
    status_code=201,
    summary="Add a library admin",
    description="Creates a `LIBRARY_ADMIN` account in the library and emails an invitation.",
    responses={
        **_SUPER_ADMIN_RESPONSES,
        **_NOT_FOUND_RESPONSE,
        409: {"description": "A user with this email already exists."},
    },
)
async def add_library_admin_endpoint(
    library_id: uuid.UUID,
    data: AdminInvite,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await add_library_admin(db, library_id, data, invited_by=current_user)
    return UserResponse.model_validate(user)
