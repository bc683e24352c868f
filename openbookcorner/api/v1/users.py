import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, get_current_user, require_admin
from openbookcorner.db.session import get_db
from openbookcorner.models.library import Library
from openbookcorner.models.user import User, UserRole
from openbookcorner.schemas.user import UserInvite, UserResponse, UserUpdate
from openbookcorner.services.user import invite_library_user, list_users, update_user

router = APIRouter(prefix="/api/v1/users", tags=["users"], dependencies=[require_admin])

_ADMIN_RESPONSES: dict = {
    401: {"description": "Missing, invalid, or expired Bearer token."},
    403: {"description": "Forbidden — Library Admin role required."},
}


@router.get(
    "",
    response_model=list[UserResponse],
    summary="List library users",
    description="Every account in the current library, ordered by name.",
    responses={**_ADMIN_RESPONSES},
)
async def list_users_endpoint(
    role: UserRole | None = Query(None, description="Only users with this role."),
    is_active: bool | None = Query(None, description="Only active (or deactivated) users."),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> list[UserResponse]:
    users = await list_users(db, library, role=role, is_active=is_active)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    summary="Invite a user",
    description=(
        "Creates a `READER` or `LIBRARY_ADMIN` account in the current library and emails "
        "an invitation. The user signs in with an emailed code; there are no passwords."
    ),
    responses={
        **_ADMIN_RESPONSES,
        409: {"description": "A user with this email already exists."},
        422: {"description": "Validation error — e.g. `SUPER_ADMIN` role requested."},
    },
)
async def invite_user_endpoint(
    data: UserInvite,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await invite_library_user(db, library, data, invited_by=current_user)
    return UserResponse.model_validate(user)


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    description=(
        "Rename, promote/demote between `READER` and `LIBRARY_ADMIN`, or (de)activate a "
        "user. Admins cannot change their own role or deactivate themselves."
    ),
    responses={
        **_ADMIN_RESPONSES,
        404: {"description": "User not found in this library."},
        409: {"description": "Self-demotion or self-deactivation attempted."},
    },
)
async def update_user_endpoint(
    user_id: uuid.UUID,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await update_user(db, library, user_id, data, current_user=current_user)
    return UserResponse.model_validate(user)
