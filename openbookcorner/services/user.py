import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.core.config import settings
from openbookcorner.models.library import Library
from openbookcorner.models.user import User, UserRole
from openbookcorner.schemas.user import UserInvite, UserUpdate
from openbookcorner.services.email import notify

logger = logging.getLogger(__name__)

_ROLE_LABELS = {
    UserRole.SUPER_ADMIN: "a super admin",
    UserRole.LIBRARY_ADMIN: "a library admin",
    UserRole.READER: "a reader",
}


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    return await db.scalar(select(User).where(User.email == email.strip().lower()))


async def get_library_user(db: AsyncSession, library: Library, user_id: uuid.UUID) -> User:
    user = await db.scalar(select(User).where(User.id == user_id, User.library_id == library.id))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def list_users(
    db: AsyncSession,
    library: Library,
    *,
    role: UserRole | None = None,
    is_active: bool | None = None,
) -> list[User]:
    stmt = select(User).where(User.library_id == library.id)
    if role is not None:
        stmt = stmt.where(User.role == role)
    if is_active is not None:
        stmt = stmt.where(User.is_active == is_active)
    result = await db.scalars(stmt.order_by(User.name))
    return list(result.all())


async def invite_user(
    db: AsyncSession,
    library: Library,
    *,
    email: str,
    name: str,
    role: UserRole,
    invited_by: User,
) -> User:
    user = User(email=email, name=name, role=role, library_id=library.id)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A user with this email already exists")
    await db.refresh(user)
    logger.info("User %s invited to library %s as %s", user.email, library.slug, role.value)

    await notify(
        to=user.email,
        template="invitation",
        context={
            "name": user.name,
            "inviter_name": invited_by.name,
            "library_name": library.name,
            "role_label": _ROLE_LABELS[role],
            "login_url": f"{settings.FRONTEND_URL}/login",
        },
    )
    return user


async def invite_library_user(
    db: AsyncSession, library: Library, data: UserInvite, invited_by: User
) -> User:
    return await invite_user(
        db, library, email=data.email, name=data.name, role=data.role, invited_by=invited_by
    )


async def update_user(
    db: AsyncSession,
    library: Library,
    user_id: uuid.UUID,
    data: UserUpdate,
    *,
    current_user: User,
) -> User:
    user = await get_library_user(db, library, user_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    if user.id == current_user.id:
        if update_data.get("is_active") is False:
            raise HTTPException(status_code=409, detail="You cannot deactivate yourself")
        if update_data.get("role", user.role) != user.role:
            raise HTTPException(status_code=409, detail="You cannot change your own role")

    for field, value in update_data.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return user
