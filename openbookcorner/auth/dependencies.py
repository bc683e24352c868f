import uuid

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.jwt import decode_token
from openbookcorner.db.session import get_db
from openbookcorner.models.library import Library
from openbookcorner.models.session import UserSession
from openbookcorner.models.user import User, UserRole

security = HTTPBearer(auto_error=False)


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> UserSession:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(credentials.credentials)
        session_id = uuid.UUID(payload["sid"])
    except (JWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    session = await db.get(UserSession, session_id)
    if session is None or not session.is_valid():
        raise HTTPException(status_code=401, detail="Session expired or signed out")
    return session


async def get_current_user(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, session.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or deactivated")
    return user


def require_role(*roles: UserRole) -> Depends:
    async def _dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user

    return Depends(_dep)


require_admin = require_role(UserRole.LIBRARY_ADMIN, UserRole.SUPER_ADMIN)


async def get_current_library(
    x_library_id: str | None = Header(
        None, description="Library to act in. Required for super admins, ignored otherwise."
    ),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Library:
    """Resolve the tenant every scoped query is filtered by."""
    if current_user.role == UserRole.SUPER_ADMIN:
        if x_library_id is None:
            raise HTTPException(status_code=400, detail="X-Library-Id header is required")
        try:
            library_id = uuid.UUID(x_library_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="X-Library-Id must be a UUID")
        library = await db.get(Library, library_id)
        if library is None:
            raise HTTPException(status_code=404, detail="Library not found")
        return library

    library = await db.get(Library, current_user.library_id) if current_user.library_id else None
    if library is None:
        raise HTTPException(status_code=403, detail="User is not assigned to a library")
    if not library.is_active:
        raise HTTPException(status_code=403, detail="Library is deactivated")
    return library
