"""Passwordless sign-in: emailed one-time codes exchanged for a session-backed JWT."""

import logging
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.codes import generate_code, hash_code, verify_code
from openbookcorner.auth.jwt import create_access_token
from openbookcorner.core.config import settings
from openbookcorner.db.base import utcnow
from openbookcorner.models.library import Library
from openbookcorner.models.session import EmailVerificationCode, UserSession
from openbookcorner.models.user import User, UserRole
from openbookcorner.schemas.auth import TokenResponse
from openbookcorner.services.email import EmailDeliveryError, mailer
from openbookcorner.services.user import get_user_by_email

logger = logging.getLogger(__name__)

_INVALID_CODE = "Invalid or expired verification code"


async def _can_sign_in(db: AsyncSession, user: User | None) -> bool:
    if user is None or not user.is_active:
        return False
    if user.role == UserRole.SUPER_ADMIN:
        return True
    library = await db.get(Library, user.library_id) if user.library_id else None
    return library is not None and library.is_active


async def request_code(db: AsyncSession, email: str) -> None:
    """Issue and email a fresh code. Silent for unknown or blocked addresses."""
    user = await get_user_by_email(db, email)
    if not await _can_sign_in(db, user):
        logger.info("Sign-in code requested for unknown or inactive address")
        return

    code = generate_code()
    await db.execute(delete(EmailVerificationCode).where(EmailVerificationCode.email == user.email))
    db.add(
        EmailVerificationCode(
            email=user.email,
            code_hash=hash_code(user.email, code, settings.SECRET_KEY),
            expires_at=utcnow() + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
        )
    )
    await db.commit()

    try:
        await mailer.send(
            to=user.email,
            template="verification_code",
            context={
                "name": user.name,
                "code": code,
                "ttl_minutes": settings.VERIFICATION_CODE_TTL_MINUTES,
            },
        )
    except EmailDeliveryError as exc:
        logger.error("Could not deliver sign-in code: %s", exc)
        raise HTTPException(status_code=503, detail="Could not send the sign-in email")
    logger.info("Sign-in code issued for user %s", user.id)


async def verify_sign_in_code(db: AsyncSession, email: str, code: str) -> TokenResponse:
    now = utcnow()
    record = await db.scalar(
        select(EmailVerificationCode)
        .where(EmailVerificationCode.email == email)
        .order_by(EmailVerificationCode.created_at.desc())
        .limit(1)
    )
    if record is None or record.expires_at <= now:
        raise HTTPException(status_code=400, detail=_INVALID_CODE)

    if not verify_code(email, code, record.code_hash, settings.SECRET_KEY):
        record.attempts += 1
        if record.attempts >= settings.VERIFICATION_MAX_ATTEMPTS:
            await db.delete(record)
            logger.warning("Sign-in code for %s discarded after too many attempts", email)
        await db.commit()
        raise HTTPException(status_code=400, detail=_INVALID_CODE)

    await db.delete(record)
    user = await get_user_by_email(db, email)
    if not await _can_sign_in(db, user):
        await db.commit()
        raise HTTPException(status_code=400, detail=_INVALID_CODE)

    if user.email_verified_at is None:
        user.email_verified_at = now
    session = UserSession(
        user_id=user.id,
        expires_at=now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)

    token = create_access_token(
        {"sub": str(user.id), "sid": str(session.id)}, expires_at=session.expires_at
    )
    logger.info("User %s signed in (session %s)", user.id, session.id)
    return TokenResponse(access_token=token, expires_at=session.expires_at)


async def sign_out(db: AsyncSession, session: UserSession) -> None:
    session.revoked_at = utcnow()
    await db.commit()
