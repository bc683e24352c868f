from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_session, get_current_user
from openbookcorner.db.session import get_db
from openbookcorner.models.session import UserSession
from openbookcorner.models.user import User
from openbookcorner.schemas.auth import CodeRequest, CodeRequestAccepted, CodeVerify, TokenResponse
from openbookcorner.schemas.user import UserResponse
from openbookcorner.services.auth import request_code, sign_out, verify_sign_in_code

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

_AUTH_RESPONSES: dict = {
    401: {"description": "Missing, invalid, or expired Bearer token."},
}


@router.post(
    "/request-code",
    response_model=CodeRequestAccepted,
    status_code=202,
    summary="Email a sign-in code",
    description=(
        "Sends a six-digit, single-use sign-in code to the address if it belongs to an "
        "active account.\n\n"
        "The response is the same whether or not the address is known, so it cannot be "
        "used to discover accounts. Requesting a new code invalidates earlier ones."
    ),
    responses={503: {"description": "The email provider could not accept the message."}},
)
async def request_code_endpoint(
    body: CodeRequest,
    db: AsyncSession = Depends(get_db),
) -> CodeRequestAccepted:
    await request_code(db, body.email)
    return CodeRequestAccepted()


@router.post(
    "/verify",
    response_model=TokenResponse,
    summary="Exchange a sign-in code for a token",
    description=(
        "Verifies the emailed code and opens a session.\n\n"
        "Codes expire after `VERIFICATION_CODE_TTL_MINUTES` and are discarded after "
        "`VERIFICATION_MAX_ATTEMPTS` wrong guesses."
    ),
    responses={400: {"description": "Invalid or expired verification code."}},
)
async def verify_endpoint(
    body: CodeVerify,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    return await verify_sign_in_code(db, body.email, body.code)


@router.post(
    "/logout",
    status_code=204,
    summary="Sign out",
    description="Revokes the session behind the current token. The token stops working immediately.",
    responses={**_AUTH_RESPONSES},
)
async def logout_endpoint(
    session: UserSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
) -> None:
    await sign_out(db, session)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    responses={**_AUTH_RESPONSES},
)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
