import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, get_current_user, require_admin
from openbookcorner.db.session import get_db
from openbookcorner.models.book_request import RequestStatus
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.book_request import (
    BookRequestCreate,
    BookRequestDecision,
    BookRequestResponse,
)
from openbookcorner.services.book_request import (
    create_request,
    decide_request,
    list_requests,
    withdraw_request,
)

router = APIRouter(prefix="/api/v1/book-requests", tags=["book requests"])


@router.post(
    "",
    response_model=BookRequestResponse,
    status_code=201,
    summary="Request a book",
    description="Ask the library to acquire a title. Any member of the library may ask.",
)
async def create_request_endpoint(
    data: BookRequestCreate,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookRequestResponse:
    request = await create_request(db, library, data, current_user=current_user)
    return BookRequestResponse.model_validate(request)


@router.get(
    "",
    response_model=list[BookRequestResponse],
    summary="List book requests",
    description="Readers see their own requests; admins see all requests in the library.",
)
async def list_requests_endpoint(
    status: RequestStatus | None = Query(None),
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> list[BookRequestResponse]:
    requests = await list_requests(db, library, current_user=current_user, status=status)
    return [BookRequestResponse.model_validate(r) for r in requests]


@router.patch(
    "/{request_id}",
    response_model=BookRequestResponse,
    dependencies=[require_admin],
    summary="Decide a book request",
    description=(
        "Moves a request along `PENDING → APPROVED → FULFILLED`, or rejects it. "
        "The requester is emailed the outcome."
    ),
    responses={
        404: {"description": "Request not found in this library."},
        409: {"description": "Transition not allowed from the current status."},
    },
)
async def decide_request_endpoint(
    request_id: uuid.UUID,
    data: BookRequestDecision,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BookRequestResponse:
    request = await decide_request(db, library, request_id, data)
    return BookRequestResponse.model_validate(request)


@router.delete(
    "/{request_id}",
    status_code=204,
    summary="Withdraw a book request",
    description="The requester may withdraw their own request while it is still pending.",
    responses={
        403: {"description": "Not your request."},
        404: {"description": "Request not found in this library."},
        409: {"description": "The request has already been decided."},
    },
)
async def withdraw_request_endpoint(
    request_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> None:
    await withdraw_request(db, library, request_id, current_user=current_user)
