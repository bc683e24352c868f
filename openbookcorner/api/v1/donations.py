import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, get_current_user, require_admin
from openbookcorner.db.session import get_db
from openbookcorner.models.book_request import DonationStatus
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.book_request import DonationCreate, DonationReject, DonationResponse
from openbookcorner.services.donation import (
    accept_donation,
    create_donation,
    list_donations,
    reject_donation,
)

router = APIRouter(prefix="/api/v1/donations", tags=["donations"])

_DECISION_RESPONSES: dict = {
    403: {"description": "Forbidden — Library Admin role required."},
    404: {"description": "Donation not found in this library."},
    409: {"description": "Donation has already been decided."},
}


@router.post(
    "",
    response_model=DonationResponse,
    status_code=201,
    summary="Offer a donation",
)
async def create_donation_endpoint(
    data: DonationCreate,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> DonationResponse:
    donation = await create_donation(db, library, data, current_user=current_user)
    return DonationResponse.model_validate(donation)


@router.get(
    "",
    response_model=list[DonationResponse],
    summary="List donations",
    description="Readers see their own offers; admins see all offers in the library.",
)
async def list_donations_endpoint(
    status: DonationStatus | None = Query(None),
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> list[DonationResponse]:
    donations = await list_donations(db, library, current_user=current_user, status=status)
    return [DonationResponse.model_validate(d) for d in donations]


@router.post(
    "/{donation_id}/accept",
    response_model=DonationResponse,
    dependencies=[require_admin],
    summary="Accept a donation",
    description=(
        "Adds the donated copies to the catalog. If a book with the same ISBN exists "
        "its copy count grows; otherwise a new book is created."
    ),
    responses={**_DECISION_RESPONSES},
)
async def accept_donation_endpoint(
    donation_id: uuid.UUID,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> DonationResponse:
    donation = await accept_donation(db, library, donation_id)
    return DonationResponse.model_validate(donation)


@router.post(
    "/{donation_id}/reject",
    response_model=DonationResponse,
    dependencies=[require_admin],
    summary="Reject a donation",
    responses={**_DECISION_RESPONSES},
)
async def reject_donation_endpoint(
    donation_id: uuid.UUID,
    body: DonationReject,
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> DonationResponse:
    donation = await reject_donation(db, library, donation_id, body.admin_note)
    return DonationResponse.model_validate(donation)
