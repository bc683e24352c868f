import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.auth.dependencies import get_current_library, get_current_user
from openbookcorner.db.session import get_db
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.borrow import (
    BorrowCreate,
    BorrowFilter,
    BorrowListResponse,
    BorrowResponse,
)
from openbookcorner.services.borrow import borrow_book, list_borrows, renew_borrow, return_book

router = APIRouter(prefix="/api/v1/borrows", tags=["borrows"])

_AUTH_RESPONSES: dict = {
    401: {"description": "Missing, invalid, or expired Bearer token."},
}
_ACTIVE_BORROW_RESPONSES: dict = {
    **_AUTH_RESPONSES,
    403: {"description": "Forbidden — readers may only act on their own borrows."},
    404: {"description": "Borrow not found or already returned."},
}


@router.post(
    "",
    response_model=BorrowResponse,
    status_code=201,
    summary="Borrow a book",
    description=(
        "Takes one copy off the shelf and starts a borrow due in the library's "
        "`loan_period_days`.\n\n"
        "**Business rules (checked in this order):**\n"
        "- The borrower must have no overdue books.\n"
        "- The borrower must be below the library's `max_active_borrows`.\n"
        "- The borrower must not already hold a copy of this book.\n"
        "- A copy must be available. Copies are claimed atomically, so two users can "
        "never take the last copy at the same time.\n\n"
        "Library admins may pass `user_id` to lend a book to someone at the shelf."
    ),
    responses={
        **_AUTH_RESPONSES,
        403: {"description": "A reader tried to borrow on behalf of someone else."},
        404: {"description": "Book (or borrower) not found in this library."},
        409: {"description": "Overdue books, borrow limit, already holding, or no copies left."},
    },
)
async def borrow_endpoint(
    body: BorrowCreate,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BorrowResponse:
    borrow = await borrow_book(
        db, library, book_id=body.book_id, current_user=current_user, user_id=body.user_id
    )
    return BorrowResponse.model_validate(borrow)


@router.post(
    "/{borrow_id}/return",
    response_model=BorrowResponse,
    summary="Return a book",
    description="Closes an active borrow and puts the copy back on the shelf.",
    responses={**_ACTIVE_BORROW_RESPONSES},
)
async def return_endpoint(
    borrow_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BorrowResponse:
    borrow = await return_book(db, library, borrow_id=borrow_id, current_user=current_user)
    return BorrowResponse.model_validate(borrow)


@router.post(
    "/{borrow_id}/renew",
    response_model=BorrowResponse,
    summary="Renew a borrow",
    description=(
        "Pushes the due date back by another loan period. Overdue borrows cannot be "
        "renewed, and each borrow may be renewed at most `max_renewals` times."
    ),
    responses={
        **_ACTIVE_BORROW_RESPONSES,
        409: {"description": "Borrow is overdue or the renewal limit is reached."},
    },
)
async def renew_endpoint(
    borrow_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BorrowResponse:
    borrow = await renew_borrow(db, library, borrow_id=borrow_id, current_user=current_user)
    return BorrowResponse.model_validate(borrow)


@router.get(
    "",
    response_model=BorrowListResponse,
    summary="List borrows",
    description=(
        "Returns a paginated list of borrows, newest first.\n\n"
        "- **Readers** see only their **own** borrows.\n"
        "- **Admins** see every borrow in the library and may filter by `user_id`."
    ),
    responses={**_AUTH_RESPONSES},
)
async def list_borrows_endpoint(
    status: BorrowFilter | None = Query(None, description="`active`, `returned` or `overdue`."),
    user_id: uuid.UUID | None = Query(None, description="Admins only: borrows of one user."),
    page: int = Query(1, ge=1, description="Page number (1-based)."),
    page_size: int = Query(20, ge=1, le=100, description="Items per page (1–100)."),
    current_user: User = Depends(get_current_user),
    library: Library = Depends(get_current_library),
    db: AsyncSession = Depends(get_db),
) -> BorrowListResponse:
    borrows, total = await list_borrows(
        db,
        library,
        current_user=current_user,
        status=status,
        user_id=user_id,
        page=page,
        page_size=page_size,
    )
    return BorrowListResponse(
        items=[BorrowResponse.model_validate(b) for b in borrows],
        total=total,
    )
