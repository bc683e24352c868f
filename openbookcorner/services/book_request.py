import logging
import uuid

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from openbookcorner.db.base import utcnow
from openbookcorner.models.book_request import BookRequest, RequestStatus
from openbookcorner.models.library import Library
from openbookcorner.models.user import User
from openbookcorner.schemas.book_request import BookRequestCreate, BookRequestDecision
from openbookcorner.services.email import notify

logger = logging.getLogger(__name__)

# Allowed admin decisions from each state.
_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: {RequestStatus.FULFILLED, RequestStatus.REJECTED},
    RequestStatus.REJECTED: set(),
    RequestStatus.FULFILLED: set(),
}


async def create_request(
    db: AsyncSession, library: Library, data: BookRequestCreate, *, current_user: User
) -> BookRequest:
    request = BookRequest(library_id=library.id, user_id=current_user.id, **data.model_dump())
    db.add(request)
    await db.commit()
    await db.refresh(request)
    logger.info("Book request %s opened by user %s", request.id, current_user.id)
    return request


async def list_requests(
    db: AsyncSession,
    library: Library,
    *,
    current_user: User,
    status: RequestStatus | None = None,
) -> list[BookRequest]:
    stmt = select(BookRequest).where(BookRequest.library_id == library.id)
    if not current_user.is_admin:
        stmt = stmt.where(BookRequest.user_id == current_user.id)
    if status is not None:
        stmt = stmt.where(BookRequest.status == status)
    result = await db.scalars(stmt.order_by(BookRequest.created_at.desc(), BookRequest.id))
    return list(result.all())


async def get_request(db: AsyncSession, library: Library, request_id: uuid.UUID) -> BookRequest:
    request = await db.scalar(
        select(BookRequest).where(
            BookRequest.id == request_id, BookRequest.library_id == library.id
        )
    )
    if request is None:
        raise HTTPException(status_code=404, detail="Book request not found")
    return request


async def decide_request(
    db: AsyncSession, library: Library, request_id: uuid.UUID, data: BookRequestDecision
) -> BookRequest:
    request = await get_request(db, library, request_id)
    if data.status not in _TRANSITIONS[request.status]:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot move a {request.status.value} request to {data.status.value}",
        )

    request.status = data.status
    if data.admin_note is not None:
        request.admin_note = data.admin_note
    request.decided_at = utcnow()
    await db.commit()
    await db.refresh(request)
    logger.info("Book request %s is now %s", request.id, request.status.value)

    requester = await db.get(User, request.user_id)
    if requester is not None:
        await notify(
            to=requester.email,
            template="request_decision",
            context={
                "name": requester.name,
                "title": request.title,
                "library_name": library.name,
                "status_label": request.status.value.lower(),
                "admin_note": request.admin_note,
            },
        )
    return request


async def withdraw_request(
    db: AsyncSession, library: Library, request_id: uuid.UUID, *, current_user: User
) -> None:
    request = await get_request(db, library, request_id)
    if request.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Cannot withdraw another user's request")
    if request.status != RequestStatus.PENDING:
        raise HTTPException(status_code=409, detail="Only pending requests can be withdrawn")
    await db.delete(request)
    await db.commit()
