import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from openbookcorner.models.book_request import DonationStatus, RequestStatus
from openbookcorner.schemas.book import normalize_isbn


class BookRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    author: str | None = Field(None, max_length=255)
    isbn: str | None = Field(None, max_length=20)
    note: str | None = Field(None, max_length=2000, description="Why the reader wants it.")

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, value: str | None) -> str | None:
        return normalize_isbn(value)

    model_config = ConfigDict(
        json_schema_extra={"example": {"title": "Designing Data-Intensive Applications"}}
    )


class BookRequestDecision(BaseModel):
    status: RequestStatus = Field(
        ...,
        description=(
            "`APPROVED` or `REJECTED` from `PENDING`; "
            "`FULFILLED` or `REJECTED` from `APPROVED`."
        ),
    )
    admin_note: str | None = Field(None, max_length=2000)


class BookRequestResponse(BaseModel):
    id: uuid.UUID
    library_id: uuid.UUID
    user_id: uuid.UUID
    title: str
    author: str | None
    isbn: str | None
    note: str | None
    status: RequestStatus
    admin_note: str | None
    created_at: datetime
    decided_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class DonationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str | None = Field(
        None,
        max_length=20,
        description="When it matches a catalog book, accepted copies are added to that book.",
    )
    quantity: int = Field(1, ge=1, le=100)
    note: str | None = Field(None, max_length=2000)

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, value: str | None) -> str | None:
        return normalize_isbn(value)


class DonationReject(BaseModel):
    admin_note: str | None = Field(None, max_length=2000)


class DonationResponse(BaseModel):
    id: uuid.UUID
    library_id: uuid.UUID
    user_id: uuid.UUID
    title: str
    author: str
    isbn: str | None
    quantity: int
    note: str | None
    status: DonationStatus
    admin_note: str | None
    book_id: uuid.UUID | None = Field(None, description="Catalog book the copies went to.")
    created_at: datetime
    decided_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
