import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

_SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class LibraryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Acme Berlin Office"])
    slug: str = Field(
        ...,
        min_length=2,
        max_length=100,
        pattern=_SLUG_PATTERN,
        description="URL-safe unique identifier (lowercase letters, digits, hyphens).",
        examples=["acme-berlin"],
    )
    loan_period_days: int | None = Field(
        None, ge=1, le=365, description="Days until a borrow is due. Defaults to server setting."
    )
    max_active_borrows: int | None = Field(
        None, ge=1, le=100, description="Books a reader may hold at once."
    )
    max_renewals: int | None = Field(None, ge=0, le=10, description="Renewals per borrow.")


class LibraryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    loan_period_days: int | None = Field(None, ge=1, le=365)
    max_active_borrows: int | None = Field(None, ge=1, le=100)
    max_renewals: int | None = Field(None, ge=0, le=10)
    is_active: bool | None = Field(
        None, description="Deactivated libraries reject all non-super-admin requests."
    )


class LibraryResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    loan_period_days: int
    max_active_borrows: int
    max_renewals: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LibraryStats(BaseModel):
    titles: int = Field(..., description="Distinct books in the catalog.")
    copies: int = Field(..., description="Total copies owned.")
    copies_out: int = Field(..., description="Copies currently borrowed.")
    active_borrows: int
    overdue_borrows: int
    active_readers: int = Field(..., description="Active users with the READER role.")
    pending_requests: int
    pending_donations: int
