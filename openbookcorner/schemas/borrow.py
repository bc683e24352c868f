import enum
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from openbookcorner.models.borrow import BorrowStatus

_EXAMPLE_BOOK_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
_EXAMPLE_BORROW_ID = "8a1bc234-9876-4def-b3fc-1a2b3c4d5e6f"
_EXAMPLE_USER_ID = "1b2c3d4e-5f6a-7b8c-9d0e-1f2a3b4c5d6e"


class BorrowFilter(str, enum.Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"


class BorrowCreate(BaseModel):
    book_id: uuid.UUID = Field(..., description="Book to borrow. A copy must be available.")
    user_id: uuid.UUID | None = Field(
        None,
        description=(
            "Borrow on behalf of another user in the library. "
            "Library admins only; readers always borrow for themselves."
        ),
    )

    model_config = ConfigDict(json_schema_extra={"example": {"book_id": _EXAMPLE_BOOK_ID}})


class BorrowResponse(BaseModel):
    id: uuid.UUID = Field(..., description="Unique borrow identifier (UUID v4).")
    library_id: uuid.UUID
    book_id: uuid.UUID
    user_id: uuid.UUID
    borrowed_at: datetime
    due_date: datetime = Field(..., description="UTC timestamp the copy must be back by.")
    returned_at: datetime | None = Field(None, description="`null` while the copy is out.")
    status: BorrowStatus = Field(..., description="`BORROWED` or `RETURNED`.")
    renewal_count: int
    is_overdue: bool = Field(..., description="Still out and past its due date.")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": _EXAMPLE_BORROW_ID,
                "library_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "book_id": _EXAMPLE_BOOK_ID,
                "user_id": _EXAMPLE_USER_ID,
                "borrowed_at": "2024-01-20T09:00:00Z",
                "due_date": "2024-02-03T09:00:00Z",
                "returned_at": None,
                "status": "BORROWED",
                "renewal_count": 0,
                "is_overdue": False,
            }
        },
    )


class BorrowListResponse(BaseModel):
    items: list[BorrowResponse]
    total: int
