import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_isbn(value: str | None) -> str | None:
    """Treat a blank ISBN as no ISBN."""
    if value is None:
        return None
    return value.strip() or None


_EXAMPLE_BOOK = {
    "title": "The Pragmatic Programmer",
    "author": "David Thomas",
    "isbn": "9780135957059",
    "description": "Timeless advice for software developers.",
    "quantity": 2,
}


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Book title.")
    author: str = Field(
        ..., min_length=1, max_length=255, description="Full name of the primary author."
    )
    isbn: str | None = Field(
        None,
        max_length=20,
        description="ISBN-10 or ISBN-13. Must be unique within the library if provided.",
    )
    description: str | None = Field(None, description="Short synopsis or notes.")
    quantity: int = Field(1, ge=1, le=1000, description="Number of copies on the shelf.")

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, value: str | None) -> str | None:
        return normalize_isbn(value)

    model_config = ConfigDict(json_schema_extra={"example": _EXAMPLE_BOOK})


class BookUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    author: str | None = Field(None, min_length=1, max_length=255)
    isbn: str | None = Field(None, max_length=20)
    description: str | None = None
    quantity: int | None = Field(
        None,
        ge=1,
        le=1000,
        description="New copy count. Cannot drop below the number of copies currently borrowed.",
    )

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, value: str | None) -> str | None:
        return normalize_isbn(value)

    model_config = ConfigDict(json_schema_extra={"example": {"quantity": 3}})


class BookResponse(BaseModel):
    id: uuid.UUID = Field(..., description="Unique book identifier (UUID v4).")
    library_id: uuid.UUID
    title: str
    author: str
    isbn: str | None = None
    description: str | None = None
    quantity: int = Field(..., description="Copies owned.")
    available_quantity: int = Field(..., description="Copies on the shelf right now.")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "library_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                **_EXAMPLE_BOOK,
                "available_quantity": 1,
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-15T10:30:00Z",
            }
        },
    )


class BookListResponse(BaseModel):
    items: list[BookResponse] = Field(..., description="Books on the current page.")
    total: int = Field(..., description="Total number of books matching the current filters.")
    page: int = Field(..., description="Current page number (1-based).")
    page_size: int = Field(..., description="Maximum items returned per page.")
    pages: int = Field(..., description="Total number of pages.")
