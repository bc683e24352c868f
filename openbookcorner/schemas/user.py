import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from openbookcorner.models.user import UserRole

_EXAMPLE_USER_ID = "1b2c3d4e-5f6a-7b8c-9d0e-1f2a3b4c5d6e"
_EXAMPLE_LIBRARY_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


class UserResponse(BaseModel):
    id: uuid.UUID = Field(..., description="Unique user identifier (UUID v4).")
    email: str = Field(..., description="Login email address.")
    name: str = Field(..., description="Display name.")
    role: UserRole = Field(
        ...,
        description="RBAC role: `SUPER_ADMIN` | `LIBRARY_ADMIN` | `READER`.",
    )
    library_id: uuid.UUID | None = Field(
        None, description="Library the user belongs to. `null` for super admins."
    )
    is_active: bool = Field(..., description="Deactivated users cannot sign in.")
    email_verified_at: datetime | None = Field(
        None, description="When the user first signed in with an emailed code."
    )
    created_at: datetime = Field(..., description="UTC timestamp when the account was created.")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": _EXAMPLE_USER_ID,
                "email": "alice@example.com",
                "name": "Alice Smith",
                "role": "READER",
                "library_id": _EXAMPLE_LIBRARY_ID,
                "is_active": True,
                "email_verified_at": "2024-01-10T08:05:00Z",
                "created_at": "2024-01-10T08:00:00Z",
            }
        },
    )


def normalize_email(value: str) -> str:
    return value.strip().lower()


class UserInvite(BaseModel):
    email: EmailStr = Field(..., description="Email the invitation and sign-in codes go to.")
    name: str = Field(..., min_length=1, max_length=255, description="Display name.")
    role: UserRole = Field(
        UserRole.READER,
        description="`READER` (default) or `LIBRARY_ADMIN`. `SUPER_ADMIN` cannot be assigned here.",
    )

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("role")
    @classmethod
    def check_tenant_role(cls, value: UserRole) -> UserRole:
        if value == UserRole.SUPER_ADMIN:
            raise ValueError("SUPER_ADMIN cannot be assigned to a library user")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "bob@example.com", "name": "Bob Jones", "role": "READER"}
        }
    )


class AdminInvite(BaseModel):
    email: EmailStr = Field(..., description="Email of the new library admin.")
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return normalize_email(value)


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    role: UserRole | None = Field(None, description="`READER` or `LIBRARY_ADMIN`.")
    is_active: bool | None = Field(None, description="Set `false` to block sign-in.")

    @field_validator("role")
    @classmethod
    def check_tenant_role(cls, value: UserRole | None) -> UserRole | None:
        if value == UserRole.SUPER_ADMIN:
            raise ValueError("SUPER_ADMIN cannot be assigned to a library user")
        return value

    model_config = ConfigDict(json_schema_extra={"example": {"role": "LIBRARY_ADMIN"}})
