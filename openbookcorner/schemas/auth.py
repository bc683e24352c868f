from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from openbookcorner.schemas.user import normalize_email


class CodeRequest(BaseModel):
    email: EmailStr = Field(..., description="Email address to send the sign-in code to.")

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return normalize_email(value)

    model_config = ConfigDict(json_schema_extra={"example": {"email": "alice@example.com"}})


class CodeVerify(BaseModel):
    email: EmailStr = Field(..., description="Same address the code was requested for.")
    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="Six-digit code from the sign-in email.",
    )

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return normalize_email(value)

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "alice@example.com", "code": "042917"}}
    )


class CodeRequestAccepted(BaseModel):
    detail: str = Field(
        "If this address belongs to an active account, a sign-in code has been sent.",
        description="Identical for known and unknown addresses.",
    )


class TokenResponse(BaseModel):
    access_token: str = Field(
        ...,
        description=(
            "JWT Bearer token. Include it in subsequent requests as:\n\n"
            "`Authorization: Bearer <access_token>`"
        ),
        examples=["eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."],
    )
    token_type: str = Field("bearer", description='Token scheme. Always `"bearer"`.')
    expires_at: datetime = Field(..., description="UTC expiry of the token and its session.")
