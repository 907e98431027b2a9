# src/bulk_stage/schemas/account.py
"""Account, authentication and profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from bulk_stage.models import AccountKind

HANDLE_PATTERN = r"^[A-Za-z0-9_.-]+$"


class AccountRegister(BaseModel):
    """Schema for registering a new account.

    ``kind`` accepts the stable values and the legacy ``OG``/``CREW`` labels.
    """

    email: EmailStr
    handle: str = Field(..., min_length=3, max_length=32, pattern=HANDLE_PATTERN)
    display_name: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=8, max_length=72)
    kind: AccountKind = AccountKind.STANDARD

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return AccountKind.from_label(value)
            except ValueError as exc:
                raise ValueError(f"Unknown account kind: {value}") from exc
        return value


class LoginRequest(BaseModel):
    """Credentials; ``identifier`` is either the email or the handle."""

    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AccountResponse(BaseModel):
    """Private view of the authenticated account."""

    id: int
    email: str
    handle: str
    display_name: str
    bio: str | None = None
    avatar_url: str | None = None
    kind: AccountKind
    legacy_kind: str = ""
    created_at: datetime

    @model_validator(mode="after")
    def _fill_legacy_kind(self) -> "AccountResponse":
        self.legacy_kind = self.kind.legacy_label
        return self

    model_config = ConfigDict(from_attributes=True, validate_assignment=False)


class PublicProfile(BaseModel):
    """Public view of an account."""

    id: int
    handle: str
    display_name: str
    bio: str | None = None
    avatar_url: str | None = None
    kind: AccountKind
    legacy_kind: str = ""
    created_at: datetime
    created_communities: int = 0
    memberships: int = 0
    posts: int = 0

    @model_validator(mode="after")
    def _fill_legacy_kind(self) -> "PublicProfile":
        self.legacy_kind = self.kind.legacy_label
        return self

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """Access token issued after registration or login."""

    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class ProfileUpdate(BaseModel):
    """Partial profile update; omitted fields stay unchanged."""

    handle: str | None = Field(None, min_length=3, max_length=32, pattern=HANDLE_PATTERN)
    display_name: str | None = Field(None, min_length=1, max_length=80)
    bio: str | None = Field(None, max_length=500)
