"""Account DTOs for the Service Layer.

Frozen pydantic v2 models built by the views from ``request.data``.
Validation errors surface as 400 responses through the API exception
handler.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from modules.accounts.constants import PASSWORD_MIN_LENGTH, PASSWORD_RULES


def check_password_strength(value: str) -> str:
    """Apply the storefront password policy; returns the password unchanged."""
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long."
        )
    for pattern, message in PASSWORD_RULES:
        if not pattern.search(value):
            raise ValueError(message)
    return value


def _normalize_email(value: str) -> str:
    return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class RegisterDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    email: EmailStr
    password: str
    first_name: str
    last_name: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("first_name")
    @classmethod
    def first_name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("First name is required.")
        return v


class LoginDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class EmailDTO(BaseModel):
    """Body of resend-verification and forgot-password requests."""

    model_config = ConfigDict(frozen=True)

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResetPasswordDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return check_password_strength(v)


class ChangePasswordDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return check_password_strength(v)


# ---------------------------------------------------------------------------
# Profile / addresses
# ---------------------------------------------------------------------------


class UpdateProfileDTO(BaseModel):
    """Partial profile update; ``None`` leaves a field untouched."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class AddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str
    line1: str
    city: str
    zip_code: str
    line2: str = ""
    state: str = ""
    country: str = "US"
    phone: str = ""
    label: str = ""
    is_default: bool = False

    @field_validator("name", "line1", "city", "zip_code")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("This field may not be blank.")
        return v


class UpdateAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    label: Optional[str] = None
    is_default: Optional[bool] = None
