# telecare/modules/users/schemas.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    SecretStr,
    StringConstraints,
    model_validator,
)


class Role(str, Enum):
    patient = "patient"
    doctor = "doctor"
    admin = "admin"


def _lower_email(value):
    return value.strip().lower() if isinstance(value, str) else value


Email = Annotated[EmailStr, BeforeValidator(_lower_email)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Phone = Annotated[str, StringConstraints(pattern=r"^\+?[1-9]\d{1,14}$")]  # E.164
Password = Annotated[SecretStr, Field(description="8-64 chars, at least one letter and one digit")]


class RegisterRequest(BaseModel):
    """Self-service sign-up for patients and doctors."""

    email: Email
    password: Password
    first_name: Name
    last_name: Name
    role: Role = Role.patient
    phone: Optional[Phone] = None
    specialization: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _check_password_and_role(self):
        secret = self.password.get_secret_value()
        if not 8 <= len(secret) <= 64:
            raise ValueError("password must be 8-64 characters")
        if not (any(c.isalpha() for c in secret) and any(c.isdigit() for c in secret)):
            raise ValueError("password needs at least one letter and one digit")
        if self.role is Role.admin:
            raise ValueError("admin accounts cannot be self-registered")
        return self


class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    role: Role
    first_name: str
    last_name: str
    phone: Optional[str] = None
    specialization: Optional[str] = None
    is_active: bool
    created_at: datetime


class UserSummary(BaseModel):
    """Party shown on an appointment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    specialization: Optional[str] = None


class LoginRequest(BaseModel):
    email: Email
    password: SecretStr


class TokenPair(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: str
