from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel

from app.core.schemas import CamelModel

# Passwords are taken verbatim, surrounding whitespace included
NewPassword = Annotated[str, StringConstraints(strip_whitespace=False, min_length=8, max_length=128)]


class AccountClaims(BaseModel):
    """Decoded account (long) token: proves identity, only used to mint sessions."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: UUID
    user_key: str


class SessionClaims(BaseModel):
    """Decoded session (short) token carried by every authenticated request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: UUID
    user_key: str
    role: str
    school_id: Optional[UUID] = None
    session_id: str
    device_id: str


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: NewPassword
    role: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: Annotated[str, StringConstraints(strip_whitespace=False, min_length=1)]


class SchoolAdminCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: NewPassword
    school_id: UUID


class UserResponse(CamelModel):
    """Safe account representation; never carries the password hash."""

    id: UUID
    username: str
    email: str
    role: str
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
