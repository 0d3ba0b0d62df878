from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.core.schemas import CamelModel


class SchoolCreate(CamelModel):
    name: str = Field(..., min_length=3, max_length=100)
    address: str = Field(..., min_length=1, max_length=500)
    phone: Optional[str] = Field(None, max_length=20)
    email: EmailStr


class SchoolLookup(CamelModel):
    school_id: UUID


class SchoolUpdate(CamelModel):
    school_id: UUID
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None


class SchoolResponse(CamelModel):
    id: UUID
    name: str
    address: str
    phone: Optional[str] = None
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
