from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.core.schemas import CamelModel


class StudentCreate(CamelModel):
    school_id: UUID
    classroom_id: Optional[UUID] = None
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    date_of_birth: Optional[date] = None


class StudentLookup(CamelModel):
    student_id: UUID


class StudentFilter(CamelModel):
    school_id: Optional[UUID] = None
    classroom_id: Optional[UUID] = None


class StudentUpdate(CamelModel):
    student_id: UUID
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    date_of_birth: Optional[date] = None


class StudentEnroll(CamelModel):
    student_id: UUID
    classroom_id: UUID


class StudentTransfer(CamelModel):
    student_id: UUID
    target_school_id: UUID
    target_classroom_id: Optional[UUID] = None


class StudentResponse(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    date_of_birth: Optional[date] = None
    school_id: UUID
    school_name: Optional[str] = None
    classroom_id: Optional[UUID] = None
    classroom_name: Optional[str] = None
    enrollment_date: datetime
    is_active: bool
    created_at: datetime
    updated_at: datetime
