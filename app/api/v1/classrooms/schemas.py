from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.core.schemas import CamelModel


class ClassroomCreate(CamelModel):
    school_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    capacity: Optional[int] = Field(None, ge=1, le=500)
    resources: Optional[List[str]] = None


class ClassroomLookup(CamelModel):
    classroom_id: UUID


class ClassroomFilter(CamelModel):
    school_id: Optional[UUID] = None


class ClassroomUpdate(CamelModel):
    classroom_id: UUID
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    capacity: Optional[int] = Field(None, ge=1, le=500)
    resources: Optional[List[str]] = None


class ClassroomResponse(CamelModel):
    id: UUID
    school_id: UUID
    school_name: Optional[str] = None
    name: str
    capacity: int
    resources: List[str]
    enrolled_count: int = 0
    is_active: bool
    created_at: datetime
    updated_at: datetime
