import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid

from app.core.models.school import _utcnow
from app.db.session import Base


class User(Base):
    """Account able to call the API: a superadmin or a school admin."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    # superadmin | school_admin
    role = Column(String(50), nullable=False)
    # Tenant for school_admin accounts; null for superadmins
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
