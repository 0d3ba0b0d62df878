"""School-scoped classrooms with a seat capacity."""
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Uuid, text

from app.core.models.school import _utcnow
from app.db.session import Base

DEFAULT_CAPACITY = 30


class Classroom(Base):
    """Classroom owned by one school. (name, school_id) is unique among active rows."""

    __tablename__ = "classrooms"
    __table_args__ = (
        Index(
            "uq_classroom_school_name_active",
            "school_id",
            "name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False, default=DEFAULT_CAPACITY)
    # Ordered list of resource labels, e.g. ["Projector", "Whiteboard"]
    resources = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
