import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Uuid, text

from app.core.models.school import _utcnow
from app.db.session import Base


class Student(Base):
    """Student belonging to one school, optionally seated in one of its classrooms."""

    __tablename__ = "students"
    __table_args__ = (
        Index(
            "uq_student_email_active",
            "email",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    # Null when not enrolled; must belong to school_id when set
    classroom_id = Column(Uuid, ForeignKey("classrooms.id"), nullable=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    enrollment_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
