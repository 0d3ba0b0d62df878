from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.classrooms import service as classroom_service
from app.api.v1.schools import service as school_service
from app.auth.rbac import require_access, require_superadmin, scope_payload
from app.auth.schemas import SessionClaims
from app.core.enums import Action, Resource, Role
from app.core.exceptions import conflict, not_found
from app.core.logging_config import get_logger
from app.core.models import Classroom, School, Student
from app.core.results import service_operation
from app.core.schemas import parse_payload, provided_fields, require_present

from .schemas import (
    StudentCreate,
    StudentEnroll,
    StudentFilter,
    StudentLookup,
    StudentResponse,
    StudentTransfer,
    StudentUpdate,
)

logger = get_logger(__name__)

FULL_CAPACITY = "Classroom is at full capacity"


def _student_to_response(
    s: Student,
    school_name: Optional[str] = None,
    classroom_name: Optional[str] = None,
) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        first_name=s.first_name,
        last_name=s.last_name,
        full_name=s.full_name,
        email=s.email,
        date_of_birth=s.date_of_birth,
        school_id=s.school_id,
        school_name=school_name,
        classroom_id=s.classroom_id,
        classroom_name=classroom_name,
        enrollment_date=s.enrollment_date,
        is_active=s.is_active,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _student_query():
    return (
        select(Student, School.name, Classroom.name)
        .join(School, School.id == Student.school_id)
        .outerjoin(Classroom, Classroom.id == Student.classroom_id)
        .where(Student.is_active.is_(True))
    )


async def _get_student_row(
    db: AsyncSession, student_id: UUID
) -> Optional[Tuple[Student, Optional[str], Optional[str]]]:
    row = (await db.execute(_student_query().where(Student.id == student_id))).first()
    return (row[0], row[1], row[2]) if row else None


async def _get_active_student(db: AsyncSession, student_id: UUID) -> Optional[Student]:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def _refreshed_response(db: AsyncSession, student_id: UUID) -> StudentResponse:
    student, school_name, classroom_name = await _get_student_row(db, student_id)
    return _student_to_response(student, school_name, classroom_name)


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(Student.id).where(Student.email == email, Student.is_active.is_(True))
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def _ensure_seat(
    db: AsyncSession,
    classroom: Classroom,
    student_id: Optional[UUID] = None,
    message: str = FULL_CAPACITY,
) -> None:
    """Reject when the classroom has no free seat (the student itself is not counted)."""
    enrolled = await classroom_service.count_enrolled(db, classroom.id, exclude_student_id=student_id)
    if enrolled >= classroom.capacity:
        raise conflict(message)


@service_operation
async def create_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    params = scope_payload(actor, payload, "Unauthorized to create students")
    require_present(params, "schoolId", message="School ID is required")
    data = parse_payload(StudentCreate, params)
    email = data.email.lower()

    school = await school_service.get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")
    require_access(actor, Resource.STUDENT, Action.CREATE, school.id, "Unauthorized to create students")

    if data.classroom_id is not None:
        classroom = await classroom_service.get_active_classroom(db, data.classroom_id)
        if not classroom:
            raise not_found("Classroom not found")
        if classroom.school_id != school.id:
            raise conflict("Classroom does not belong to the specified school")
        await _ensure_seat(db, classroom)

    if await _email_taken(db, email):
        raise conflict("Student with this email already exists")

    obj = Student(
        school_id=school.id,
        classroom_id=data.classroom_id,
        first_name=data.first_name,
        last_name=data.last_name,
        email=email,
        date_of_birth=data.date_of_birth,
        is_active=True,
    )
    try:
        db.add(obj)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise conflict("Student with this email already exists")
    logger.info(f"Student {obj.id} created in school {school.id}")
    return {"student": await _refreshed_response(db, obj.id)}


@service_operation
async def get_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "studentId", message="Student ID is required")
    data = parse_payload(StudentLookup, payload)

    found = await _get_student_row(db, data.student_id)
    if not found:
        raise not_found("Student not found")
    student, school_name, classroom_name = found
    require_access(actor, Resource.STUDENT, Action.READ, student.school_id, "Access denied to this student")
    return {"student": _student_to_response(student, school_name, classroom_name)}


@service_operation
async def list_students(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    params = scope_payload(actor, payload, "Access denied to students")
    data = parse_payload(StudentFilter, params)
    if data.school_id is None and actor.role != Role.SUPERADMIN.value:
        return {"students": []}

    stmt = _student_query()
    if data.school_id is not None:
        stmt = stmt.where(Student.school_id == data.school_id)
    if data.classroom_id is not None:
        stmt = stmt.where(Student.classroom_id == data.classroom_id)
    stmt = stmt.order_by(Student.last_name, Student.first_name)
    rows = (await db.execute(stmt)).all()
    return {"students": [_student_to_response(s, sn, cn) for s, sn, cn in rows]}


@service_operation
async def update_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "studentId", message="Student ID is required")
    data = parse_payload(StudentUpdate, payload)
    changes = provided_fields(data)

    student = await _get_active_student(db, data.student_id)
    if not student:
        raise not_found("Student not found")
    require_access(actor, Resource.STUDENT, Action.UPDATE, student.school_id, "Access denied to update this student")

    email = changes["email"].lower() if changes.get("email") else None
    if email and email != student.email and await _email_taken(db, email, exclude_id=student.id):
        raise conflict("Another student with this email already exists")

    if changes.get("first_name"):
        student.first_name = changes["first_name"]
    if changes.get("last_name"):
        student.last_name = changes["last_name"]
    if email:
        student.email = email
    if "date_of_birth" in changes:
        student.date_of_birth = changes["date_of_birth"]
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise conflict("Another student with this email already exists")
    return {"student": await _refreshed_response(db, student.id)}


@service_operation
async def delete_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "studentId", message="Student ID is required")
    data = parse_payload(StudentLookup, payload)

    student = await _get_active_student(db, data.student_id)
    if not student:
        raise not_found("Student not found")
    require_access(actor, Resource.STUDENT, Action.DELETE, student.school_id, "Access denied to delete this student")

    student.is_active = False
    await db.commit()
    logger.info(f"Student {student.id} soft-deleted by {actor.user_id}")
    return {"message": "Student deleted successfully"}


@service_operation
async def enroll_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(
        payload, "studentId", "classroomId", message="Student ID and Classroom ID are required"
    )
    data = parse_payload(StudentEnroll, payload)

    student = await _get_active_student(db, data.student_id)
    if not student:
        raise not_found("Student not found")
    require_access(actor, Resource.STUDENT, Action.ENROLL, student.school_id, "Access denied to enroll this student")

    classroom = await classroom_service.get_active_classroom(db, data.classroom_id)
    if not classroom:
        raise not_found("Classroom not found")
    if classroom.school_id != student.school_id:
        raise conflict("Classroom does not belong to the student's school")
    await _ensure_seat(db, classroom, student.id)

    student.classroom_id = classroom.id
    await db.commit()
    logger.info(f"Student {student.id} enrolled in classroom {classroom.id}")
    return {
        "message": "Student enrolled successfully",
        "student": await _refreshed_response(db, student.id),
    }


@service_operation
async def transfer_student(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_superadmin(
        actor, Resource.STUDENT, Action.TRANSFER, "Only superadmins can transfer students between schools"
    )
    require_present(
        payload, "studentId", "targetSchoolId", message="Student ID and Target School ID are required"
    )
    data = parse_payload(StudentTransfer, payload)

    student = await _get_active_student(db, data.student_id)
    if not student:
        raise not_found("Student not found")

    target_school = await school_service.get_active_school(db, data.target_school_id)
    if not target_school:
        raise not_found("Target school not found")

    if data.target_classroom_id is not None:
        classroom = await classroom_service.get_active_classroom(db, data.target_classroom_id)
        if not classroom:
            raise not_found("Target classroom not found")
        if classroom.school_id != target_school.id:
            raise conflict("Target classroom does not belong to the target school")
        await _ensure_seat(db, classroom, student.id, "Target classroom is at full capacity")

    previous_school_id = student.school_id
    student.school_id = target_school.id
    student.classroom_id = data.target_classroom_id
    await db.commit()
    logger.info(f"Student {student.id} transferred from school {previous_school_id} to {target_school.id}")
    return {
        "message": "Student transferred successfully",
        "student": await _refreshed_response(db, student.id),
    }
