from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_access, require_superadmin, resolve_school_scope
from app.auth.schemas import SessionClaims
from app.core.enums import Action, Resource, Role
from app.core.exceptions import ErrorKind, ServiceError, conflict, not_found
from app.core.logging_config import get_logger
from app.core.models import Classroom, School, Student
from app.core.results import service_operation
from app.core.schemas import parse_payload, provided_fields, require_present

from .schemas import SchoolCreate, SchoolLookup, SchoolResponse, SchoolUpdate

logger = get_logger(__name__)

DUPLICATE_SCHOOL = "School with this name or email already exists"


def _school_to_response(s: School) -> SchoolResponse:
    return SchoolResponse(
        id=s.id,
        name=s.name,
        address=s.address,
        phone=s.phone,
        email=s.email,
        is_active=s.is_active,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def get_active_school(db: AsyncSession, school_id: Optional[UUID]) -> Optional[School]:
    """Active school by id, or None when missing or soft-deleted."""
    if school_id is None:
        return None
    result = await db.execute(
        select(School).where(School.id == school_id, School.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def _name_or_email_taken(
    db: AsyncSession,
    name: Optional[str],
    email: Optional[str],
    exclude_id: Optional[UUID] = None,
) -> bool:
    clauses = []
    if name is not None:
        clauses.append(School.name == name)
    if email is not None:
        clauses.append(School.email == email)
    if not clauses:
        return False
    stmt = select(School.id).where(School.is_active.is_(True), or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(School.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


@service_operation
async def create_school(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_superadmin(actor, Resource.SCHOOL, Action.CREATE, "Only superadmins can create schools")
    data = parse_payload(SchoolCreate, payload)
    email = data.email.lower()

    if await _name_or_email_taken(db, data.name, email):
        raise conflict(DUPLICATE_SCHOOL)

    obj = School(
        name=data.name,
        address=data.address,
        phone=data.phone,
        email=email,
        is_active=True,
    )
    try:
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError:
        await db.rollback()
        raise conflict(DUPLICATE_SCHOOL)
    logger.info(f"School {obj.id} created by {actor.user_id}")
    return {"school": _school_to_response(obj)}


@service_operation
async def get_school(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "schoolId", message="School ID is required")
    data = parse_payload(SchoolLookup, payload)

    school = await get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")
    require_access(actor, Resource.SCHOOL, Action.READ, school.id, "Access denied to this school")
    return {"school": _school_to_response(school)}


@service_operation
async def list_schools(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    stmt = select(School).where(School.is_active.is_(True))
    if actor.role != Role.SUPERADMIN.value:
        scope = resolve_school_scope(actor, None, "Access denied to schools")
        if scope is None:
            return {"schools": []}
        stmt = stmt.where(School.id == scope)
    result = await db.execute(stmt.order_by(School.name))
    schools: List[SchoolResponse] = [_school_to_response(s) for s in result.scalars().all()]
    return {"schools": schools}


@service_operation
async def update_school(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_superadmin(actor, Resource.SCHOOL, Action.UPDATE, "Only superadmins can update schools")
    require_present(payload, "schoolId", message="School ID is required")
    data = parse_payload(SchoolUpdate, payload)
    changes = provided_fields(data)
    changes.pop("school_id", None)
    if changes.get("email") is not None:
        changes["email"] = changes["email"].lower()

    school = await get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")

    if await _name_or_email_taken(db, changes.get("name"), changes.get("email"), exclude_id=school.id):
        raise conflict(DUPLICATE_SCHOOL)

    for field in ("name", "address", "email"):
        if changes.get(field) is not None:
            setattr(school, field, changes[field])
    if "phone" in changes:
        school.phone = changes["phone"]
    try:
        await db.commit()
        await db.refresh(school)
    except IntegrityError:
        await db.rollback()
        raise conflict(DUPLICATE_SCHOOL)
    return {"school": _school_to_response(school)}


@service_operation
async def delete_school(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_superadmin(actor, Resource.SCHOOL, Action.DELETE, "Only superadmins can delete schools")
    require_present(payload, "schoolId", message="School ID is required")
    data = parse_payload(SchoolLookup, payload)

    school = await get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")

    classroom_count = (
        await db.execute(
            select(func.count(Classroom.id)).where(
                Classroom.school_id == school.id, Classroom.is_active.is_(True)
            )
        )
    ).scalar_one()
    student_count = (
        await db.execute(
            select(func.count(Student.id)).where(
                Student.school_id == school.id, Student.is_active.is_(True)
            )
        )
    ).scalar_one()
    if classroom_count or student_count:
        logger.info(
            f"Refusing to delete school {school.id}: {classroom_count} classroom(s), {student_count} student(s)"
        )
        raise ServiceError(
            "Cannot delete school with existing classrooms or students. Remove them first.",
            ErrorKind.DEPENDENCY,
        )

    school.is_active = False
    await db.commit()
    logger.info(f"School {school.id} soft-deleted by {actor.user_id}")
    return {"message": "School deleted successfully"}
