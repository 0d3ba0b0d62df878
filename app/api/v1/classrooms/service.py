from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schools import service as school_service
from app.auth.rbac import require_access, scope_payload
from app.auth.schemas import SessionClaims
from app.core.enums import Action, Resource, Role
from app.core.exceptions import ErrorKind, ServiceError, conflict, not_found
from app.core.logging_config import get_logger
from app.core.models import Classroom, School, Student
from app.core.models.classroom import DEFAULT_CAPACITY
from app.core.results import service_operation
from app.core.schemas import parse_payload, provided_fields, require_present

from .schemas import ClassroomCreate, ClassroomFilter, ClassroomLookup, ClassroomResponse, ClassroomUpdate

logger = get_logger(__name__)

DUPLICATE_CLASSROOM = "Classroom with this name already exists in this school"


def _classroom_to_response(c: Classroom, school_name: Optional[str] = None, enrolled: int = 0) -> ClassroomResponse:
    return ClassroomResponse(
        id=c.id,
        school_id=c.school_id,
        school_name=school_name,
        name=c.name,
        capacity=c.capacity,
        resources=list(c.resources or []),
        enrolled_count=enrolled,
        is_active=c.is_active,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def get_active_classroom(db: AsyncSession, classroom_id: Optional[UUID]) -> Optional[Classroom]:
    if classroom_id is None:
        return None
    result = await db.execute(
        select(Classroom).where(Classroom.id == classroom_id, Classroom.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def _get_active_classroom_with_school(
    db: AsyncSession, classroom_id: UUID
) -> Optional[Tuple[Classroom, str]]:
    result = await db.execute(
        select(Classroom, School.name)
        .join(School, School.id == Classroom.school_id)
        .where(Classroom.id == classroom_id, Classroom.is_active.is_(True))
    )
    row = result.first()
    return (row[0], row[1]) if row else None


async def count_enrolled(
    db: AsyncSession,
    classroom_id: UUID,
    exclude_student_id: Optional[UUID] = None,
) -> int:
    """Active students seated in a classroom, optionally not counting one student."""
    stmt = select(func.count(Student.id)).where(
        Student.classroom_id == classroom_id,
        Student.is_active.is_(True),
    )
    if exclude_student_id is not None:
        stmt = stmt.where(Student.id != exclude_student_id)
    return (await db.execute(stmt)).scalar_one()


async def _enrolled_by_classroom(db: AsyncSession, classroom_ids: List[UUID]) -> Dict[UUID, int]:
    """Return map classroom_id -> count of active students in it."""
    if not classroom_ids:
        return {}
    r = await db.execute(
        select(Student.classroom_id, func.count(Student.id).label("cnt"))
        .where(
            Student.classroom_id.in_(classroom_ids),
            Student.is_active.is_(True),
        )
        .group_by(Student.classroom_id)
    )
    return {row.classroom_id: row.cnt for row in r.all()}


async def _name_taken(
    db: AsyncSession,
    school_id: UUID,
    name: str,
    exclude_id: Optional[UUID] = None,
) -> bool:
    stmt = select(Classroom.id).where(
        Classroom.school_id == school_id,
        Classroom.name == name,
        Classroom.is_active.is_(True),
    )
    if exclude_id is not None:
        stmt = stmt.where(Classroom.id != exclude_id)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


@service_operation
async def create_classroom(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    params = scope_payload(actor, payload, "Unauthorized to create classrooms")
    require_present(params, "schoolId", message="School ID is required")
    data = parse_payload(ClassroomCreate, params)

    school = await school_service.get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")
    require_access(actor, Resource.CLASSROOM, Action.CREATE, school.id, "Unauthorized to create classrooms")

    if await _name_taken(db, school.id, data.name):
        raise conflict(DUPLICATE_CLASSROOM)

    obj = Classroom(
        school_id=school.id,
        name=data.name,
        capacity=data.capacity or DEFAULT_CAPACITY,
        resources=data.resources or [],
        is_active=True,
    )
    try:
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError:
        await db.rollback()
        raise conflict(DUPLICATE_CLASSROOM)
    logger.info(f"Classroom {obj.id} created in school {school.id}")
    return {"classroom": _classroom_to_response(obj, school.name, 0)}


@service_operation
async def get_classroom(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "classroomId", message="Classroom ID is required")
    data = parse_payload(ClassroomLookup, payload)

    found = await _get_active_classroom_with_school(db, data.classroom_id)
    if not found:
        raise not_found("Classroom not found")
    classroom, school_name = found
    require_access(actor, Resource.CLASSROOM, Action.READ, classroom.school_id, "Access denied to this classroom")

    enrolled = await count_enrolled(db, classroom.id)
    return {"classroom": _classroom_to_response(classroom, school_name, enrolled)}


@service_operation
async def list_classrooms(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    params = scope_payload(actor, payload, "Access denied to classrooms")
    school_id = parse_payload(ClassroomFilter, params).school_id
    if school_id is None and actor.role != Role.SUPERADMIN.value:
        return {"classrooms": []}

    stmt = (
        select(Classroom, School.name)
        .join(School, School.id == Classroom.school_id)
        .where(Classroom.is_active.is_(True))
    )
    if school_id is not None:
        stmt = stmt.where(Classroom.school_id == school_id)
    stmt = stmt.order_by(School.name, Classroom.name)
    rows = (await db.execute(stmt)).all()

    enrolled_map = await _enrolled_by_classroom(db, [c.id for c, _ in rows])
    classrooms = [
        _classroom_to_response(c, school_name, enrolled_map.get(c.id, 0)) for c, school_name in rows
    ]
    return {"classrooms": classrooms}


@service_operation
async def update_classroom(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "classroomId", message="Classroom ID is required")
    data = parse_payload(ClassroomUpdate, payload)
    changes = provided_fields(data)

    found = await _get_active_classroom_with_school(db, data.classroom_id)
    if not found:
        raise not_found("Classroom not found")
    classroom, school_name = found
    require_access(
        actor, Resource.CLASSROOM, Action.UPDATE, classroom.school_id, "Access denied to update this classroom"
    )

    new_name = changes.get("name")
    if new_name and new_name != classroom.name and await _name_taken(
        db, classroom.school_id, new_name, exclude_id=classroom.id
    ):
        raise conflict(DUPLICATE_CLASSROOM)

    enrolled = await count_enrolled(db, classroom.id)
    new_capacity = changes.get("capacity")
    if new_capacity is not None and new_capacity < enrolled:
        raise conflict(
            f"Capacity cannot be lower than the number of enrolled students ({enrolled})"
        )

    if new_name:
        classroom.name = new_name
    if new_capacity is not None:
        classroom.capacity = new_capacity
    if changes.get("resources") is not None:
        classroom.resources = list(changes["resources"])
    try:
        await db.commit()
        await db.refresh(classroom)
    except IntegrityError:
        await db.rollback()
        raise conflict(DUPLICATE_CLASSROOM)
    return {"classroom": _classroom_to_response(classroom, school_name, enrolled)}


@service_operation
async def delete_classroom(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_present(payload, "classroomId", message="Classroom ID is required")
    data = parse_payload(ClassroomLookup, payload)

    classroom = await get_active_classroom(db, data.classroom_id)
    if not classroom:
        raise not_found("Classroom not found")
    require_access(
        actor, Resource.CLASSROOM, Action.DELETE, classroom.school_id, "Access denied to delete this classroom"
    )

    if await count_enrolled(db, classroom.id):
        raise ServiceError(
            "Cannot delete classroom with enrolled students. Transfer them first.",
            ErrorKind.DEPENDENCY,
        )

    classroom.is_active = False
    await db.commit()
    logger.info(f"Classroom {classroom.id} soft-deleted by {actor.user_id}")
    return {"message": "Classroom deleted successfully"}
