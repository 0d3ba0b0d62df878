from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schools import service as school_service
from app.auth.models import User
from app.auth.rbac import require_superadmin
from app.auth.schemas import (
    AccountClaims,
    LoginRequest,
    RegisterRequest,
    SchoolAdminCreate,
    SessionClaims,
    UserResponse,
)
from app.auth.security import (
    create_account_token,
    create_session_token,
    hash_password,
    new_session_id,
    verify_password,
)
from app.core.enums import Action, Resource, Role
from app.core.exceptions import ErrorKind, ServiceError, conflict, not_found
from app.core.logging_config import get_logger
from app.core.models import School
from app.core.results import service_operation
from app.core.schemas import parse_payload, require_present

logger = get_logger(__name__)

DUPLICATE_USER = "User with this username or email already exists"
INVALID_CREDENTIALS = "Invalid credentials"
VALID_ROLES = {Role.SUPERADMIN.value, Role.SCHOOL_ADMIN.value}


def _user_to_response(user: User, school_name: Optional[str] = None) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        school_id=user.school_id,
        school_name=school_name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _issue_tokens(user: User, device_id: str) -> Dict[str, str]:
    """Account token plus a fresh session token for this device."""
    long_token = create_account_token(user_id=user.id, user_key=user.username)
    short_token = create_session_token(
        user_id=user.id,
        user_key=user.username,
        role=user.role,
        school_id=user.school_id,
        session_id=new_session_id(),
        device_id=device_id,
    )
    return {"longToken": long_token, "shortToken": short_token}


async def _username_or_email_taken(db: AsyncSession, username: str, email: str) -> bool:
    result = await db.execute(
        select(User.id).where(or_(User.username == username, func.lower(User.email) == email)).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _create_user(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    role: str,
    school_id: Optional[UUID],
) -> User:
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        school_id=school_id,
        is_active=True,
    )
    try:
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except IntegrityError:
        await db.rollback()
        raise conflict(DUPLICATE_USER)
    return user


async def _school_name(db: AsyncSession, school_id: Optional[UUID]) -> Optional[str]:
    if school_id is None:
        return None
    return (await db.execute(select(School.name).where(School.id == school_id))).scalar_one_or_none()


@service_operation
async def register(db: AsyncSession, payload: Mapping[str, Any], device_id: str) -> Dict[str, Any]:
    """Open sign-up. Never binds a school: that only happens through createSchoolAdmin."""
    data = parse_payload(RegisterRequest, payload)
    role = data.role or Role.SCHOOL_ADMIN.value
    if role not in VALID_ROLES:
        raise ServiceError("Invalid role. Must be superadmin or school_admin", ErrorKind.VALIDATION)
    email = data.email.lower()

    if await _username_or_email_taken(db, data.username, email):
        raise conflict(DUPLICATE_USER)

    user = await _create_user(db, data.username, email, data.password, role, None)
    logger.info(f"Registered account {user.id} with role {role}")
    return {"user": _user_to_response(user), **_issue_tokens(user, device_id)}


@service_operation
async def login(db: AsyncSession, payload: Mapping[str, Any], device_id: str) -> Dict[str, Any]:
    require_present(payload, "email", "password", message="Email and password are required")
    data = parse_payload(LoginRequest, payload)

    result = await db.execute(select(User).where(func.lower(User.email) == data.email.lower()))
    user: Optional[User] = result.scalar_one_or_none()
    # Same message for unknown email and wrong password
    if not user or not verify_password(data.password, user.password_hash):
        logger.info("Login rejected: invalid credentials")
        raise ServiceError(INVALID_CREDENTIALS, ErrorKind.AUTHENTICATION)
    if not user.is_active:
        raise ServiceError("Account is deactivated", ErrorKind.ACCESS_DENIED)

    school_name = await _school_name(db, user.school_id)
    logger.info(f"Account {user.id} logged in")
    return {"user": _user_to_response(user, school_name), **_issue_tokens(user, device_id)}


@service_operation
async def get_profile(db: AsyncSession, actor: SessionClaims) -> Dict[str, Any]:
    user = await db.get(User, actor.user_id)
    if not user or not user.is_active:
        raise not_found("User not found")
    return {"user": _user_to_response(user, await _school_name(db, user.school_id))}


@service_operation
async def create_school_admin(db: AsyncSession, actor: SessionClaims, payload: Mapping[str, Any]) -> Dict[str, Any]:
    require_superadmin(
        actor, Resource.ACCOUNT, Action.CREATE, "Only superadmins can create school administrators"
    )
    require_present(payload, "schoolId", message="School ID is required for school admin")
    data = parse_payload(SchoolAdminCreate, payload)
    email = data.email.lower()

    school = await school_service.get_active_school(db, data.school_id)
    if not school:
        raise not_found("School not found")

    if await _username_or_email_taken(db, data.username, email):
        raise conflict(DUPLICATE_USER)

    user = await _create_user(
        db, data.username, email, data.password, Role.SCHOOL_ADMIN.value, school.id
    )
    logger.info(f"School admin {user.id} created for school {school.id} by {actor.user_id}")
    return {
        "user": _user_to_response(user, school.name),
        "message": "School admin created successfully",
    }


@service_operation
async def issue_session_token(db: AsyncSession, account: AccountClaims, device_id: str) -> Dict[str, Any]:
    """Mint a new session token from a verified account token.

    Role and school are read from the account record, not from the token, so
    role changes take effect on the next session.
    """
    user = await db.get(User, account.user_id)
    if not user:
        raise not_found("User not found")
    if not user.is_active:
        raise ServiceError("Account is deactivated", ErrorKind.ACCESS_DENIED)

    short_token = create_session_token(
        user_id=user.id,
        user_key=account.user_key,
        role=user.role,
        school_id=user.school_id,
        session_id=new_session_id(),
        device_id=device_id,
    )
    return {"shortToken": short_token}
