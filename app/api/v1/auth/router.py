from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dispatch import AuthRequirement, Operation, RequestContext
from app.auth import services
from app.core.results import ServiceResult


async def register(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
    return await services.register(db, params, ctx.device_id)


async def login(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
    return await services.login(db, params, ctx.device_id)


async def get_profile(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
    return await services.get_profile(db, ctx.session)


async def create_school_admin(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
    return await services.create_school_admin(db, ctx.session, params)


async def create_session_token(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
    """Exchange the account token in the header for a fresh session token."""
    return await services.issue_session_token(db, ctx.account, ctx.device_id)


OPERATIONS: List[Operation] = [
    Operation("user", "register", "POST", register, AuthRequirement.NONE),
    Operation("user", "login", "POST", login, AuthRequirement.NONE),
    Operation("user", "getProfile", "GET", get_profile),
    Operation("user", "createSchoolAdmin", "POST", create_school_admin),
    Operation("token", "createSessionToken", "POST", create_session_token, AuthRequirement.ACCOUNT),
]
