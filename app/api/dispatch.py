"""
Request dispatch: ``/api/{entity}/{operation}``.

Every operation is declared once as an :class:`Operation` in its entity's
``router.py`` and collected into an :class:`OperationRegistry` at startup.
The registry is turned into FastAPI routes by :func:`build_api_router`, which
applies the rate limit, merges parameters, verifies the token the operation
requires and wraps the service result into the ``{ok, data|errors}`` envelope.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, Optional, Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import authenticate_account, authenticate_session
from app.auth.schemas import AccountClaims, SessionClaims
from app.auth.security import device_fingerprint
from app.core.exceptions import ErrorKind, ServiceError
from app.core.logging_config import get_logger
from app.core.rate_limit import RATE_LIMIT_MESSAGE, FixedWindowRateLimiter, client_key
from app.core.results import ServiceResult
from app.db.session import get_db

logger = get_logger(__name__)


class AuthRequirement(str, Enum):
    NONE = "none"
    ACCOUNT = "account"
    SESSION = "session"


@dataclass
class RequestContext:
    device_id: str
    session: Optional[SessionClaims] = None
    account: Optional[AccountClaims] = None


Handler = Callable[[AsyncSession, RequestContext, Dict[str, Any]], Awaitable[ServiceResult]]


@dataclass(frozen=True)
class Operation:
    entity: str
    name: str
    method: str
    handler: Handler
    auth: AuthRequirement = AuthRequirement.SESSION

    @property
    def key(self) -> Tuple[str, str]:
        return (self.entity, self.name)

    @property
    def path(self) -> str:
        return f"/api/{self.entity}/{self.name}"


def session_handler(
    service: Callable[[AsyncSession, SessionClaims, Dict[str, Any]], Awaitable[ServiceResult]],
) -> Handler:
    """Adapt an entity service ``(db, actor, payload)`` to the dispatch signature."""

    async def handler(db: AsyncSession, ctx: RequestContext, params: Dict[str, Any]) -> ServiceResult:
        return await service(db, ctx.session, params)

    handler.__name__ = service.__name__
    return handler


class OperationRegistry:
    def __init__(self) -> None:
        self._operations: Dict[Tuple[str, str], Operation] = {}

    def register(self, operation: Operation) -> None:
        if operation.key in self._operations:
            raise ValueError(f"Duplicate operation registered: {operation.entity}/{operation.name}")
        self._operations[operation.key] = operation

    def register_all(self, operations: Iterable[Operation]) -> None:
        for operation in operations:
            self.register(operation)

    def get(self, entity: str, name: str) -> Optional[Operation]:
        return self._operations.get((entity, name))

    def check_complete(self, expected: Iterable[Tuple[str, str]]) -> None:
        """Abort startup when an expected operation has no handler."""
        missing = sorted(set(expected) - set(self._operations))
        if missing:
            names = ", ".join(f"{entity}/{name}" for entity, name in missing)
            raise ValueError(f"Operations not registered: {names}")

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


def envelope_response(
    status_code: int,
    *,
    data: Optional[Dict[str, Any]] = None,
    errors: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    if errors is None:
        content: Dict[str, Any] = {"ok": True, "data": data or {}}
    else:
        content = {"ok": False, "errors": errors}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


async def _read_params(request: Request) -> Dict[str, Any]:
    """Query string merged with the JSON body; body keys win."""
    params: Dict[str, Any] = dict(request.query_params)
    raw = await request.body()
    if not raw.strip():
        return params
    try:
        body = json.loads(raw)
    except ValueError:
        raise ServiceError("Invalid JSON body", ErrorKind.VALIDATION)
    if not isinstance(body, dict):
        raise ServiceError("Request body must be a JSON object", ErrorKind.VALIDATION)
    params.update(body)
    return params


def _build_context(operation: Operation, request: Request) -> RequestContext:
    ctx = RequestContext(device_id=device_fingerprint(request.headers.get("user-agent")))
    if operation.auth == AuthRequirement.SESSION:
        ctx.session = authenticate_session(request)
    elif operation.auth == AuthRequirement.ACCOUNT:
        ctx.account = authenticate_account(request)
    return ctx


def _make_endpoint(operation: Operation, limiter: FixedWindowRateLimiter):
    async def endpoint(request: Request, db: AsyncSession = Depends(get_db)) -> JSONResponse:
        decision = await limiter.hit(client_key(request))
        headers = decision.headers()
        if not decision.allowed:
            return envelope_response(
                status.HTTP_429_TOO_MANY_REQUESTS, errors=RATE_LIMIT_MESSAGE, headers=headers
            )
        try:
            params = await _read_params(request)
            ctx = _build_context(operation, request)
        except ServiceError as e:
            return envelope_response(e.status_code, errors=e.message, headers=headers)

        result = await operation.handler(db, ctx, params)
        if result.ok:
            return envelope_response(status.HTTP_200_OK, data=result.data, headers=headers)
        return envelope_response(status.HTTP_400_BAD_REQUEST, errors=result.errors, headers=headers)

    endpoint.__name__ = f"{operation.entity}_{operation.name}"
    return endpoint


def build_api_router(registry: OperationRegistry, limiter: FixedWindowRateLimiter) -> APIRouter:
    router = APIRouter()
    for operation in registry:
        router.add_api_route(
            operation.path,
            _make_endpoint(operation, limiter),
            methods=[operation.method],
            name=f"{operation.entity}.{operation.name}",
            tags=[operation.entity],
        )

    @router.api_route(
        "/api/{entity}/{name}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def unknown_operation(entity: str, name: str, request: Request) -> JSONResponse:
        known = registry.get(entity, name)
        if known is not None:
            message = f"Method {request.method} not allowed for {entity}/{name}"
            return envelope_response(status.HTTP_405_METHOD_NOT_ALLOWED, errors=message)
        return envelope_response(status.HTTP_404_NOT_FOUND, errors=f"Unknown operation: {entity}/{name}")

    logger.info(f"Registered {len(registry)} API operations")
    return router
