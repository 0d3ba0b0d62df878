"""Result envelope returned across the manager boundary.

Services raise :class:`ServiceError` internally; ``service_operation`` turns
those into a failed :class:`ServiceResult` so callers never see business-rule
failures as exceptions. Anything else (database down, programming errors)
propagates untouched.
"""
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from app.core.exceptions import ErrorKind, ServiceError
from app.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceResult:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    errors: Optional[Union[str, List[str]]] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, data: Optional[Dict[str, Any]] = None) -> "ServiceResult":
        return cls(ok=True, data=data or {})

    @classmethod
    def failure(cls, error: ServiceError) -> "ServiceResult":
        return cls(ok=False, errors=error.message, kind=error.kind)


def service_operation(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[ServiceResult]]:
    """Wrap an async service function so it returns a ServiceResult."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> ServiceResult:
        try:
            data = await func(*args, **kwargs)
        except ServiceError as e:
            logger.info(f"{func.__name__} rejected ({e.kind.value}): {e}")
            return ServiceResult.failure(e)
        return ServiceResult.success(data)

    return wrapper
