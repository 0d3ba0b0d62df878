"""Access-control policy shared by every entity service.

``is_allowed`` is the single decision function; the helpers below only turn
its answer into errors or effective tenant scopes.
"""
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
from uuid import UUID

from app.auth.schemas import SessionClaims
from app.core.enums import Action, Resource, Role
from app.core.exceptions import access_denied

SUPERADMIN_ONLY: FrozenSet[Tuple[Resource, Action]] = frozenset(
    {
        (Resource.SCHOOL, Action.CREATE),
        (Resource.SCHOOL, Action.UPDATE),
        (Resource.SCHOOL, Action.DELETE),
        (Resource.STUDENT, Action.TRANSFER),
        (Resource.ACCOUNT, Action.CREATE),
    }
)


def is_allowed(
    actor: SessionClaims,
    resource: Resource,
    action: Action,
    resource_school_id: Optional[UUID] = None,
) -> bool:
    """Decide whether ``actor`` may perform ``action`` on a resource owned by ``resource_school_id``."""
    if actor.role == Role.SUPERADMIN.value:
        return True
    if actor.role != Role.SCHOOL_ADMIN.value:
        return False
    if (resource, action) in SUPERADMIN_ONLY:
        return False
    if actor.school_id is None:
        return False
    return resource_school_id == actor.school_id


def require_access(
    actor: SessionClaims,
    resource: Resource,
    action: Action,
    resource_school_id: Optional[UUID],
    message: str,
) -> None:
    if not is_allowed(actor, resource, action, resource_school_id):
        raise access_denied(message)


def require_superadmin(actor: SessionClaims, resource: Resource, action: Action, message: str) -> None:
    """Gate for superadmin-only operations, checked before any input is looked at."""
    require_access(actor, resource, action, None, message)


def resolve_school_scope(
    actor: SessionClaims,
    requested_school_id: Any,
    message: str,
) -> Any:
    """Effective tenant for a create/list call.

    A school admin is always pinned to their own school, whatever the caller
    sent; a superadmin gets exactly what was requested (possibly None).
    """
    if actor.role == Role.SUPERADMIN.value:
        return requested_school_id
    if actor.role == Role.SCHOOL_ADMIN.value:
        return actor.school_id
    raise access_denied(message)


def scope_payload(actor: SessionClaims, payload: Mapping[str, Any], message: str) -> Dict[str, Any]:
    """Copy of ``payload`` with ``schoolId`` replaced by the actor's effective tenant."""
    requested = payload.get("schoolId", payload.get("school_id"))
    params = {k: v for k, v in payload.items() if k not in ("schoolId", "school_id")}
    params["schoolId"] = resolve_school_scope(actor, requested, message)
    return params
