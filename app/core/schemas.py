from typing import Any, Dict, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from app.core.exceptions import ErrorKind, ServiceError

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """Base for request/response bodies: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


def _format_errors(exc: ValidationError) -> List[str]:
    messages: List[str] = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        messages.append(f"{field}: {err['msg']}")
    return messages


def parse_payload(schema: Type[ModelT], payload: Mapping[str, Any]) -> ModelT:
    """Validate an inbound parameter mapping against a request schema.

    Raises a validation ServiceError listing every offending field.
    """
    try:
        return schema.model_validate(dict(payload))
    except ValidationError as e:
        raise ServiceError(_format_errors(e), ErrorKind.VALIDATION) from e


def require_present(payload: Mapping[str, Any], *keys: str, message: str) -> None:
    """Reject early when an identifying parameter is missing or blank."""
    for key in keys:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ServiceError(message, ErrorKind.VALIDATION)


def provided_fields(model: BaseModel) -> Dict[str, Any]:
    """Fields the caller actually sent (partial updates)."""
    return model.model_dump(exclude_unset=True)
