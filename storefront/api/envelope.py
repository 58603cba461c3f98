# storefront/api/envelope.py
from functools import lru_cache
from typing import Annotated, Any, Literal, Union

import pydantic
import requests
from pydantic import BaseModel, Field, TypeAdapter

from storefront.domain.errors import (
    AuthError,
    NotFoundError,
    ResponseShapeError,
    ServerError,
    StorefrontError,
    ValidationError,
)


class ApiSuccess(BaseModel):
    kind: Literal["success"] = "success"
    status: int
    data: Any = None


class ApiFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    status: int
    message: str
    errors: dict[str, str] = Field(default_factory=dict)


Envelope = Annotated[Union[ApiSuccess, ApiFailure], Field(discriminator="kind")]
_ENVELOPE = TypeAdapter(Envelope)


@lru_cache(maxsize=None)
def _adapter(schema) -> TypeAdapter:
    return TypeAdapter(schema)


def _json_body(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def envelope_from_response(resp: requests.Response) -> ApiSuccess | ApiFailure:
    """Jedna koperta dla kazdej odpowiedzi HTTP, dalej dziala juz tylko na niej."""
    body = _json_body(resp)

    if resp.ok:
        if resp.content and body is None:
            raise ResponseShapeError(
                f"Odpowiedz {resp.status_code} nie jest poprawnym JSON", resp.status_code
            )
        return _ENVELOPE.validate_python(
            {"kind": "success", "status": resp.status_code, "data": body}
        )

    message = None
    errors = {}
    if isinstance(body, dict):
        message = body.get("message")
        raw_errors = body.get("errors")
        if isinstance(raw_errors, dict):
            errors = {str(k): str(v) for k, v in raw_errors.items()}

    return _ENVELOPE.validate_python(
        {
            "kind": "failure",
            "status": resp.status_code,
            "message": message or resp.reason or "Request failed",
            "errors": errors,
        }
    )


def error_for_failure(failure: ApiFailure) -> StorefrontError:
    status = failure.status
    if status in (401, 403):
        return AuthError(failure.message, status)
    if status == 404:
        return NotFoundError(failure.message, status, failure.errors)
    if 400 <= status < 500:
        return ValidationError(failure.message, status, failure.errors)
    return ServerError(failure.message, status)


def unwrap(envelope: ApiSuccess | ApiFailure, schema=None):
    """Zwraca payload zwalidowany dokladnie jednym schematem albo rzuca blad z taksonomii."""
    if isinstance(envelope, ApiFailure):
        raise error_for_failure(envelope)

    if schema is None:
        return None

    try:
        return _adapter(schema).validate_python(envelope.data)
    except pydantic.ValidationError as e:
        raise ResponseShapeError(
            f"Nieoczekiwany ksztalt odpowiedzi dla {getattr(schema, '__name__', schema)}: "
            f"{e.error_count()} bledow",
            envelope.status,
        ) from e
