"""Error taxonomy shared by the QMS services.

Every service error carries the HTTP status it maps to, so route handlers can
raise domain errors and let `install_error_handlers` render them as
`{"error": <code>, "detail": <message>}`.
"""

import logging
from typing import Any, TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as SchemaError
from starlette import status

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail or self.code


class ValidationError(ServiceError):
    """Malformed request payload. Nothing was mutated."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFoundError(ServiceError):
    """A referenced quiz, submission or draft does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class UpstreamError(ServiceError):
    """A collaborator (quiz service, job queue) was unreachable or failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_error"


class AuthorizationError(ServiceError):
    """The caller is authenticated but lacks the capability for this call."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


def _render(exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail})


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        log.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return _render(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid request")
    return _render(ValidationError(f"{where}: {msg}" if where else msg))


def install_error_handlers(app: FastAPI) -> None:
    """Register the JSON error envelope for service and request-validation errors."""
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)


def parse_payload(model: type[M], payload: Any) -> M:
    """Validate a raw request body against `model`, raising `ValidationError` on failure."""
    try:
        return model.model_validate(payload)
    except SchemaError as exc:
        err = exc.errors()[0]
        where = ".".join(str(p) for p in err["loc"])
        raise ValidationError(f"{where}: {err['msg']}" if where else err["msg"]) from exc
