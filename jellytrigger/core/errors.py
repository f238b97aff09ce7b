import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("jellytrigger.errors")


class TriggerError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.context}


class Unauthorized(TriggerError):
    status_code = 401
    code = "UNAUTHORIZED"


class Expired(TriggerError):
    status_code = 401
    code = "EXPIRED"


class Forbidden(TriggerError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(TriggerError):
    status_code = 404
    code = "NOT_FOUND"


class BadRequest(TriggerError):
    status_code = 400
    code = "BAD_REQUEST"


class Conflict(TriggerError):
    status_code = 409
    code = "CONFLICT"


class ServiceBusy(TriggerError):
    status_code = 503
    code = "SERVICE_BUSY"


class ExecutionFailed(TriggerError):
    status_code = 500
    code = "EXECUTION_FAILED"


class InternalError(TriggerError):
    status_code = 500
    code = "INTERNAL_ERROR"


async def _trigger_error_handler(_: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, TriggerError):
        raise exc
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _http_error_handler(_: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        raise exc
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        extra={"event_name": "unhandled_exception", "path": request.url.path},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=InternalError("Internal server error").to_body())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TriggerError, _trigger_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
