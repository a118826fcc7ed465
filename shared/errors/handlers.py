from http import HTTPStatus

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .domain import OrderFulfillmentError

logger = structlog.get_logger(__name__)

# Framework-raised HTTP errors (auth guards, unknown routes) get the same stable codes
HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def _error_response(request: Request, status_code: int, error: dict, headers=None) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        error = {**error, "request_id": request_id}
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


async def _domain_error_handler(request: Request, exc: OrderFulfillmentError):
    logger.info("request_failed", path=request.url.path, code=exc.code, status=exc.status_code)
    return _error_response(request, exc.status_code, exc.to_dict())


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    logger.info("request_failed", path=request.url.path, code=code, status=exc.status_code)
    return _error_response(
        request,
        exc.status_code,
        {"code": code, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        {"code": "VALIDATION_ERROR", "message": "Invalid input", "details": details},
    )


async def _unhandled_error_handler(request: Request, exc: Exception):
    # Never leak stack traces or SQL to the caller
    logger.exception("unhandled_error", path=request.url.path)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"code": "INTERNAL_SERVER_ERROR", "message": "Internal server error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderFulfillmentError, _domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
