# spentiva/core/responses.py
"""Uniform response envelope.

Every body the API returns has the shape
``{"message": str, "data": Any, "status": str, "statusCode": int}``.
List endpoints additionally carry ``columns`` and ``paginationData``.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    200: "success",
    201: "success",
    204: "no-data-found",
    400: "bad-request",
    401: "unauthorized",
    403: "forbidden",
    404: "not-found",
    422: "validation-error",
    429: "too-many-requests",
    500: "error",
}


def status_message(code: int) -> str:
    if code in STATUS_MESSAGES:
        return STATUS_MESSAGES[code]
    return "error" if code >= 500 else "bad-request"


def envelope(data: Any = None, message: str = "Operation Successfull", code: int = 200) -> Dict[str, Any]:
    return {
        "message": message,
        "data": jsonable_encoder(data),
        "status": status_message(code),
        "statusCode": code,
    }


def success_response(data: Any = None, message: str = "Operation Successfull") -> Dict[str, Any]:
    return envelope(data, message, status.HTTP_200_OK)


def success_response_arr(
    data: list,
    pagination: Optional[Dict[str, Any]] = None,
    message: str = "Operation Successfull",
) -> Dict[str, Any]:
    body = envelope(data, message, status.HTTP_200_OK)
    body["columns"] = []
    body["paginationData"] = pagination or {}
    return body


def error_json(code: int, message: str, data: Any = None, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=code, content=envelope(data, message, code), headers=headers)


class ApiError(HTTPException):
    """HTTPException that also carries a data payload for the envelope."""

    def __init__(self, status_code: int, detail: str, data: Any = None):
        super().__init__(status_code=status_code, detail=detail)
        self.data = data


def bad_request(detail: str, data: Any = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, detail, data)


def not_found(detail: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, detail)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    data = getattr(exc, "data", None)
    if data is None and not isinstance(exc.detail, str):
        data = exc.detail
    if exc.status_code >= 500:
        logger.error("%s %s -> %s %s", request.method, request.url.path, exc.status_code, message)
    else:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, message)
    return error_json(exc.status_code, message, data, headers=getattr(exc, "headers", None))


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    message = "Validation failed"
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", []) if p != "body")
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    logger.warning("%s %s -> 422 %s", request.method, request.url.path, message)
    return error_json(status.HTTP_422_UNPROCESSABLE_ENTITY, message, errors)


async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_json(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
