import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import (
    BaseAPIException,
    InternalServerError,
    RateLimitError,
    TransientStoreError,
)

logger = logging.getLogger("thanksapi")


def _request_context(request: Request) -> Dict[str, Any]:
    client = request.client.host if request.client else "-"
    return {
        "method": request.method,
        "path": request.url.path,
        "client": client,
    }


def _error_body(code: str, message: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    ctx = _request_context(request)
    line = f"[{type(exc).__name__}] {ctx['method']} {ctx['path']} from {ctx['client']} -> {exc.status_code}: {exc.message}"
    if exc.status_code >= 500:
        logger.error(line)
    else:
        logger.warning(line)

    headers = None
    # 재시도 가능한 응답에는 힌트를 준다
    if isinstance(exc, TransientStoreError):
        headers = {"Retry-After": "1"}
    elif isinstance(exc, RateLimitError):
        headers = {"Retry-After": "86400"}
    return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=headers)  # type: ignore[arg-type]


async def handle_http_exception(request: Request, exc: HTTPException):
    ctx = _request_context(request)
    error_msg = f"[HTTPException] {ctx['method']} {ctx['path']} from {ctx['client']} -> {exc.status_code}: {exc.detail}"

    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"{error_msg}\n\nStack Trace:\n{tb_str}")
    else:
        logger.warning(error_msg)

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = _error_body("HTTP_ERROR", str(exc.detail), {})
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    ctx = _request_context(request)
    logger.warning(
        f"[RequestValidationError] {ctx['method']} {ctx['path']} from {ctx['client']} -> 422: {exc.errors()}"
    )
    content = _error_body(
        "VALIDATION_001", "Validation failed", {"errors": jsonable_errors(exc)}
    )
    return JSONResponse(status_code=422, content=content)


def jsonable_errors(exc: RequestValidationError):
    """pydantic 에러 목록에서 직렬화 불가능한 ctx 값을 문자열로 치환"""
    errors = []
    for err in exc.errors():
        item = dict(err)
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        errors.append(item)
    return errors


async def handle_unexpected_error(request: Request, exc: Exception):
    ctx = _request_context(request)

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {ctx['method']} {ctx['path']} from {ctx['client']}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {str(exc)}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )

    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)  # type: ignore[arg-type]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
