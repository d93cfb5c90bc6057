"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.domain.chat.exceptions import (
    BackendError,
    ChatError,
    ConversationBlocked,
    FetchFailed,
    InvalidMessage,
    ThreadNotFound,
    UserNotFound,
)
from app.obs import logging as obs_logging

_CHAT_STATUS = (
    (ThreadNotFound, status.HTTP_404_NOT_FOUND),
    (UserNotFound, status.HTTP_404_NOT_FOUND),
    (ConversationBlocked, status.HTTP_403_FORBIDDEN),
    (InvalidMessage, status.HTTP_400_BAD_REQUEST),
    (BackendError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (FetchFailed, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: ChatError) -> int:
    for exc_type, code in _CHAT_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = obs_logging.current_request_id()
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers={"X-Request-Id": rid})

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = obs_logging.current_request_id()
        payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": rid}
        return JSONResponse(status_code=422, content=payload, headers={"X-Request-Id": rid})

    @app.exception_handler(ChatError)
    async def chat_exc_handler(request: Request, exc: ChatError):  # type: ignore[override]
        rid = obs_logging.current_request_id()
        payload = {"detail": exc.reason, "request_id": rid}
        return JSONResponse(status_code=status_for(exc), content=payload, headers={"X-Request-Id": rid})
