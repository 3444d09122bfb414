"""
HTTP middleware for the CV Matching API: request ids, the JSON error
envelope, slow request warnings and cheap health checks.
"""
import time
import traceback
import uuid
from datetime import datetime
from typing import Any, Dict

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError

from cvmatch.utils.exceptions import CVMatchBaseException, map_to_http_exception
from cvmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

# domain errors that are the client's fault and only deserve a warning
CLIENT_ERROR_CODES = {"NOT_FOUND", "VALIDATION_ERROR", "BUSINESS_LOGIC_ERROR"}


def create_error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """Build the error envelope shared by every failing endpoint"""
    if not isinstance(detail, dict):
        detail = {"message": str(detail)}

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "timestamp": datetime.utcnow().isoformat(),
            "request_id": request_id,
            "status_code": status_code,
            **detail
        },
        headers={"X-Request-ID": request_id}
    )


def _request_context(request: Request, request_id: str, **extra) -> Dict[str, Any]:
    return {"request_id": request_id, "method": request.method, "path": request.url.path, **extra}


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Assigns a request id and renders any escaping exception as an error envelope"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        where = f"{request.method} {request.url.path}"

        logger.info(
            f"Request started: {where}",
            extra=_request_context(
                request, request_id,
                query_params=dict(request.query_params),
                client_ip=request.client.host if request.client else "unknown",
            )
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            return self._handle(exc, request, request_id)

        logger.info(
            f"Request completed: {where} - {response.status_code}",
            extra=_request_context(request, request_id, status_code=response.status_code)
        )
        response.headers["X-Request-ID"] = request_id
        return response

    def _handle(self, exc: Exception, request: Request, request_id: str) -> JSONResponse:
        where = f"{request.method} {request.url.path}"

        if isinstance(exc, CVMatchBaseException):
            log = logger.warning if exc.error_code in CLIENT_ERROR_CODES else logger.error
            log(
                f"{exc.__class__.__name__} in {where}: {exc.message}",
                extra=_request_context(request, request_id, error_code=exc.error_code, details=exc.details)
            )
            http_exc = map_to_http_exception(exc)
            return create_error_response(request_id, http_exc.status_code, http_exc.detail)

        if isinstance(exc, ValidationError):
            # raised inside a handler, e.g. by a malformed stored document
            logger.error(
                f"Pydantic validation error in {where}: {exc}",
                extra=_request_context(request, request_id)
            )
            return create_error_response(request_id, 422, {
                "error": "Validation failed",
                "message": "Data validation failed",
                "validation_errors": exc.errors(include_url=False, include_context=False),
            })

        if isinstance(exc, HTTPException):
            logger.warning(
                f"HTTP exception in {where}: {exc.detail}",
                extra=_request_context(request, request_id, status_code=exc.status_code)
            )
            return create_error_response(request_id, exc.status_code, exc.detail)

        logger.error(
            f"Unhandled exception in {where}: {exc}",
            extra=_request_context(request, request_id, traceback=traceback.format_exc()),
            exc_info=exc
        )
        return create_error_response(request_id, 500, {
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later."
        })


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Adds X-Processing-Time and warns about slow requests"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        if elapsed > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {elapsed:.3f}s",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "processing_time": elapsed,
                    "threshold": self.slow_request_threshold,
                }
            )

        response.headers["X-Processing-Time"] = f"{elapsed:.3f}"
        return response


class HealthCheckMiddleware(BaseHTTPMiddleware):
    """Answers health checks before any other middleware logs them"""

    HEALTH_PATHS = ("/health", "/healthz", "/ping")

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.HEALTH_PATHS:
            return JSONResponse({"status": "healthy", "timestamp": datetime.utcnow().isoformat()})
        return await call_next(request)
