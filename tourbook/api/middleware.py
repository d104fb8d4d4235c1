"""API middleware and exception handlers for logging and error rendering."""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.exceptions import BaseAPIException, BadRequestError
from ..core.logging import RequestLogger
from ..schemas.common import ErrorResponse
from ..config import settings


def error_response(exc: BaseAPIException) -> JSONResponse:
    """Render an API exception as the error envelope."""
    body = ErrorResponse(
        status=exc.status,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/path validation failures are bad requests."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    first = errors[0] if errors else {}
    field = ".".join(part for part in first.get("loc", ()) if part != "body")
    message = f"Invalid input: {field}: {first.get('msg')}" if field else "Invalid input data."
    return error_response(BadRequestError(message, details={"errors": errors}))


HTTP_ERROR_CODES = {
    404: "NOT_FOUND_ERROR",
    405: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) use the same envelope."""
    if exc.status_code == 404:
        message = f"Can't find {request.url.path} on this server."
    else:
        message = str(exc.detail)
    response = error_response(BaseAPIException(
        message,
        status_code=exc.status_code,
        error_code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
    ))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request
        start_time = time.time()
        RequestLogger.log_request(
            method=request.method,
            path=str(request.url.path),
            request_id=request_id,
            extra_data={
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent")
            }
        )

        # Process request
        response = await call_next(request)

        # Calculate response time
        response_time_ms = (time.time() - start_time) * 1000

        # The session guard records the user id on success
        user_id = getattr(request.state, "user_id", None)

        # Log response
        RequestLogger.log_response(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=response_time_ms,
            user_id=user_id,
            request_id=request_id
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for handling exceptions and returning appropriate responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseAPIException as e:
            # Handle custom API exceptions
            return error_response(e)

        except Exception as e:
            # Handle unexpected exceptions
            RequestLogger.log_unhandled_error(
                method=request.method,
                path=str(request.url.path),
                error=e,
                request_id=getattr(request.state, "request_id", None)
            )
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(
                    status="error",
                    message="Something went wrong.",
                    error_code="INTERNAL_ERROR",
                    details={"message": str(e)} if settings.debug else {},
                ).model_dump(mode="json")
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Add security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
