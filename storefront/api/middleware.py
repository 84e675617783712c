"""API middleware and request dependencies.

Provides:
- Request ID correlation
- Error handling
- Principal extraction from trusted upstream auth headers
"""

import time
from dataclasses import dataclass
from typing import Annotated, Callable
from uuid import uuid4

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with correlation ID.

        Args:
            request: Incoming request.
            call_next: Next middleware/handler.

        Returns:
            Response with request ID header.
        """
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling.

    Catches exceptions that escape the exception handlers and returns the
    standard error envelope.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", None)
            logger.exception(
                "unhandled_exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error_code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": {},
                    "request_id": request_id,
                },
            )


# ============================================================================
# Principal
# ============================================================================


ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, as asserted by the upstream auth layer."""

    user_id: str
    email: str = ""
    phone: str = ""
    role: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_principal(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_phone: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Principal:
    """Read the caller from trusted headers.

    Raises:
        HTTPException: 401 when no user id is present.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error_code": "UNAUTHORIZED", "message": "Authentication required"},
        )
    return Principal(
        user_id=user_id,
        email=(x_user_email or "").strip(),
        phone=(x_user_phone or "").strip(),
        role=(x_user_role or "").strip().lower(),
    )


def require_admin(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
    """Require an admin caller.

    Raises:
        HTTPException: 403 for non-admin callers.
    """
    if not principal.is_admin:
        logger.warning("admin_access_denied", user_id=principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error_code": "FORBIDDEN", "message": "Admin access required"},
        )
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
AdminPrincipal = Annotated[Principal, Depends(require_admin)]


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
    """
    # Error handling (outermost - catches all errors)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID correlation (innermost for handlers)
    app.add_middleware(RequestIdMiddleware)
