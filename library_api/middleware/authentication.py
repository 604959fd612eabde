# library_api/middleware/authentication.py
from typing import Optional, Set, Callable, Awaitable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from library_api.core.security import decode_access_token
from library_api.models.enum import ResponseStatus


# Paths reachable without a bearer token
PUBLIC_PATHS: Set[str] = {
    "/",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/v1/auth/token",
}

def is_public_path(path: str) -> bool:
    """Checks if the given path matches a public path or a public prefix."""
    if path in PUBLIC_PATHS:
        return True
    if path.startswith("/docs") or path.startswith("/redoc"):
        return True
    if path.startswith("/health"):
        return True
    return False


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"status": ResponseStatus.FAIL.value, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Rejects protected requests without a valid bearer token and stores the caller identity."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        request_id = getattr(request.state, "request_id", "N/A")

        if is_public_path(path):
            logger.debug(f"RID:{request_id} Public path accessed: {path}. Skipping auth.")
            return await call_next(request)

        authorization: Optional[str] = request.headers.get("Authorization")
        scheme, token = get_authorization_scheme_param(authorization or "")
        if not authorization or scheme.lower() != "bearer" or not token:
            logger.warning(f"RID:{request_id} Auth failed: No valid Bearer token for protected path {path}.")
            return _unauthorized("Not authenticated")

        try:
            identity = decode_access_token(token)
        except JWTError as e:
            logger.warning(f"RID:{request_id} Auth failed: Invalid token for path {path}. Error: {e}")
            return _unauthorized(f"Invalid token: {e}")

        request.state.identity = identity
        logger.debug(f"RID:{request_id} Auth successful for '{identity.id}' ({identity.role.value}) accessing {path}.")
        return await call_next(request)
