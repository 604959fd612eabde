# library_api/core/rate_limiter.py
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request

from library_api.core.config import RATE_LIMIT_ENABLED
from library_api.models.enum import ResponseStatus

# In-memory storage; pass storage_uri="redis://..." for multi-process deployments
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

def get_rate_limiter() -> Limiter:
    return limiter

def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={"status": ResponseStatus.FAIL.value, "message": f"Rate limit exceeded: {exc.detail}"},
    )
