# library_api/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status as fastapi_status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.errors import PyMongoError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from library_api.core.config import setup_logging
from library_api.core.errors import ServiceError, validation_issues
from library_api.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from library_api.db.database import init_db, close_db, get_client
from library_api.middleware.authentication import AuthMiddleware
from library_api.middleware.logging import RequestLoggingMiddleware
from library_api.api.v1.api import api_router_v1
from library_api.models.enum import ResponseStatus


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application startup...")
    await init_db()
    yield
    logger.info("Application shutdown...")
    close_db()


app = FastAPI(
    title="Library Borrowing API",
    description="Borrowing records for the library, with role-based access.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Error Handling ---
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.info(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.status_code} {exc.message or ''}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_content()))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    issues = validation_issues(exc.errors())
    logger.warning(f"Validation Error on {request.method} {request.url.path}: {issues}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_400_BAD_REQUEST,
        content={"status": ResponseStatus.FAIL.value, "data": issues},
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": ResponseStatus.FAIL.value, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": ResponseStatus.ERROR.value, "message": "An internal server error occurred."},
    )

# --- Middleware (last added runs first) ---
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)
app.state.limiter = get_rate_limiter()

app.include_router(api_router_v1)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Library Borrowing API!"}


@app.get("/health/db")
async def ping_mongodb():
    try:
        await get_client().admin.command("ping")
    except PyMongoError as e:
        logger.error(f"MongoDB ping failed: {e}")
        return JSONResponse(
            status_code=fastapi_status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": ResponseStatus.FAIL.value, "message": "MongoDB connection failed."},
        )
    return {"status": ResponseStatus.SUCCESS.value, "message": "MongoDB connection is healthy."}
