# library_api/core/config.py
import os
import sys
import logging
from pathlib import Path
from dotenv import load_dotenv
from loguru import logger

# --- Load .env from the project root if present ---
project_root = Path(__file__).resolve().parent.parent.parent
dotenv_path = project_root / ".env"
if dotenv_path.is_file():
    logger.info(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path)
else:
    logger.debug(f".env file not found at {dotenv_path}. Relying on system environment variables.")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# --- Intercept standard logging into Loguru ---
class InterceptHandler(logging.Handler):
    """Routes records from the standard logging module to Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    """Configure Loguru sinks and take over uvicorn/fastapi/starlette loggers."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path = Path(os.getenv("LOG_FILE_PATH", "logs/library_{time:YYYY-MM-DD}.log"))
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = _env_flag("LOG_SERIALIZE", False)

    logger.remove()
    logger.add(sys.stderr, level=log_level_name, format=log_format, colorize=True)

    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file_path,
            level=log_level_name,
            format=log_format,
            rotation=log_rotation,
            retention=log_retention,
            serialize=log_serialize,
            enqueue=True,
            backtrace=True,
            diagnose=False,
            encoding="utf-8",
        )
        logger.info(f"File logging enabled at: {log_file_path}")
    except OSError as e:
        logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "fastapi", "starlette")):
            std_logger = logging.getLogger(name)
            std_logger.handlers = [InterceptHandler()]
            std_logger.propagate = False

    logger.info(f"Loguru logging setup complete. Level: {log_level_name}")


# --- JWT Configuration ---
SECRET_KEY: str = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.critical("FATAL: SECRET_KEY environment variable is not set.")
    raise ValueError("SECRET_KEY environment variable is not set.")

ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
try:
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
except ValueError:
    logger.warning("Invalid ACCESS_TOKEN_EXPIRE_MINUTES. Using default: 30.")
    ACCESS_TOKEN_EXPIRE_MINUTES = 30

# --- Database Configuration ---
MONGODB_URL: str = os.getenv("MONGODB_URL")
if not MONGODB_URL:
    logger.critical("FATAL: MONGODB_URL environment variable is not set.")
    raise ValueError("MONGODB_URL environment variable is not set.")

_default_db_name = "library_db"
_url_path = MONGODB_URL.split("://", 1)[-1].partition("/")[2].split("?")[0]
if _url_path:
    _default_db_name = _url_path
DATABASE_NAME: str = os.getenv("DATABASE_NAME", _default_db_name)

# --- Behaviour switches ---
# Existing clients expect 404 for an empty borrowing list.
EMPTY_BORROWING_LIST_NOT_FOUND: bool = _env_flag("EMPTY_BORROWING_LIST_NOT_FOUND", True)
RATE_LIMIT_ENABLED: bool = _env_flag("RATE_LIMIT_ENABLED", True)

logger.debug(f"JWT Algorithm: {ALGORITHM}")
logger.debug(f"Access Token Expire Minutes: {ACCESS_TOKEN_EXPIRE_MINUTES}")
logger.debug(f"Database Name: {DATABASE_NAME}")
