# library_api/db/database.py
from typing import Optional
import motor.motor_asyncio
from beanie import init_beanie
from loguru import logger

from library_api.core.config import MONGODB_URL, DATABASE_NAME
from library_api.models.user import User
from library_api.models.book import Book
from library_api.models.borrowing import Borrowing

_client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None


def get_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    global _client
    if _client is None:
        _client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL)
    return _client


async def init_db():
    """Connect to MongoDB and register the Beanie document models."""
    logger.info("Connecting to MongoDB...")
    database = get_client()[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")
    await init_beanie(database=database, document_models=[User, Book, Borrowing])
    logger.info("Beanie initialization complete for all models.")


def close_db():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed.")
