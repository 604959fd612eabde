# library_api/models/book.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, ConfigDict
from pymongo import IndexModel, ASCENDING
from datetime import datetime, timezone


class Book(Document):
    title: str
    author: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "books"
        indexes = [IndexModel([("title", ASCENDING)], name="book_title_index")]


class BookRef(BaseModel):
    """Book fields embedded in a populated borrowing record."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
