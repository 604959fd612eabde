# library_api/models/borrowing.py
from typing import Optional, Any, List, Generic, TypeVar
from beanie import Document, Link
from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime, timezone

from .user import User, UserRef
from .book import Book, BookRef
from .enum import BorrowingStatus, ResponseStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _lower_status(value: Any) -> Any:
    # Clients send "Returned", "RETURNED", ...
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_object_id(value: Optional[str], field_name: str) -> Optional[str]:
    if value is not None and not ObjectId.is_valid(value):
        raise ValueError(f"'{field_name}' must be a valid id")
    return value


class Borrowing(Document):
    user: Link[User]
    book: Optional[Link[Book]] = None
    borrowed_at: datetime = Field(default_factory=_utcnow)
    returned_at: Optional[datetime] = None
    status: BorrowingStatus = BorrowingStatus.BORROWED
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "borrowings"
        indexes = [
            IndexModel([("user.$id", ASCENDING)], name="borrowing_user_index"),
            IndexModel([("borrowed_at", DESCENDING)], name="borrowing_borrowed_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        """Body of POST /borrowings. The owner always comes from the token."""
        model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

        book: Optional[str] = None
        borrowed_at: Optional[datetime] = None
        returned_at: Optional[datetime] = None
        status: Optional[BorrowingStatus] = None

        @field_validator("status", mode="before")
        @classmethod
        def normalize_status(cls, v):
            return _lower_status(v)

        @field_validator("book")
        @classmethod
        def book_must_be_object_id(cls, v):
            return _check_object_id(v, "book")

    class Update(BaseModel):
        """Partial record for PUT /borrowings/{id}; only fields the client sent are applied."""
        model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

        user: Optional[str] = None
        book: Optional[str] = None
        borrowed_at: Optional[datetime] = None
        returned_at: Optional[datetime] = None
        status: Optional[BorrowingStatus] = None

        @field_validator("status", mode="before")
        @classmethod
        def normalize_status(cls, v):
            return _lower_status(v)

        @field_validator("user", "book")
        @classmethod
        def refs_must_be_object_ids(cls, v, info):
            return _check_object_id(v, info.field_name)

        @model_validator(mode="after")
        def required_fields_not_null(self):
            for name in ("user", "borrowed_at", "status"):
                if name in self.model_fields_set and getattr(self, name) is None:
                    raise ValueError(f"'{to_camel(name)}' cannot be null")
            return self

        def changes(self) -> dict:
            return self.model_dump(exclude_unset=True)

    class Read(BaseModel):
        """A borrowing record with its user and book already resolved."""
        model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

        id: str
        user: Optional[UserRef] = None
        book: Optional[BookRef] = None
        borrowed_at: datetime
        returned_at: Optional[datetime] = None
        status: BorrowingStatus
        created_at: Optional[datetime] = None
        updated_at: Optional[datetime] = None

        def owned_by(self, user_id: str) -> bool:
            return self.user is not None and self.user.id == str(user_id)


DataT = TypeVar("DataT")

class Envelope(BaseModel, Generic[DataT]):
    status: ResponseStatus = ResponseStatus.SUCCESS
    data: DataT

class MessageEnvelope(BaseModel):
    status: ResponseStatus = ResponseStatus.FAIL
    message: str

BorrowingEnvelope = Envelope[Optional[Borrowing.Read]]
BorrowingListEnvelope = Envelope[List[Borrowing.Read]]

Borrowing.model_rebuild()
