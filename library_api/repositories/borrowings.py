# library_api/repositories/borrowings.py
from typing import List, Optional, Any
from datetime import datetime, timezone

from beanie import PydanticObjectId
from beanie.odm.operators.update.general import Set
from beanie.odm.queries.update import UpdateResponse
from bson import ObjectId
from bson.dbref import DBRef
from enum import Enum
from loguru import logger

from library_api.models.borrowing import Borrowing
from library_api.models.book import Book, BookRef
from library_api.models.user import User, UserRef
from library_api.models.enum import BorrowingStatus


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands datetimes back naive, in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user_ref(user: Any) -> Optional[UserRef]:
    if isinstance(user, User):
        return UserRef(id=str(user.id), username=user.username, email=user.email)
    return None  # dangling Link: the user was removed


def _book_ref(book: Any) -> Optional[BookRef]:
    if isinstance(book, Book):
        return BookRef(id=str(book.id), title=book.title)
    return None


def to_read(doc: Borrowing) -> Borrowing.Read:
    """Convert a Borrowing whose links were fetched into its resolved read model."""
    return Borrowing.Read(
        id=str(doc.id),
        user=_user_ref(doc.user),
        book=_book_ref(doc.book),
        borrowed_at=_as_utc(doc.borrowed_at),
        returned_at=_as_utc(doc.returned_at),
        status=doc.status,
        created_at=_as_utc(doc.created_at),
        updated_at=_as_utc(doc.updated_at),
    )


def _ref(document_class, object_id: Optional[str]) -> Optional[DBRef]:
    if object_id is None:
        return None
    return DBRef(document_class.Settings.name, ObjectId(object_id))


class BorrowingRepository:
    """
    Beanie-backed store for borrowing records.

    Every read path returns Borrowing.Read with user and book resolved, so callers
    never deal with raw references.
    """

    async def list_all(self) -> List[Borrowing.Read]:
        docs = await Borrowing.find_all(fetch_links=True).sort("-borrowed_at").to_list()
        return [to_read(doc) for doc in docs]

    async def get(self, borrowing_id: str) -> Optional[Borrowing.Read]:
        doc = await Borrowing.get(PydanticObjectId(borrowing_id), fetch_links=True)
        return to_read(doc) if doc else None

    async def create(
        self,
        *,
        user_id: str,
        book_id: Optional[str],
        borrowed_at: datetime,
        returned_at: Optional[datetime],
        status: BorrowingStatus,
    ) -> Borrowing.Read:
        now = datetime.now(timezone.utc)
        doc = Borrowing(
            user=_ref(User, user_id),
            book=_ref(Book, book_id),
            borrowed_at=borrowed_at,
            returned_at=returned_at,
            status=status,
            created_at=now,
            updated_at=now,
        )
        await doc.insert()
        logger.info(f"Borrowing '{doc.id}' created for user '{user_id}'.")
        await doc.fetch_all_links()
        return to_read(doc)

    async def _update_one(self, query: dict, changes: dict) -> Optional[Borrowing.Read]:
        payload = {}
        for field, value in changes.items():
            if field == "user":
                value = _ref(User, value)
            elif field == "book":
                value = _ref(Book, value)
            elif isinstance(value, Enum):
                value = value.value
            payload[field] = value
        payload["updated_at"] = datetime.now(timezone.utc)

        doc = await Borrowing.find_one(query).update(
            Set(payload), response_type=UpdateResponse.NEW_DOCUMENT
        )
        if doc is None:
            return None
        await doc.fetch_all_links()
        return to_read(doc)

    async def update(self, borrowing_id: str, changes: dict) -> Optional[Borrowing.Read]:
        """Merge `changes` onto the record in a single update-by-id."""
        return await self._update_one({"_id": ObjectId(borrowing_id)}, changes)

    async def mark_returned(
        self, borrowing_id: str, owner_id: str, returned_at: datetime
    ) -> Optional[Borrowing.Read]:
        """Set status=returned and returnedAt, only while the record still belongs to owner_id."""
        if not ObjectId.is_valid(owner_id):
            return None
        return await self._update_one(
            {"_id": ObjectId(borrowing_id), "user.$id": ObjectId(owner_id)},
            {"status": BorrowingStatus.RETURNED, "returned_at": returned_at},
        )

    async def delete(self, borrowing_id: str) -> Optional[Borrowing.Read]:
        """Remove a record, returning its state from just before removal."""
        oid = PydanticObjectId(borrowing_id)
        doc = await Borrowing.get(oid, fetch_links=True)
        if doc is None:
            return None
        prior = to_read(doc)
        result = await Borrowing.find_one({"_id": oid}).delete()
        if result is None or result.deleted_count == 0:
            return None
        logger.info(f"Borrowing '{borrowing_id}' deleted.")
        return prior


def get_borrowing_repository() -> BorrowingRepository:
    return BorrowingRepository()
