import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/library_test")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from library_api.core.security import create_access_token
from library_api.main import app
from library_api.models.book import BookRef
from library_api.models.borrowing import Borrowing
from library_api.models.enum import BorrowingStatus, UserRole
from library_api.models.user import UserRef
from library_api.repositories.borrowings import get_borrowing_repository


class InMemoryBorrowingRepository:
    """Stands in for the Beanie repository; keeps raw references and resolves them on read."""

    def __init__(self, users: Dict[str, UserRef], books: Dict[str, BookRef]):
        self.users = users
        self.books = books
        self.records: Dict[str, dict] = {}
        self.calls: List[str] = []

    def _resolve(self, raw: dict) -> Borrowing.Read:
        return Borrowing.Read(
            id=raw["id"],
            user=self.users.get(raw["user"]),
            book=self.books.get(raw["book"]) if raw["book"] else None,
            borrowed_at=raw["borrowed_at"],
            returned_at=raw["returned_at"],
            status=raw["status"],
            created_at=raw["created_at"],
            updated_at=raw["updated_at"],
        )

    def seed(self, user_id: str, book_id: Optional[str] = None, status=BorrowingStatus.BORROWED) -> str:
        now = datetime.now(timezone.utc)
        borrowing_id = str(ObjectId())
        self.records[borrowing_id] = {
            "id": borrowing_id,
            "user": user_id,
            "book": book_id,
            "borrowed_at": now,
            "returned_at": None,
            "status": status,
            "created_at": now,
            "updated_at": now,
        }
        return borrowing_id

    async def list_all(self):
        self.calls.append("list_all")
        raws = sorted(self.records.values(), key=lambda r: r["borrowed_at"], reverse=True)
        return [self._resolve(raw) for raw in raws]

    async def get(self, borrowing_id):
        self.calls.append("get")
        raw = self.records.get(borrowing_id)
        return self._resolve(raw) if raw else None

    async def create(self, *, user_id, book_id, borrowed_at, returned_at, status):
        self.calls.append("create")
        borrowing_id = self.seed(user_id, book_id, status)
        self.records[borrowing_id].update(borrowed_at=borrowed_at, returned_at=returned_at)
        return self._resolve(self.records[borrowing_id])

    async def update(self, borrowing_id, changes):
        self.calls.append("update")
        raw = self.records.get(borrowing_id)
        if raw is None:
            return None
        raw.update(changes, updated_at=datetime.now(timezone.utc))
        return self._resolve(raw)

    async def mark_returned(self, borrowing_id, owner_id, returned_at):
        self.calls.append("mark_returned")
        raw = self.records.get(borrowing_id)
        if raw is None or raw["user"] != owner_id:
            return None
        raw.update(status=BorrowingStatus.RETURNED, returned_at=returned_at, updated_at=returned_at)
        return self._resolve(raw)

    async def delete(self, borrowing_id):
        self.calls.append("delete")
        raw = self.records.pop(borrowing_id, None)
        return self._resolve(raw) if raw else None


ACCOUNTS = {
    "admin": (UserRole.ADMIN, "admin@library.test"),
    "author": (UserRole.AUTHOR, "author@library.test"),
    "alice": (UserRole.USER, "alice@library.test"),
    "bob": (UserRole.USER, None),
}


@pytest.fixture
def accounts():
    """username -> (user id, role)"""
    return {name: (str(ObjectId()), role) for name, (role, _) in ACCOUNTS.items()}


@pytest.fixture
def books():
    return {
        "dune": BookRef(id=str(ObjectId()), title="Dune"),
        "emma": BookRef(id=str(ObjectId()), title="Emma"),
    }


@pytest.fixture
def repository(accounts, books):
    users = {
        user_id: UserRef(id=user_id, username=name, email=ACCOUNTS[name][1])
        for name, (user_id, _) in accounts.items()
    }
    return InMemoryBorrowingRepository(users, {book.id: book for book in books.values()})


@pytest.fixture
def client(repository):
    app.dependency_overrides[get_borrowing_repository] = lambda: repository
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(accounts):
    def _headers(username: str) -> dict:
        user_id, role = accounts[username]
        token = create_access_token({"sub": user_id, "role": role.value, "username": username})
        return {"Authorization": f"Bearer {token}"}
    return _headers
