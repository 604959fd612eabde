# library_api/repositories/users.py
from typing import Optional
from pydantic import BaseModel

from library_api.models.user import User
from library_api.models.enum import UserRole


class UserAccount(BaseModel):
    """What the login flow needs to know about a stored user."""
    id: str
    username: str
    hashed_password: str
    role: UserRole
    disabled: bool = False


class UserRepository:
    async def find_by_username(self, username: str) -> Optional[UserAccount]:
        user = await User.find_one(User.username == username)
        if user is None:
            return None
        return UserAccount(
            id=str(user.id),
            username=user.username,
            hashed_password=user.hashed_password,
            role=user.role,
            disabled=user.disabled,
        )

    async def create(self, user: User) -> User:
        await user.insert()
        return user


def get_user_repository() -> UserRepository:
    return UserRepository()
