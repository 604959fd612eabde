# create_admin.py
"""Interactive bootstrap of the first Admin account."""
import asyncio
from getpass import getpass

from library_api.core.security import get_password_hash
from library_api.db.database import init_db, close_db
from library_api.models.enum import UserRole
from library_api.models.user import User
from library_api.repositories.users import UserRepository


def prompt_non_empty(label: str, secret: bool = False) -> str:
    while True:
        value = getpass(label) if secret else input(label).strip()
        if value:
            return value
        print("Value cannot be empty.")


async def create_initial_admin():
    print("--- Create Initial Admin User ---")
    try:
        await init_db()
    except Exception as e:
        print(f"Error connecting to database: {e}")
        return

    users = UserRepository()
    try:
        username = prompt_non_empty("Enter admin username: ")
        if await users.find_by_username(username):
            print(f"Error: Username '{username}' already exists.")
            return

        while True:
            password = prompt_non_empty("Enter admin password: ", secret=True)
            if password == getpass("Confirm admin password: "):
                break
            print("Passwords do not match. Please try again.")

        email = input("Enter admin email (optional, press Enter to skip): ").strip() or None
        full_name = input("Enter admin full name (optional, press Enter to skip): ").strip() or None

        admin_user = User(
            username=username,
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            disabled=False,
        )
        await users.create(admin_user)
        print(f"Admin user '{username}' created successfully!")
    finally:
        close_db()


if __name__ == "__main__":
    asyncio.run(create_initial_admin())
