from datetime import timedelta

import pytest
from bson import ObjectId
from jose import JWTError, jwt

from library_api.core.config import SECRET_KEY, ALGORITHM
from library_api.core.security import create_access_token, decode_access_token, get_password_hash
from library_api.main import app
from library_api.middleware.authentication import is_public_path
from library_api.models.enum import UserRole
from library_api.models.user import UserRef
from library_api.repositories.users import UserAccount, get_user_repository


class InMemoryUserRepository:
    def __init__(self, *accounts: UserAccount):
        self.accounts = {account.username: account for account in accounts}

    async def find_by_username(self, username):
        return self.accounts.get(username)


@pytest.fixture
def user_repository():
    return InMemoryUserRepository(
        UserAccount(id=str(ObjectId()), username="carol", hashed_password=get_password_hash("s3cret"), role=UserRole.AUTHOR),
        UserAccount(id=str(ObjectId()), username="dave", hashed_password=get_password_hash("s3cret"), role=UserRole.USER, disabled=True),
    )


@pytest.fixture
def login_client(client, user_repository):
    app.dependency_overrides[get_user_repository] = lambda: user_repository
    return client


def test_token_round_trip():
    user_id = str(ObjectId())
    identity = decode_access_token(create_access_token({"sub": user_id, "role": "Author", "username": "carol"}))
    assert identity.id == user_id
    assert identity.role == UserRole.AUTHOR
    assert identity.username == "carol"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "x", "role": "User"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_unknown_role_claim_is_rejected():
    with pytest.raises(JWTError):
        decode_access_token(create_access_token({"sub": "x", "role": "Librarian"}))


def test_token_signed_with_other_key_is_rejected(client):
    token = jwt.encode({"sub": "x", "role": "Admin"}, SECRET_KEY + "-other", algorithm=ALGORITHM)
    response = client.get("/api/v1/borrowings/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_non_bearer_scheme_is_rejected(client):
    response = client.get("/api/v1/borrowings/", headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert response.status_code == 401
    assert response.json() == {"status": "FAIL", "message": "Not authenticated"}


def test_public_paths():
    assert is_public_path("/")
    assert is_public_path("/health/db")
    assert is_public_path("/api/v1/auth/token")
    assert not is_public_path("/api/v1/borrowings/")


def test_login_issues_token_with_identity(login_client, user_repository):
    response = login_client.post("/api/v1/auth/token", data={"username": "carol", "password": "s3cret"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    identity = decode_access_token(body["access_token"])
    assert identity.id == user_repository.accounts["carol"].id
    assert identity.role == UserRole.AUTHOR


def test_login_with_wrong_password(login_client):
    response = login_client.post("/api/v1/auth/token", data={"username": "carol", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"status": "FAIL", "message": "Incorrect username or password"}


def test_login_disabled_user(login_client):
    response = login_client.post("/api/v1/auth/token", data={"username": "dave", "password": "s3cret"})
    assert response.status_code == 400
    assert response.json()["message"] == "Inactive user"


def test_issued_token_works_against_borrowings(login_client, repository, user_repository):
    carol = user_repository.accounts["carol"]
    repository.users[carol.id] = UserRef(id=carol.id, username="carol")
    token = login_client.post("/api/v1/auth/token", data={"username": "carol", "password": "s3cret"}).json()["access_token"]
    response = login_client.post("/api/v1/borrowings/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 201
    assert response.json()["data"]["user"]["username"] == "carol"
