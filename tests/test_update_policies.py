import asyncio

import pytest
from bson import ObjectId

from library_api.core.errors import BadRequestError, ForbiddenError, NotFoundError
from library_api.core.security import CallerIdentity
from library_api.models.enum import BorrowingStatus, UserRole
from library_api.services.update_policies import SelfReturnOnly, UnrestrictedUpdate, UpdatePolicy, policy_for_role


def caller(accounts, username):
    user_id, role = accounts[username]
    return CallerIdentity(id=user_id, role=role, username=username)


@pytest.mark.parametrize(
    "role, expected",
    [(UserRole.USER, SelfReturnOnly), (UserRole.ADMIN, UnrestrictedUpdate), (UserRole.AUTHOR, UnrestrictedUpdate)],
)
def test_policy_is_selected_by_role(role, expected):
    assert isinstance(policy_for_role(role), expected)


def test_self_return_only_checks_ownership_before_payload(repository, accounts):
    borrowing_id = repository.seed(accounts["bob"][0])
    with pytest.raises(ForbiddenError):
        asyncio.run(SelfReturnOnly().apply(repository, borrowing_id, {"status": 5}, caller(accounts, "alice")))
    assert repository.calls == ["get"]


def test_self_return_only_rejects_non_string_status(repository, accounts):
    borrowing_id = repository.seed(accounts["alice"][0])
    with pytest.raises(BadRequestError):
        asyncio.run(SelfReturnOnly().apply(repository, borrowing_id, {"status": ["returned"]}, caller(accounts, "alice")))


def test_self_return_only_marks_returned(repository, accounts):
    borrowing_id = repository.seed(accounts["alice"][0])
    result = asyncio.run(SelfReturnOnly().apply(repository, borrowing_id, {"status": " returned "}, caller(accounts, "alice")))
    assert result.status == BorrowingStatus.RETURNED
    assert result.returned_at is not None
    assert repository.calls == ["get", "mark_returned"]


def test_self_return_only_reports_record_gone_after_check(repository, accounts):
    borrowing_id = repository.seed(accounts["alice"][0])

    original_get = repository.get

    async def get_then_delete(record_id):
        record = await original_get(record_id)
        repository.records.pop(record_id)
        return record

    repository.get = get_then_delete
    with pytest.raises(NotFoundError):
        asyncio.run(SelfReturnOnly().apply(repository, borrowing_id, {"status": "returned"}, caller(accounts, "alice")))


def test_self_return_only_treats_dangling_owner_as_foreign(repository, accounts):
    borrowing_id = repository.seed(str(ObjectId()))
    with pytest.raises(ForbiddenError):
        asyncio.run(SelfReturnOnly().apply(repository, borrowing_id, {"status": "returned"}, caller(accounts, "alice")))


def test_unrestricted_update_merges_only_sent_fields(repository, accounts, books):
    borrowing_id = repository.seed(accounts["alice"][0], books["dune"].id)
    result = asyncio.run(
        UnrestrictedUpdate().apply(repository, borrowing_id, {"returnedAt": None, "status": "Overdue"}, caller(accounts, "author"))
    )
    assert result.status == BorrowingStatus.OVERDUE
    assert result.book.title == "Dune"
    assert result.returned_at is None


def test_unrestricted_update_rejects_null_owner(repository, accounts):
    borrowing_id = repository.seed(accounts["alice"][0])
    with pytest.raises(BadRequestError) as excinfo:
        asyncio.run(UnrestrictedUpdate().apply(repository, borrowing_id, {"user": None}, caller(accounts, "admin")))
    assert excinfo.value.data
    assert "update" not in repository.calls


def test_update_policy_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        UpdatePolicy()

    class Incomplete(UpdatePolicy):
        name = "incomplete"

    with pytest.raises(TypeError):
        Incomplete()
