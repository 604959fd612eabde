# library_api/services/update_policies.py
"""
Role-specific rules for updating a borrowing record.

Each caller role maps to exactly one policy; handlers never branch on role
themselves. Policies receive the raw request body so that every policy decides
for itself which fields it looks at.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Type

from loguru import logger
from pydantic import ValidationError

from library_api.core.errors import BadRequestError, ForbiddenError, NotFoundError, validation_issues
from library_api.core.security import CallerIdentity
from library_api.models.borrowing import Borrowing
from library_api.models.enum import BorrowingStatus, UserRole
from library_api.repositories.borrowings import BorrowingRepository


class UpdatePolicy(ABC):
    name: str = "base"

    @abstractmethod
    async def apply(
        self,
        repository: BorrowingRepository,
        borrowing_id: str,
        payload: dict,
        caller: CallerIdentity,
    ) -> Borrowing.Read:
        """Apply the update or raise a ServiceError describing why it was refused."""


class SelfReturnOnly(UpdatePolicy):
    """A caller may only mark their own record as returned."""
    name = "self-return-only"

    async def apply(self, repository, borrowing_id, payload, caller):
        existing = await repository.get(borrowing_id)
        if existing is None:
            raise NotFoundError(data=None)

        if not existing.owned_by(caller.id):
            logger.warning(f"Forbidden: caller '{caller.id}' tried to update borrowing '{borrowing_id}' they do not own.")
            raise ForbiddenError()

        requested = payload.get("status")
        if not isinstance(requested, str) or requested.strip().lower() != BorrowingStatus.RETURNED.value:
            raise BadRequestError("Only returning is allowed for users")

        updated = await repository.mark_returned(borrowing_id, caller.id, datetime.now(timezone.utc))
        if updated is None:
            # deleted or reassigned since the ownership check
            raise NotFoundError(data=None)
        logger.info(f"Borrowing '{borrowing_id}' returned by owner '{caller.id}'.")
        return updated


class UnrestrictedUpdate(UpdatePolicy):
    """Any record field may be changed; ownership is not checked."""
    name = "unrestricted"

    async def apply(self, repository, borrowing_id, payload, caller):
        try:
            changes = Borrowing.Update.model_validate(payload).changes()
        except ValidationError as e:
            raise BadRequestError(data=validation_issues(e.errors()))

        updated = await repository.update(borrowing_id, changes)
        if updated is None:
            raise NotFoundError(data=None)
        logger.info(f"Borrowing '{borrowing_id}' updated by {caller.role.value} '{caller.id}': fields={sorted(changes)}")
        return updated


POLICIES_BY_ROLE: Dict[UserRole, Type[UpdatePolicy]] = {
    UserRole.USER: SelfReturnOnly,
    UserRole.ADMIN: UnrestrictedUpdate,
    UserRole.AUTHOR: UnrestrictedUpdate,
}


def policy_for_role(role: UserRole) -> UpdatePolicy:
    try:
        return POLICIES_BY_ROLE[role]()
    except KeyError:
        raise ForbiddenError(f"No update policy for role '{role}'")
