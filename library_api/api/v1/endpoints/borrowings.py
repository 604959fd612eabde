# library_api/api/v1/endpoints/borrowings.py
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Depends, Path, Request, Response, status
from loguru import logger
from datetime import datetime, timezone

from library_api.core.config import EMPTY_BORROWING_LIST_NOT_FOUND
from library_api.core.errors import AuthenticationError, BadRequestError, NotFoundError
from library_api.core.rate_limiter import limiter
from library_api.core.security import CallerIdentity, get_current_identity, require_admin, require_any_role
from library_api.models.borrowing import (
    Borrowing,
    BorrowingEnvelope,
    BorrowingListEnvelope,
    MessageEnvelope,
)
from library_api.models.enum import BorrowingStatus, ResponseStatus
from library_api.repositories.borrowings import BorrowingRepository, get_borrowing_repository
from library_api.services.update_policies import policy_for_role

router = APIRouter(tags=["Borrowings"])

FAIL_RESPONSES = {
    400: {"model": MessageEnvelope},
    401: {"model": MessageEnvelope},
    403: {"model": MessageEnvelope},
    404: {"model": BorrowingEnvelope},
}


def check_borrowing_id(borrowing_id: str) -> str:
    borrowing_id = (borrowing_id or "").strip()
    if not borrowing_id:
        raise BadRequestError("Borrowing ID is required")
    if not ObjectId.is_valid(borrowing_id):
        raise BadRequestError("Invalid borrowing ID format")
    return borrowing_id


# --- GET / ---
@router.get("/", response_model=BorrowingListEnvelope, responses=FAIL_RESPONSES)
@limiter.limit("120/minute")
async def list_borrowings(
    request: Request,
    response: Response,
    caller: CallerIdentity = Depends(get_current_identity),
    repository: BorrowingRepository = Depends(get_borrowing_repository),
):
    """All borrowing records with user and book populated."""
    borrowings = await repository.list_all()
    if not borrowings and EMPTY_BORROWING_LIST_NOT_FOUND:
        response.status_code = status.HTTP_404_NOT_FOUND
        return BorrowingListEnvelope(status=ResponseStatus.FAIL, data=[])
    return BorrowingListEnvelope(status=ResponseStatus.SUCCESS, data=borrowings)


# --- POST / ---
@router.post(
    "/",
    response_model=BorrowingEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=FAIL_RESPONSES,
)
@limiter.limit("30/minute")
async def add_borrowing(
    request: Request,
    borrowing_in: Optional[Borrowing.Create] = Body(None),
    caller: CallerIdentity = Depends(require_any_role),
    repository: BorrowingRepository = Depends(get_borrowing_repository),
):
    """
    Borrow a book for the calling user. The owner is always the caller.

    Tokens without a subject are already refused by AuthMiddleware; the id check
    below covers identities supplied some other way (overridden dependencies).
    """
    if not caller.id:
        raise AuthenticationError()
    borrowing_in = borrowing_in or Borrowing.Create()

    borrowing = await repository.create(
        user_id=caller.id,
        book_id=borrowing_in.book,
        borrowed_at=borrowing_in.borrowed_at or datetime.now(timezone.utc),
        returned_at=borrowing_in.returned_at,
        status=borrowing_in.status or BorrowingStatus.BORROWED,
    )
    return BorrowingEnvelope(status=ResponseStatus.SUCCESS, data=borrowing)


# --- PUT / (no id) ---
@router.put("/", response_model=MessageEnvelope, include_in_schema=False)
async def update_borrowing_without_id(caller: CallerIdentity = Depends(require_any_role)):
    raise BadRequestError("Borrowing ID is required")


# --- GET /{borrowing_id} ---
@router.get("/{borrowing_id}", response_model=BorrowingEnvelope, responses=FAIL_RESPONSES)
@limiter.limit("120/minute")
async def get_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    caller: CallerIdentity = Depends(get_current_identity),
    repository: BorrowingRepository = Depends(get_borrowing_repository),
):
    borrowing = await repository.get(check_borrowing_id(borrowing_id))
    if borrowing is None:
        raise NotFoundError(data=None)
    return BorrowingEnvelope(status=ResponseStatus.SUCCESS, data=borrowing)


# --- PUT /{borrowing_id} ---
@router.put("/{borrowing_id}", response_model=BorrowingEnvelope, responses=FAIL_RESPONSES)
@limiter.limit("60/minute")
async def update_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    payload: Optional[dict] = Body(None),
    caller: CallerIdentity = Depends(require_any_role),
    repository: BorrowingRepository = Depends(get_borrowing_repository),
):
    """
    Update a borrowing record.

    Users may only mark their own record as returned (`{"status": "returned"}`);
    Admins and Authors may change any field of any record.
    """
    borrowing_id = check_borrowing_id(borrowing_id)
    policy = policy_for_role(caller.role)
    logger.debug(f"Updating borrowing '{borrowing_id}' with policy '{policy.name}' for {caller.role.value} '{caller.id}'.")
    borrowing = await policy.apply(repository, borrowing_id, payload or {}, caller)
    return BorrowingEnvelope(status=ResponseStatus.SUCCESS, data=borrowing)


# --- DELETE /{borrowing_id} ---
@router.delete("/{borrowing_id}", response_model=BorrowingEnvelope, responses=FAIL_RESPONSES)
@limiter.limit("30/minute")
async def delete_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    caller: CallerIdentity = Depends(require_admin),
    repository: BorrowingRepository = Depends(get_borrowing_repository),
):
    borrowing = await repository.delete(check_borrowing_id(borrowing_id))
    if borrowing is None:
        raise NotFoundError(data=None)
    logger.info(f"Admin '{caller.id}' deleted borrowing '{borrowing_id}'.")
    return BorrowingEnvelope(status=ResponseStatus.SUCCESS, data=borrowing)
