# library_api/core/errors.py
from typing import Any, Optional
from fastapi import status

from library_api.models.enum import ResponseStatus


class ServiceError(Exception):
    """
    An expected failure that maps directly onto a FAIL envelope.
    Carries either a `message` or a `data` payload, never both.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: Optional[str] = None

    def __init__(self, message: Optional[str] = None, data: Any = None):
        self.message = message if message is not None else self.default_message
        self.data = data
        super().__init__(self.message or self.__class__.__name__)

    def to_content(self) -> dict:
        if self.message is not None:
            return {"status": ResponseStatus.FAIL.value, "message": self.message}
        return {"status": ResponseStatus.FAIL.value, "data": self.data}


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    """Absence is reported with the (empty) data that was looked up."""
    status_code = status.HTTP_404_NOT_FOUND


def validation_issues(errors) -> list:
    """Reduce pydantic error dicts to their JSON-safe parts."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]
