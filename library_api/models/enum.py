# library_api/models/enum.py
from enum import Enum

class UserRole(str, Enum):
    ADMIN = "Admin"
    AUTHOR = "Author"
    USER = "User"

class BorrowingStatus(str, Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    # Users can only move their own record to RETURNED through an update;
    # OVERDUE and LOST come from admin/author updates or from the create body.
    OVERDUE = "overdue"
    LOST = "lost"

class ResponseStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    ERROR = "ERROR"
