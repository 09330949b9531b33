# slotwise/core/exceptions.py
"""Application error taxonomy raised by services and mapped to HTTP responses"""
from typing import Optional


class AppError(Exception):
    """Base class for all expected application errors"""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(AppError):
    """Referenced tenant, service, provider or booking does not exist"""
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(AppError):
    """Malformed input or a violated business rule"""
    code = "VALIDATION"
    status_code = 422


class ConflictError(AppError):
    """Requested slot is no longer available"""
    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, lost_race: bool = False):
        super().__init__(message)
        # True when the storage constraint rejected the insert after validation passed
        self.lost_race = lost_race


class ForbiddenError(AppError):
    """Caller lacks the capability for the operation"""
    code = "FORBIDDEN"
    status_code = 403


class InternalError(AppError):
    """Unexpected storage or system failure"""
    code = "INTERNAL"
    status_code = 500
