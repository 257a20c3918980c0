"""
Custom exception classes for the training logic engines.

Every failure carries a stable error_code so the calling API layer can map
it to user-facing messaging without string matching.
"""
from typing import Optional


class TrainingLogicError(Exception):
    """Base engine exception with consistent structure."""

    error_code = "TRAINING_LOGIC_ERROR"

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "detail": self.detail}


class DataUnavailable(TrainingLogicError):
    """The persistence collaborator failed or returned an unexpected shape."""

    error_code = "DATA_UNAVAILABLE"

    def __init__(self, detail: str, source: Optional[str] = None):
        if source:
            detail = f"{source}: {detail}"
        super().__init__(detail)
        self.source = source


class DeloadAlreadyActive(TrainingLogicError):
    """A deload is already running for this user."""

    error_code = "DELOAD_ALREADY_ACTIVE"

    def __init__(self, user_id: str, deload_id: Optional[str] = None):
        detail = f"User {user_id} already has an active deload"
        if deload_id:
            detail += f" ({deload_id})"
        super().__init__(detail)
        self.user_id = user_id
        self.deload_id = deload_id


class InvalidInput(TrainingLogicError):
    """Malformed numeric input to a pure function (caller bug)."""

    error_code = "INVALID_INPUT"

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"INVALID_INPUT_{field.upper()}" if field else "INVALID_INPUT"
        super().__init__(detail, error_code=error_code)
        self.field = field
