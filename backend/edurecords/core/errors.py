from typing import Dict, Optional


class RecordError(Exception):
    """Base class for failures raised by the attendance/marks workflow."""

    message = "Server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(RecordError):
    """Malformed payload. Carries field-level detail for the caller."""

    message = "Validation failed"

    def __init__(self, fields: Dict[str, str], message: Optional[str] = None):
        super().__init__(message)
        self.fields = fields


class AuthorizationError(RecordError):
    """Principal may not act on the batch. Never carries detail."""

    message = "Forbidden"


class StoreError(RecordError):
    """The database rejected or failed the write."""


class XPUpdateError(RecordError):
    """XP award could not be persisted. Logged only, never surfaced."""

    message = "XP update failed"
