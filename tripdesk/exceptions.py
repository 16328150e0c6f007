"""
Application errors for the admin back-office.

Each error carries a stable code and the HTTP status it maps to. Routers
never catch these; the handlers registered in ``main.py`` turn them into
``{"success": false, "error": ..., "code": ...}`` responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TIMEOUT = "TIMEOUT"
    STORE_ERROR = "STORE_ERROR"


class TripDeskError(Exception):
    """Base exception for all back-office errors."""

    status_code = 500

    def __init__(self, message: str, code: ErrorCode = ErrorCode.STORE_ERROR):
        self.message = message
        self.code = code
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return self.message


class NotFoundError(TripDeskError):
    """The entity id does not resolve."""

    status_code = 404

    def __init__(self, resource: str, resource_id: int | str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found", ErrorCode.NOT_FOUND)


class ValidationError(TripDeskError):
    """A required action field is missing or malformed."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.VALIDATION_ERROR)


class InvalidTransitionError(TripDeskError):
    """The action is not allowed from the entity's current state."""

    status_code = 409

    def __init__(self, resource: str, action: str, current_state: str):
        self.resource = resource
        self.action = action
        self.current_state = current_state
        super().__init__(
            f"Cannot {action} {resource} while it is {current_state}",
            ErrorCode.INVALID_TRANSITION,
        )


class RequestTimeoutError(TripDeskError):
    status_code = 504

    def __init__(self, message: str = "The request timed out"):
        super().__init__(message, ErrorCode.TIMEOUT)


class StoreError(TripDeskError):
    """The data store failed. Details are logged, never sent to the client."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.STORE_ERROR)

    @property
    def public_message(self) -> str:
        return "Failed to process request"
