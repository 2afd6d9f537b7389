"""
Error taxonomy shared by the order services and the HTTP layer.

Every error carries a machine-checkable ``kind`` and a human-readable
message. Extra keyword context is kept for logging and is never sent to
API callers.
"""

from typing import Any


class WorkshopError(Exception):
    """Base exception for workshop business errors."""

    kind = "workshop_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Public representation of the error."""
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(WorkshopError):
    """Raised when caller input is missing or malformed."""

    kind = "validation_error"


class AuthenticationError(WorkshopError):
    """Raised when the acting advisor cannot be identified."""

    kind = "unauthorized"


class NotFoundError(WorkshopError):
    """Raised when a referenced order or entity does not exist."""

    kind = "not_found"


class ConflictError(WorkshopError):
    """Raised on exhausted order-number retries or illegal transitions."""

    kind = "conflict"


class InvalidTransitionError(ConflictError):
    """Raised when an order cannot move to the requested status."""

    def __init__(self, message: str, current_status: Any, target_status: Any, **context: Any):
        super().__init__(message, **context)
        self.current_status = current_status
        self.target_status = target_status


class StorageError(WorkshopError):
    """Raised when the persistence layer fails for non-business reasons."""

    kind = "storage_error"


class OrderNumberConflictError(Exception):
    """
    Raised by the store when an order number is already taken.

    Internal to order creation: the lifecycle manager retries on it and
    only reports ConflictError once its attempts are exhausted.
    """

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} is already taken")
        self.order_number = order_number
