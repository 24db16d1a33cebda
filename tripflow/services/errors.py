"""
Error taxonomy for backend capabilities.

Backends raise these; the orchestrator decides whether a failure blocks
a transition, returns the traveler to Start, or is only logged.
"""

from typing import Optional


class BackendError(Exception):
    """Base error for any failed backend capability call."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class BackendUnavailableError(BackendError):
    """The backend could not be reached (connection failure, timeout)."""

    pass


class SessionNotFoundError(BackendError):
    """No session resource exists for the given locator."""

    pass


class GenerationFailedError(BackendError):
    """The generation service produced no usable itinerary."""

    pass


class PaymentError(BackendError):
    """Checkout could not be initialised by the payment provider."""

    pass
