"""
Backend capabilities used by the wizard.

Exports the abstract backend, its two implementations, and the error
taxonomy.
"""

from tripflow.services.base import PlannerBackend
from tripflow.services.client import close_cached_backend, create_backend, get_cached_backend
from tripflow.services.errors import (
    BackendError,
    BackendUnavailableError,
    GenerationFailedError,
    PaymentError,
    SessionNotFoundError,
)
from tripflow.services.http_client import HttpPlannerBackend
from tripflow.services.memory import InMemoryBackend

__all__ = [
    "PlannerBackend",
    "InMemoryBackend",
    "HttpPlannerBackend",
    "create_backend",
    "get_cached_backend",
    "close_cached_backend",
    "BackendError",
    "BackendUnavailableError",
    "SessionNotFoundError",
    "GenerationFailedError",
    "PaymentError",
]
