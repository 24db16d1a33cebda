"""
Backend selection.

Provides a cached backend instance chosen from the environment:

    TRIPFLOW_BACKEND       memory (default) or http
    TRIPFLOW_API_BASE      REST API root for the http backend
    TRIPFLOW_HTTP_TIMEOUT  request timeout in seconds
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from tripflow.services.base import PlannerBackend
from tripflow.services.http_client import DEFAULT_API_BASE, DEFAULT_TIMEOUT, HttpPlannerBackend
from tripflow.services.memory import InMemoryBackend

load_dotenv()

logger = logging.getLogger(__name__)

# Module-level cache for the backend
_backend: Optional[PlannerBackend] = None


def create_backend(kind: Optional[str] = None) -> PlannerBackend:
    """
    Build a backend of the requested kind.

    Args:
        kind: "memory" or "http". Defaults to TRIPFLOW_BACKEND.

    Raises:
        ValueError: If the kind is unknown
    """
    kind = (kind or os.environ.get("TRIPFLOW_BACKEND", "memory")).lower()
    if kind == "memory":
        return InMemoryBackend()
    if kind == "http":
        base_url = os.environ.get("TRIPFLOW_API_BASE", DEFAULT_API_BASE)
        timeout = float(os.environ.get("TRIPFLOW_HTTP_TIMEOUT", DEFAULT_TIMEOUT))
        logger.info(f"Using HTTP backend at {base_url} (timeout={timeout}s)")
        return HttpPlannerBackend(base_url=base_url, timeout=timeout)
    raise ValueError(
        f"Unknown TRIPFLOW_BACKEND '{kind}'. Expected 'memory' or 'http'."
    )


def get_cached_backend() -> PlannerBackend:
    """
    Returns a cached backend instance.

    The backend is created once and reused for all wizards.
    """
    global _backend
    if _backend is None:
        _backend = create_backend()
    return _backend


async def close_cached_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.aclose()
        _backend = None
