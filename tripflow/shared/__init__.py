"""
Shared infrastructure for the wizard.

Modules:
- contracts: Preference, itinerary and session resource models
- logging: Structured JSON logging for step transitions
"""

from tripflow.shared.logging.config import setup_logging, log_state_transition

__all__ = [
    "setup_logging",
    "log_state_transition",
]
