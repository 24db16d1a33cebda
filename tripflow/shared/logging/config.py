"""
Structured logging for wizard step transitions.

Transitions are written as one JSON object per line on their own
logger, separate from the human-readable module logs.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TRANSITION_LOGGER = "tripflow.transitions"

# Context fields copied into every transition record
_SUMMARY_KEYS = ("wizard_id", "step", "session_id", "unlocked", "epoch")


class StructuredFormatter(logging.Formatter):
    """Render a record as JSON, including the payload attached as `record.extra`."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload = getattr(record, "extra", None)
        if payload is not None:
            entry["extra"] = payload
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Send transition records to stdout as JSON.

    The transition logger stops propagating so the root text handler
    does not print each record a second time.
    """
    logger = logging.getLogger(TRANSITION_LOGGER)
    logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logger.handlers = [handler]
    logger.propagate = False
    return logger


def log_state_transition(
    event: str,
    state: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Emit one transition record.

    Args:
        event: Event name, e.g. "step_transition" or "restart"
        state: Wizard context summary; only the summary keys are kept
        extra: Event-specific fields such as source and target step
    """
    logger = logging.getLogger(TRANSITION_LOGGER)
    payload: Dict[str, Any] = {
        "event": event,
        "state_summary": {key: state.get(key) for key in _SUMMARY_KEYS},
    }
    if extra:
        payload["extra"] = extra

    logger.info(f"State transition: {event}", extra={"extra": payload})
