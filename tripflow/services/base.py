"""
Abstract backend consumed by the wizard.

Bundles the external capabilities the orchestrator depends on: the
generation service (validation, questions, itineraries, alternatives,
images), the persistence service (sessions, images, email), and the
payment provider. Every method is a coroutine and is called at most
once per user action; implementations raise BackendError subclasses
on failure and never retry.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from tripflow.shared.contracts import (
    Activity,
    DayImageRequest,
    DestinationCheck,
    PreferenceDraft,
    SessionResource,
    SlotContext,
    SmartQuestion,
)


class PlannerBackend(ABC):
    """Transport-agnostic interface to the planning backend."""

    @abstractmethod
    async def validate_destination(self, destination: str) -> DestinationCheck:
        """Check that free text names a real place and normalise it."""

    @abstractmethod
    async def get_follow_up_questions(self, prefs: PreferenceDraft) -> List[SmartQuestion]:
        """Return the ordered yes/no follow-up questions (may be empty)."""

    @abstractmethod
    async def generate_itinerary(self, prefs: PreferenceDraft) -> SessionResource:
        """Generate and persist a plan, returning the (possibly masked) session."""

    @abstractmethod
    async def get_alternative_activity(
        self,
        prefs: PreferenceDraft,
        activity: Activity,
        context: SlotContext,
        exclusions: List[str],
        instruction: Optional[str] = None,
    ) -> Activity:
        """Suggest a replacement for one activity, avoiding excluded names."""

    @abstractmethod
    async def generate_day_image(self, request: DayImageRequest) -> Optional[str]:
        """Render a day-card illustration; None when nothing was produced."""

    @abstractmethod
    async def load_session(self, session_id: str) -> SessionResource:
        """Load a persisted session; raises SessionNotFoundError if missing."""

    @abstractmethod
    async def save_email(self, email: str, session_id: str) -> bool:
        """Attach an email to a session and send the preview message."""

    @abstractmethod
    async def create_checkout_session(self, session_id: str) -> str:
        """Start a checkout for unlocking a session; returns the redirect URL."""

    @abstractmethod
    async def verify_payment_session(self, session_id: str, payment_ref: str) -> bool:
        """Confirm a completed payment and unlock the session."""

    @abstractmethod
    async def save_generated_image(self, session_id: str, day_number: int, image: str) -> bool:
        """Persist one day image on the session resource."""

    async def aclose(self) -> None:
        """Release transport resources (no-op by default)."""
        return None
