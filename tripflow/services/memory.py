"""
In-memory planning backend.

Stands in for the generation, persistence, payment and email services
with deterministic mock data. Stores full plans, masks locked sessions
to the free preview days, and only unlocks a session after a paid
checkout that references it.

Also exposes knobs used by tests and local runs to simulate outages,
failures and slow responses.
"""

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from tripflow.services.base import PlannerBackend
from tripflow.services.errors import (
    BackendError,
    BackendUnavailableError,
    GenerationFailedError,
    PaymentError,
    SessionNotFoundError,
)
from tripflow.services.mock_data import (
    generate_mock_alternative,
    generate_mock_image,
    generate_mock_itinerary,
    generate_mock_questions,
)
from tripflow.shared.contracts import (
    Activity,
    DayImageRequest,
    DestinationCheck,
    Itinerary,
    PreferenceDraft,
    SessionResource,
    SlotContext,
    SmartQuestion,
)


logger = logging.getLogger(__name__)

FREE_PREVIEW_DAYS = 2

_KNOWN_DESTINATIONS = {
    "tokyo": "Tokyo, Japan",
    "kyoto": "Kyoto, Japan",
    "paris": "Paris, France",
    "lisbon": "Lisbon, Portugal",
    "bali": "Bali, Indonesia",
    "rome": "Rome, Italy",
}


@dataclass
class _StoredSession:
    id: str
    plan: Itinerary
    unlocked: bool = False
    email: Optional[str] = None
    images: Dict[int, str] = field(default_factory=dict)


@dataclass
class _Checkout:
    ref: str
    session_id: str
    paid: bool = False


class InMemoryBackend(PlannerBackend):
    """
    Deterministic backend keeping every session in process memory.

    Failure knobs:
        unavailable: operation names that raise BackendUnavailableError
        failing: operation names that raise a BackendError
        invalid_destinations: lowercase destinations reported as invalid
        image_failures: day titles whose image generation fails
        gates: operation name -> event awaited before answering
        image_gates: day title -> event awaited before answering
    """

    def __init__(self, free_preview_days: int = FREE_PREVIEW_DAYS):
        self.free_preview_days = free_preview_days
        self._sessions: Dict[str, _StoredSession] = {}
        self._checkouts: Dict[str, _Checkout] = {}

        self.calls: Counter = Counter()
        self.outbox: List[Tuple[str, str]] = []
        self.alternative_requests: List[dict] = []
        self.questions: Optional[List[SmartQuestion]] = None

        self.unavailable: Set[str] = set()
        self.failing: Set[str] = set()
        self.invalid_destinations: Set[str] = set()
        self.image_failures: Set[str] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.image_gates: Dict[str, asyncio.Event] = {}

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if operation in self.unavailable:
            raise BackendUnavailableError(f"{operation} is unreachable", operation=operation)
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()

    def _to_resource(self, stored: _StoredSession) -> SessionResource:
        plan = stored.plan
        if not stored.unlocked:
            plan = plan.model_copy(update={"days": plan.days[: self.free_preview_days]})
        return SessionResource(
            id=stored.id,
            plan=plan.model_copy(deep=True),
            unlocked=stored.unlocked,
            total_days=len(stored.plan.days),
            images=dict(stored.images),
        )

    def _get(self, session_id: str, operation: str) -> _StoredSession:
        stored = self._sessions.get(session_id)
        if stored is None:
            raise SessionNotFoundError(f"Itinerary {session_id} not found", operation=operation)
        return stored

    # ------------------------------------------------------------------
    # Generation service
    # ------------------------------------------------------------------

    async def validate_destination(self, destination: str) -> DestinationCheck:
        await self._enter("validate_destination")
        text = destination.strip()
        if not text or text.lower() in self.invalid_destinations:
            return DestinationCheck(is_valid=False)
        city = text.split(",")[0].strip().lower()
        return DestinationCheck(
            is_valid=True,
            formatted_name=_KNOWN_DESTINATIONS.get(city, text),
        )

    async def get_follow_up_questions(self, prefs: PreferenceDraft) -> List[SmartQuestion]:
        await self._enter("get_follow_up_questions")
        if "get_follow_up_questions" in self.failing:
            raise BackendError("Check events failed", operation="get_follow_up_questions")
        if self.questions is not None:
            return list(self.questions)
        return generate_mock_questions(prefs)

    async def generate_itinerary(self, prefs: PreferenceDraft) -> SessionResource:
        await self._enter("generate_itinerary")
        if "generate_itinerary" in self.failing:
            raise GenerationFailedError("Generation failed", operation="generate_itinerary")

        plan = generate_mock_itinerary(prefs)
        if not plan.days:
            raise GenerationFailedError("Generated plan has no days", operation="generate_itinerary")

        session_id = str(uuid.uuid4())
        self._sessions[session_id] = _StoredSession(id=session_id, plan=plan)
        logger.info(
            f"[backend=memory] Stored itinerary {session_id} | "
            f"destination={plan.destination}, days={len(plan.days)}"
        )
        return self._to_resource(self._sessions[session_id])

    async def get_alternative_activity(
        self,
        prefs: PreferenceDraft,
        activity: Activity,
        context: SlotContext,
        exclusions: List[str],
        instruction: Optional[str] = None,
    ) -> Activity:
        self.alternative_requests.append({
            "activity": activity.name,
            "context": context,
            "exclusions": list(exclusions),
            "instruction": instruction,
        })
        await self._enter("get_alternative_activity")
        if "get_alternative_activity" in self.failing:
            raise BackendError("Alternative failed", operation="get_alternative_activity")
        return generate_mock_alternative(activity, context, exclusions, instruction)

    async def generate_day_image(self, request: DayImageRequest) -> Optional[str]:
        await self._enter("generate_day_image")
        gate = self.image_gates.get(request.day_title)
        if gate is not None:
            await gate.wait()
        if request.day_title in self.image_failures:
            raise BackendError(f"Image gen failed for {request.day_title}", operation="generate_day_image")
        return generate_mock_image(request)

    # ------------------------------------------------------------------
    # Persistence service
    # ------------------------------------------------------------------

    async def load_session(self, session_id: str) -> SessionResource:
        await self._enter("load_session")
        return self._to_resource(self._get(session_id, "load_session"))

    async def save_generated_image(self, session_id: str, day_number: int, image: str) -> bool:
        await self._enter("save_generated_image")
        stored = self._get(session_id, "save_generated_image")
        stored.images[day_number] = image
        return True

    async def save_email(self, email: str, session_id: str) -> bool:
        await self._enter("save_email")
        if "save_email" in self.failing:
            raise BackendError("Failed to save email", operation="save_email")
        stored = self._get(session_id, "save_email")
        stored.email = email
        self.outbox.append((email, f"Your trip to {stored.plan.destination} is ready!"))
        return True

    # ------------------------------------------------------------------
    # Payment provider
    # ------------------------------------------------------------------

    async def create_checkout_session(self, session_id: str) -> str:
        await self._enter("create_checkout_session")
        if "create_checkout_session" in self.failing:
            raise PaymentError("Failed to create checkout session", operation="create_checkout_session")
        self._get(session_id, "create_checkout_session")
        ref = f"cs_test_{uuid.uuid4().hex[:16]}"
        self._checkouts[ref] = _Checkout(ref=ref, session_id=session_id)
        return f"https://checkout.example.test/pay/{ref}"

    async def verify_payment_session(self, session_id: str, payment_ref: str) -> bool:
        await self._enter("verify_payment_session")
        checkout = self._checkouts.get(payment_ref)
        if checkout is None or not checkout.paid or checkout.session_id != session_id:
            logger.warning(
                f"[backend=memory] Payment invalid or not completed | "
                f"session={session_id}, ref={payment_ref}"
            )
            return False

        stored = self._get(session_id, "verify_payment_session")
        stored.unlocked = True
        if stored.email:
            self.outbox.append((stored.email, f"Full Itinerary Unlocked: {stored.plan.destination}"))
        return True

    def complete_checkout(self, redirect_url: str) -> str:
        """
        Mark the checkout behind a redirect URL as paid.

        Returns:
            The query string the provider redirects back with
        """
        ref = redirect_url.rsplit("/", 1)[-1]
        checkout = self._checkouts[ref]
        checkout.paid = True
        return f"id={checkout.session_id}&success=true&session_id={ref}"
