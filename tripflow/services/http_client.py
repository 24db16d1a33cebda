"""
HTTP planning backend.

Talks to the trip-planning REST API (generation, persistence, payment
and email routes). Requests and responses are camelCase JSON. Transport
failures surface as BackendUnavailableError so the orchestrator can
decide how to degrade; nothing is retried.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from tripflow.services.base import PlannerBackend
from tripflow.services.errors import (
    BackendError,
    BackendUnavailableError,
    GenerationFailedError,
    PaymentError,
    SessionNotFoundError,
)
from tripflow.shared.contracts import (
    Activity,
    DayImageRequest,
    DestinationCheck,
    PreferenceDraft,
    SessionResource,
    SlotContext,
    SmartQuestion,
)


logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "http://localhost:3001/api"
DEFAULT_TIMEOUT = 120.0


def _prefs_payload(prefs: PreferenceDraft) -> Dict[str, Any]:
    return prefs.model_dump(mode="json", by_alias=True)


class HttpPlannerBackend(PlannerBackend):
    """
    Backend that forwards every capability to the REST API.

    Args:
        base_url: API root, e.g. http://localhost:3001/api
        timeout: Per-request timeout in seconds
        client: Optional preconfigured AsyncClient (tests pass a
            MockTransport-backed client here)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        """Close HTTP client"""
        await self.client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TransportError as e:
            logger.warning(f"[backend=http] [op={operation}] Transport failure: {e}")
            raise BackendUnavailableError(str(e), operation=operation) from e

        if response.status_code == 404:
            raise SessionNotFoundError(f"{path} not found", operation=operation)
        if response.is_error:
            logger.warning(
                f"[backend=http] [op={operation}] HTTP {response.status_code}: {response.text[:200]}"
            )
            raise BackendError(
                f"{operation} failed with HTTP {response.status_code}",
                operation=operation,
            )
        return response

    async def _post_json(self, operation: str, path: str, body: Dict[str, Any]) -> Any:
        response = await self._request(operation, "POST", path, json=body)
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{operation} returned invalid JSON", operation=operation) from e

    # ------------------------------------------------------------------
    # Generation service
    # ------------------------------------------------------------------

    async def validate_destination(self, destination: str) -> DestinationCheck:
        data = await self._post_json(
            "validate_destination", "/validate-destination", {"destination": destination}
        )
        try:
            return DestinationCheck.model_validate(data)
        except ValidationError as e:
            raise BackendError("Malformed destination check", operation="validate_destination") from e

    async def get_follow_up_questions(self, prefs: PreferenceDraft) -> List[SmartQuestion]:
        data = await self._post_json(
            "get_follow_up_questions", "/check-events", {"prefs": _prefs_payload(prefs)}
        )
        if not isinstance(data, list):
            raise BackendError("Questions payload is not a list", operation="get_follow_up_questions")
        try:
            return [SmartQuestion.model_validate(item) for item in data]
        except ValidationError as e:
            raise BackendError("Malformed question", operation="get_follow_up_questions") from e

    async def generate_itinerary(self, prefs: PreferenceDraft) -> SessionResource:
        data = await self._post_json(
            "generate_itinerary", "/generate-trip", {"prefs": _prefs_payload(prefs)}
        )
        try:
            resource = SessionResource.model_validate(data)
        except ValidationError as e:
            raise GenerationFailedError("Malformed itinerary", operation="generate_itinerary") from e
        if not resource.plan.days:
            raise GenerationFailedError("Generated plan has no days", operation="generate_itinerary")
        return resource

    async def get_alternative_activity(
        self,
        prefs: PreferenceDraft,
        activity: Activity,
        context: SlotContext,
        exclusions: List[str],
        instruction: Optional[str] = None,
    ) -> Activity:
        body = {
            "prefs": _prefs_payload(prefs),
            "currentActivity": activity.model_dump(mode="json", by_alias=True, exclude={"activity_id"}),
            "context": context.model_dump(mode="json", by_alias=True),
            "existingNames": list(exclusions),
            "customRequest": instruction,
        }
        data = await self._post_json("get_alternative_activity", "/alternative-activity", body)
        try:
            return Activity.model_validate(data)
        except ValidationError as e:
            raise BackendError("Malformed alternative activity", operation="get_alternative_activity") from e

    async def generate_day_image(self, request: DayImageRequest) -> Optional[str]:
        data = await self._post_json(
            "generate_day_image", "/generate-image", request.model_dump(mode="json", by_alias=True)
        )
        if not isinstance(data, dict):
            raise BackendError("Image payload is not an object", operation="generate_day_image")
        return data.get("image") or None

    # ------------------------------------------------------------------
    # Persistence service
    # ------------------------------------------------------------------

    async def load_session(self, session_id: str) -> SessionResource:
        response = await self._request("load_session", "GET", f"/itinerary/{session_id}")
        try:
            return SessionResource.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError("Malformed session resource", operation="load_session") from e

    async def save_generated_image(self, session_id: str, day_number: int, image: str) -> bool:
        await self._request(
            "save_generated_image",
            "POST",
            "/save-image",
            json={"itineraryId": session_id, "dayNumber": day_number, "image": image},
        )
        return True

    async def save_email(self, email: str, session_id: str) -> bool:
        await self._request(
            "save_email",
            "POST",
            "/save-email",
            json={"email": email, "itineraryId": session_id},
        )
        return True

    # ------------------------------------------------------------------
    # Payment provider
    # ------------------------------------------------------------------

    async def create_checkout_session(self, session_id: str) -> str:
        data = await self._post_json(
            "create_checkout_session", "/create-checkout-session", {"itineraryId": session_id}
        )
        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise PaymentError("Checkout session has no redirect URL", operation="create_checkout_session")
        return url

    async def verify_payment_session(self, session_id: str, payment_ref: str) -> bool:
        try:
            response = await self.client.post(
                "/verify-payment",
                json={"itineraryId": session_id, "sessionId": payment_ref},
            )
        except httpx.TransportError as e:
            raise BackendUnavailableError(str(e), operation="verify_payment_session") from e

        # A 400 means the payment is not (yet) paid or belongs to another itinerary
        if response.status_code == 400:
            return False
        if response.is_error:
            raise BackendError(
                f"verify_payment_session failed with HTTP {response.status_code}",
                operation="verify_payment_session",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise BackendError("verify_payment_session returned invalid JSON",
                               operation="verify_payment_session") from e
        return isinstance(data, dict) and data.get("success") is True
