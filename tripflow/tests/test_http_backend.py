"""
Tests for the HTTP backend against a mocked transport.

Checks the camelCase request bodies sent to each route and how HTTP
and transport failures map onto the backend error taxonomy.
"""

import datetime
import json

import httpx
import pytest

from tripflow.services import (
    BackendError,
    BackendUnavailableError,
    GenerationFailedError,
    HttpPlannerBackend,
    PaymentError,
    SessionNotFoundError,
    create_backend,
)
from tripflow.services.memory import InMemoryBackend
from tripflow.shared.contracts import (
    Activity,
    DayImageRequest,
    Period,
    PreferenceDraft,
    SlotContext,
)


BASE_URL = "http://test/api"

SESSION_PAYLOAD = {
    "id": "it_123",
    "plan": {
        "destination": "Paris, France",
        "days": [
            {
                "dayNumber": 2,
                "title": "Left Bank",
                "morning": [{"name": "Café de Flore", "mapsQuery": "Cafe de Flore Paris"}],
            },
            {"dayNumber": 1, "title": "Arrival"},
        ],
    },
    "unlocked": False,
    "totalDays": 4,
    "images": {"1": "data:image/png;base64,AAAA"},
}


def _make_backend(handler):
    requests = []

    def _record(request):
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(_record))
    return HttpPlannerBackend(base_url=BASE_URL, client=client), requests


def _body(request):
    return json.loads(request.content)


def _make_prefs():
    return PreferenceDraft(
        destination="Paris, France",
        start_date=datetime.date(2025, 6, 1),
        end_date=datetime.date(2025, 6, 4),
        hotel_location="Le Marais",
    )


# ============================================================================
# TestRequestBodies
# ============================================================================


class TestRequestBodies:
    async def test_generate_sends_camel_case_prefs(self):
        backend, requests = _make_backend(lambda r: httpx.Response(200, json=SESSION_PAYLOAD))

        resource = await backend.generate_itinerary(_make_prefs())

        assert requests[0].url.path == "/api/generate-trip"
        prefs = _body(requests[0])["prefs"]
        assert prefs["startDate"] == "2025-06-01"
        assert prefs["hotelLocation"] == "Le Marais"
        assert "start_date" not in prefs
        assert resource.id == "it_123"
        assert resource.total_days == 4
        assert [d.day_number for d in resource.plan.days] == [1, 2]
        assert resource.images == {1: "data:image/png;base64,AAAA"}

    async def test_alternative_request_body(self):
        activity = Activity(name="Louvre", maps_query="Louvre Paris")
        reply = {"name": "Musée d'Orsay", "emoji": "🖼️"}
        backend, requests = _make_backend(lambda r: httpx.Response(200, json=reply))

        result = await backend.get_alternative_activity(
            _make_prefs(),
            activity,
            SlotContext(day_title="Museums", area="1st", time_of_day=Period.MORNING),
            ["Louvre", "Sainte-Chapelle"],
            "less crowded",
        )

        body = _body(requests[0])
        assert requests[0].url.path == "/api/alternative-activity"
        assert body["currentActivity"]["mapsQuery"] == "Louvre Paris"
        assert "activityId" not in body["currentActivity"]
        assert body["context"] == {"dayTitle": "Museums", "area": "1st", "timeOfDay": "morning"}
        assert body["existingNames"] == ["Louvre", "Sainte-Chapelle"]
        assert body["customRequest"] == "less crowded"
        assert result.name == "Musée d'Orsay"

    async def test_save_image_and_email_bodies(self):
        backend, requests = _make_backend(lambda r: httpx.Response(200, json={"success": True}))

        await backend.save_generated_image("it_123", 3, "data:x")
        await backend.save_email("a@b.test", "it_123")

        assert _body(requests[0]) == {"itineraryId": "it_123", "dayNumber": 3, "image": "data:x"}
        assert _body(requests[1]) == {"email": "a@b.test", "itineraryId": "it_123"}

    async def test_load_session_uses_locator_path(self):
        backend, requests = _make_backend(lambda r: httpx.Response(200, json=SESSION_PAYLOAD))

        resource = await backend.load_session("it_123")

        assert requests[0].method == "GET"
        assert requests[0].url.path == "/api/itinerary/it_123"
        assert resource.plan.day(2).morning[0].maps_query == "Cafe de Flore Paris"

    async def test_destination_check(self):
        reply = {"isValid": True, "formattedName": "Paris, France"}
        backend, requests = _make_backend(lambda r: httpx.Response(200, json=reply))

        check = await backend.validate_destination("paris")

        assert _body(requests[0]) == {"destination": "paris"}
        assert check.is_valid is True
        assert check.formatted_name == "Paris, France"


# ============================================================================
# TestErrorMapping
# ============================================================================


class TestErrorMapping:
    async def test_404_is_session_not_found(self):
        backend, _ = _make_backend(lambda r: httpx.Response(404, json={"error": "not found"}))
        with pytest.raises(SessionNotFoundError):
            await backend.load_session("missing")

    async def test_transport_failure_is_unavailable(self):
        def _refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend, _ = _make_backend(_refuse)
        with pytest.raises(BackendUnavailableError) as excinfo:
            await backend.validate_destination("paris")
        assert excinfo.value.operation == "validate_destination"

    async def test_server_error_is_backend_error(self):
        backend, _ = _make_backend(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(BackendError):
            await backend.save_email("a@b.test", "it_123")

    async def test_empty_plan_is_generation_failure(self):
        payload = {**SESSION_PAYLOAD, "plan": {"destination": "Paris", "days": []}}
        backend, _ = _make_backend(lambda r: httpx.Response(200, json=payload))
        with pytest.raises(GenerationFailedError):
            await backend.generate_itinerary(_make_prefs())

    async def test_questions_must_be_a_list(self):
        backend, _ = _make_backend(lambda r: httpx.Response(200, json={"questions": []}))
        with pytest.raises(BackendError):
            await backend.get_follow_up_questions(_make_prefs())

    async def test_checkout_without_url_is_payment_error(self):
        backend, _ = _make_backend(lambda r: httpx.Response(200, json={"id": "cs_1"}))
        with pytest.raises(PaymentError):
            await backend.create_checkout_session("it_123")

    async def test_unpaid_verification_is_false(self):
        backend, requests = _make_backend(lambda r: httpx.Response(400, json={"error": "Payment not completed"}))

        assert await backend.verify_payment_session("it_123", "cs_1") is False
        assert _body(requests[0]) == {"itineraryId": "it_123", "sessionId": "cs_1"}

    async def test_paid_verification_is_true(self):
        backend, _ = _make_backend(lambda r: httpx.Response(200, json={"success": True}))
        assert await backend.verify_payment_session("it_123", "cs_1") is True

    async def test_missing_image_is_none(self):
        backend, _ = _make_backend(lambda r: httpx.Response(200, json={"image": None}))
        request = DayImageRequest(day_title="Arrival", area="Marais", destination="Paris")
        assert await backend.generate_day_image(request) is None


# ============================================================================
# TestCreateBackend
# ============================================================================


class TestCreateBackend:
    def test_memory_is_default(self, monkeypatch):
        monkeypatch.delenv("TRIPFLOW_BACKEND", raising=False)
        assert isinstance(create_backend(), InMemoryBackend)

    async def test_http_reads_base_url(self, monkeypatch):
        monkeypatch.setenv("TRIPFLOW_API_BASE", "http://planner.internal/api/")
        backend = create_backend("http")
        try:
            assert isinstance(backend, HttpPlannerBackend)
            assert backend.base_url == "http://planner.internal/api"
        finally:
            await backend.aclose()

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            create_backend("carrier-pigeon")
