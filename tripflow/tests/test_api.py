"""
Tests for the wizard REST API.

Runs the full plan flow over HTTP against the in-memory backend and
checks status codes for unknown wizards and out-of-step requests.
"""

from fastapi.testclient import TestClient

from tripflow.main import app
from tripflow.orchestrator import wizard_api
from tripflow.orchestrator.config import get_config
from tripflow.services import InMemoryBackend


def _make_client(backend):
    app.dependency_overrides[wizard_api.get_backend] = lambda: backend
    app.dependency_overrides[wizard_api.get_wizard_config] = lambda: get_config(
        swipe_animation_seconds=0.0
    )
    return TestClient(app)


def _open(client, query=None):
    response = client.post("/api/wizard", json={"query": query})
    assert response.status_code == 200
    return response.json()


# ============================================================================
# TestWizardApi
# ============================================================================


class TestWizardApi:
    def teardown_method(self):
        app.dependency_overrides.clear()
        wizard_api._wizards.clear()

    def test_full_flow(self):
        backend = InMemoryBackend()
        with _make_client(backend) as client:
            snapshot = _open(client)
            wizard_id = snapshot["wizard_id"]
            base = f"/api/wizard/{wizard_id}"
            assert snapshot["step"] == "start"

            client.post(f"{base}/basics", json={
                "destination": "rome",
                "start_date": "2025-06-01",
                "end_date": "2025-06-03",
            })
            snapshot = client.post(f"{base}/start/submit").json()
            assert snapshot["step"] == "preferences"
            assert snapshot["draft"]["destination"] == "Rome, Italy"

            client.post(f"{base}/profile", json={"trip_type": "solo"})
            client.post(f"{base}/demographics", json={"gender": "female", "age": 28})
            client.post(f"{base}/interests/toggle", json={"interest": "dining"})
            snapshot = client.post(f"{base}/preferences/submit").json()
            assert snapshot["step"] == "specifics"

            client.post(f"{base}/fixed-plans", json={"date": "2025-06-02", "description": "Vatican tour"})
            snapshot = client.post(f"{base}/specifics/submit").json()
            assert snapshot["step"] == "questions"
            assert len(snapshot["questions"]) == 5

            client.post(f"{base}/swipe/begin", json={"x": 0, "y": 0})
            client.post(f"{base}/swipe/move", json={"x": 180, "y": 4})
            snapshot = client.post(f"{base}/swipe/release").json()
            assert snapshot["active_question_index"] == 1
            for _ in range(4):
                snapshot = client.post(f"{base}/answer", json={"yes": False}).json()
            assert snapshot["step"] == "itinerary"

            snapshot = client.get(f"{base}?settle=true").json()
            assert snapshot["total_days"] == 3
            assert [d["dayNumber"] for d in snapshot["displayed_days"]] == [1, 2]
            assert snapshot["locked_days_count"] == 1
            assert snapshot["show_unlock"] is True
            assert set(snapshot["images"]) == {"1", "2"}
            assert snapshot["email_prompt_open"] is True
            assert snapshot["loading_progress"] == 100.0

            snapshot = client.post(
                f"{base}/slots/regenerate",
                json={"day_number": 1, "period": "evening", "index": 0, "instruction": "jazz"},
            ).json()
            assert snapshot["regenerating"] == []
            assert backend.alternative_requests[-1]["instruction"] == "jazz"

            snapshot = client.post(
                f"{base}/slots/delete", json={"day_number": 1, "period": "morning", "index": 0}
            ).json()
            assert len(snapshot["displayed_days"][0]["morning"]) == 1

            snapshot = client.post(f"{base}/email", json={"email": "traveler@example.com"}).json()
            assert snapshot["email_prompt_open"] is False

            snapshot = client.post(f"{base}/checkout").json()
            query = backend.complete_checkout(snapshot["redirect_url"])

            resumed = _open(client, query)
            assert resumed["step"] == "itinerary"
            assert resumed["unlocked"] is True
            assert len(resumed["displayed_days"]) == 3
            assert resumed["share_query"] == snapshot["share_query"]

    def test_unknown_wizard_is_404(self):
        with _make_client(InMemoryBackend()) as client:
            assert client.get("/api/wizard/nope").status_code == 404
            assert client.post("/api/wizard/nope/restart").status_code == 404

    def test_out_of_step_request_is_409(self):
        with _make_client(InMemoryBackend()) as client:
            wizard_id = _open(client)["wizard_id"]

            response = client.post(f"/api/wizard/{wizard_id}/answer", json={"yes": True})

            assert response.status_code == 409
            assert client.get(f"/api/wizard/{wizard_id}").json()["step"] == "start"

    def test_unknown_fixed_plan_is_404(self):
        with _make_client(InMemoryBackend()) as client:
            base = f"/api/wizard/{_open(client)['wizard_id']}"
            client.post(f"{base}/basics", json={
                "destination": "paris",
                "start_date": "2025-06-01",
                "end_date": "2025-06-02",
            })
            client.post(f"{base}/start/submit")
            client.post(f"{base}/demographics", json={"age": 33})
            assert client.post(f"{base}/preferences/submit").json()["step"] == "specifics"

            assert client.delete(f"{base}/fixed-plans/abc123456").status_code == 404
            # Removal is owned by Specifics; elsewhere it is a conflict
            client.post(f"{base}/back")
            assert client.delete(f"{base}/fixed-plans/abc123456").status_code == 409

    def test_invalid_dates_become_notice(self):
        with _make_client(InMemoryBackend()) as client:
            wizard_id = _open(client)["wizard_id"]

            snapshot = client.post(f"/api/wizard/{wizard_id}/basics", json={
                "start_date": "2025-06-05",
                "end_date": "2025-06-01",
            }).json()

            assert snapshot["notice"]["kind"] == "validation"
            assert snapshot["draft"]["endDate"] is None

    def test_resume_unknown_session(self):
        with _make_client(InMemoryBackend()) as client:
            snapshot = _open(client, "id=missing")
            assert snapshot["step"] == "start"
            assert snapshot["notice"]["kind"] == "info"

    def test_health(self):
        with _make_client(InMemoryBackend()) as client:
            assert client.get("/health").json() == {"status": "healthy"}
