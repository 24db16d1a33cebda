"""
Tests for the loading graph and its router.
"""

import datetime

import pytest

from tripflow.orchestrator.graph import (
    OUTCOME_FAILED,
    OUTCOME_ITINERARY,
    OUTCOME_QUESTIONS,
    create_loading_graph,
)
from tripflow.orchestrator.router import route_loading
from tripflow.services import InMemoryBackend
from tripflow.shared.contracts import PreferenceDraft, SmartQuestion


def _make_prefs(days=4):
    start = datetime.date(2025, 6, 1)
    return PreferenceDraft(
        destination="Rome, Italy",
        start_date=start,
        end_date=start + datetime.timedelta(days=days - 1),
    )


def _make_state(**overrides):
    state = {
        "wizard_id": "test-wizard",
        "prefs": _make_prefs().model_dump(mode="json"),
        "question_cap": 5,
        "questions_requested": False,
        "answers_complete": False,
        "questions": None,
        "generation": None,
        "outcome": None,
        "errors": [],
    }
    state.update(overrides)
    return state


def _make_questions(count):
    return [SmartQuestion(id=f"q{i}", title=f"Question {i}") for i in range(count)]


# ============================================================================
# TestRouteLoading
# ============================================================================


class TestRouteLoading:
    def test_first_entry_fetches_questions(self):
        assert route_loading(_make_state()) == "questions_node"

    def test_pending_questions_pause(self):
        state = _make_state(questions_requested=True, questions=[{"id": "q0"}])
        assert route_loading(state) == "complete"

    def test_no_questions_generates(self):
        state = _make_state(questions_requested=True, questions=[])
        assert route_loading(state) == "generate_node"

    def test_answered_questions_generate(self):
        state = _make_state(questions_requested=True, answers_complete=True)
        assert route_loading(state) == "generate_node"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"generation": {"id": "s1"}},
            {"errors": ["Generation error: boom"]},
            {"errors": ["x"], "questions_requested": False},
        ],
    )
    def test_finished_or_failed_completes(self, overrides):
        assert route_loading(_make_state(**overrides)) == "complete"


# ============================================================================
# TestLoadingGraph
# ============================================================================


class TestLoadingGraph:
    async def test_questions_outcome_pauses_before_generation(self):
        backend = InMemoryBackend()
        backend.questions = _make_questions(3)
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state())

        assert result["outcome"] == OUTCOME_QUESTIONS
        assert [q["id"] for q in result["questions"]] == ["q0", "q1", "q2"]
        assert backend.calls["generate_itinerary"] == 0

    async def test_questions_truncated_to_cap(self):
        backend = InMemoryBackend()
        backend.questions = _make_questions(12)
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state(question_cap=5))

        assert len(result["questions"]) == 5

    async def test_no_questions_goes_straight_to_generation(self):
        backend = InMemoryBackend()
        backend.questions = []
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state())

        assert result["outcome"] == OUTCOME_ITINERARY
        assert result["generation"]["total_days"] == 4

    async def test_question_failure_treated_as_no_questions(self):
        backend = InMemoryBackend()
        backend.failing = {"get_follow_up_questions"}
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state())

        assert result["outcome"] == OUTCOME_ITINERARY

    async def test_answered_entry_skips_question_fetch(self):
        backend = InMemoryBackend()
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state(questions_requested=True, answers_complete=True))

        assert result["outcome"] == OUTCOME_ITINERARY
        assert backend.calls["get_follow_up_questions"] == 0
        assert backend.calls["generate_itinerary"] == 1

    async def test_generation_failure(self):
        backend = InMemoryBackend()
        backend.failing = {"generate_itinerary"}
        graph = create_loading_graph(backend)

        result = await graph.ainvoke(_make_state(questions_requested=True, answers_complete=True))

        assert result["outcome"] == OUTCOME_FAILED
        assert result["generation"] is None
        assert len(result["errors"]) == 1
