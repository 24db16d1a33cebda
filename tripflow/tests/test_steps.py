"""
Tests for the step state machine.

Drives PlanningWizard through Start -> Preferences -> Specifics ->
(Questions) -> Loading -> Itinerary against the in-memory backend,
including guards, back navigation, failures and restart.
"""

import asyncio
import datetime
import json
import logging

import pytest

from tripflow.orchestrator.config import get_config
from tripflow.orchestrator.errors import InvalidTransitionError, StepMismatchError
from tripflow.orchestrator.state import NoticeKind, OrchestratorContext, Step, loading_progress
from tripflow.orchestrator.steps import (
    GENERATION_FAILED,
    INVALID_DESTINATION,
    TRANSITIONS,
    transition,
)
from tripflow.orchestrator.swipe import Cancel, Commit
from tripflow.orchestrator.wizard import PlanningWizard
from tripflow.services import InMemoryBackend
from tripflow.shared.contracts import SmartQuestion, TripType
from tripflow.shared.logging.config import TRANSITION_LOGGER, StructuredFormatter, setup_logging


START = datetime.date(2025, 6, 1)


def _make_wizard(backend=None, **overrides):
    backend = backend or InMemoryBackend()
    config = get_config(swipe_animation_seconds=0.0, **overrides)
    return PlanningWizard(backend, config=config, wizard_id="test-wizard")


def _make_questions(count):
    return [
        SmartQuestion(id=f"q{i}", emoji="✨", title=f"Question {i}", description="")
        for i in range(count)
    ]


async def _drive_to_specifics(wizard, days=4, destination="tokyo"):
    wizard.set_trip_basics(
        destination=destination,
        start_date=START,
        end_date=START + datetime.timedelta(days=days - 1),
    )
    assert await wizard.submit_start()
    wizard.set_demographics(age=34)
    assert wizard.submit_preferences()


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached"
        await asyncio.sleep(0.01)


# ============================================================================
# TestTransitionTable
# ============================================================================


class TestTransitionTable:
    def test_illegal_transition_raises(self):
        ctx = OrchestratorContext(wizard_id="test-wizard")
        with pytest.raises(InvalidTransitionError):
            transition(ctx, Step.ITINERARY)
        assert ctx.step == Step.START

    def test_questions_only_leave_through_loading(self):
        assert TRANSITIONS[Step.QUESTIONS] == {Step.LOADING}

    def test_verifying_payment_only_reachable_from_start(self):
        sources = {step for step, targets in TRANSITIONS.items() if Step.VERIFYING_PAYMENT in targets}
        assert sources == {Step.START}

    def test_transition_is_logged(self, caplog):
        ctx = OrchestratorContext(wizard_id="test-wizard")
        # The transition logger does not propagate once setup_logging has run
        transition_logger = logging.getLogger(TRANSITION_LOGGER)
        transition_logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.INFO, logger=TRANSITION_LOGGER):
                transition(ctx, Step.PREFERENCES, reason="test")
        finally:
            transition_logger.removeHandler(caplog.handler)

        records = [r for r in caplog.records if r.name == TRANSITION_LOGGER]
        assert records
        assert records[-1].extra["event"] == "step_transition"
        assert records[-1].extra["extra"]["to"] == "preferences"

    def test_transition_record_renders_as_json(self, caplog):
        ctx = OrchestratorContext(wizard_id="test-wizard")
        transition_logger = logging.getLogger(TRANSITION_LOGGER)
        transition_logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.INFO, logger=TRANSITION_LOGGER):
                transition(ctx, Step.PREFERENCES, reason="test")
        finally:
            transition_logger.removeHandler(caplog.handler)

        record = [r for r in caplog.records if r.name == TRANSITION_LOGGER][-1]
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["logger"] == TRANSITION_LOGGER
        assert entry["extra"]["state_summary"] == {
            "wizard_id": "test-wizard",
            "step": "preferences",
            "session_id": None,
            "unlocked": False,
            "epoch": 0,
        }
        assert entry["extra"]["extra"] == {"from": "start", "to": "preferences", "reason": "test"}

    def test_setup_logging_installs_single_json_handler(self):
        logger = setup_logging()
        setup_logging()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
        assert logger.propagate is False


# ============================================================================
# TestStartStep
# ============================================================================


class TestStartStep:
    async def test_valid_destination_is_normalised(self):
        wizard = _make_wizard()
        await _drive_to_specifics(wizard, destination="tokyo")
        assert wizard.ctx.draft.destination == "Tokyo, Japan"

    async def test_invalid_destination_stays_at_start(self):
        backend = InMemoryBackend()
        backend.invalid_destinations = {"atlantis"}
        wizard = _make_wizard(backend)
        wizard.set_trip_basics(destination="Atlantis", start_date=START, end_date=START)

        moved = await wizard.submit_start()

        assert moved is False
        assert wizard.step == Step.START
        assert wizard.ctx.notice.kind == NoticeKind.VALIDATION
        assert wizard.ctx.notice.message == INVALID_DESTINATION

    async def test_unreachable_validation_proceeds_optimistically(self):
        backend = InMemoryBackend()
        backend.unavailable = {"validate_destination"}
        wizard = _make_wizard(backend)
        wizard.set_trip_basics(destination="Somewhere", start_date=START, end_date=START)

        assert await wizard.submit_start() is True
        assert wizard.step == Step.PREFERENCES
        assert wizard.ctx.draft.destination == "Somewhere"

    async def test_missing_dates_block_without_service_call(self):
        backend = InMemoryBackend()
        wizard = _make_wizard(backend)
        wizard.set_trip_basics(destination="Paris")

        assert await wizard.submit_start() is False
        assert backend.calls["validate_destination"] == 0
        assert wizard.ctx.notice.kind == NoticeKind.VALIDATION


# ============================================================================
# TestNavigation
# ============================================================================


class TestNavigation:
    async def test_back_from_specifics_and_preferences(self):
        wizard = _make_wizard()
        await _drive_to_specifics(wizard)

        assert wizard.back() == Step.PREFERENCES
        assert wizard.back() == Step.START
        assert wizard.ctx.draft.destination == "Tokyo, Japan"

    def test_back_from_start_rejected(self):
        wizard = _make_wizard()
        with pytest.raises(StepMismatchError):
            wizard.back()

    async def test_incomplete_demographics_block_preferences(self):
        wizard = _make_wizard()
        wizard.set_trip_basics(destination="rome", start_date=START, end_date=START)
        await wizard.submit_start()
        wizard.set_profile(trip_type=TripType.FAMILY)

        assert wizard.submit_preferences() is False
        assert wizard.step == Step.PREFERENCES
        assert wizard.ctx.notice.kind == NoticeKind.VALIDATION


# ============================================================================
# TestQuestionsFlow
# ============================================================================


class TestQuestionsFlow:
    async def test_specifics_enters_questions(self):
        wizard = _make_wizard()
        await _drive_to_specifics(wizard, days=4)

        step = await wizard.submit_specifics()

        assert step == Step.QUESTIONS
        assert len(wizard.ctx.questions) == 5
        assert wizard.ctx.draft_frozen is False

    async def test_every_question_answered_exactly_once(self):
        backend = InMemoryBackend()
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard, days=7)
        await wizard.submit_specifics()
        question_ids = [q.id for q in wizard.ctx.questions]

        for i, _ in enumerate(question_ids):
            if i % 2:
                assert await wizard.answer(i % 3 == 0) == Commit(i % 3 == 0)
            else:
                wizard.begin_gesture(100.0, 100.0)
                wizard.move_gesture(250.0, 90.0)
                assert await wizard.release_gesture() == Commit(True)

        answers = wizard.ctx.draft.follow_up_answers
        assert wizard.step == Step.ITINERARY
        assert list(answers) == question_ids
        assert all(isinstance(value, bool) for value in answers.values())
        assert backend.calls["generate_itinerary"] == 1

    async def test_cancelled_gesture_records_nothing(self):
        wizard = _make_wizard()
        await _drive_to_specifics(wizard)
        await wizard.submit_specifics()

        wizard.begin_gesture(0.0, 0.0)
        wizard.move_gesture(100.0, 0.0)
        decision = await wizard.release_gesture()

        assert isinstance(decision, Cancel)
        assert wizard.ctx.draft.follow_up_answers == {}
        assert wizard.snapshot().active_question_index == 0

    async def test_no_questions_skips_to_generation(self):
        backend = InMemoryBackend()
        backend.questions = []
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)

        step = await wizard.submit_specifics()

        assert step == Step.ITINERARY
        assert wizard.ctx.email_prompt_open is True
        assert wizard.ctx.draft_frozen is True

    async def test_question_fetch_failure_skips_to_generation(self):
        backend = InMemoryBackend()
        backend.failing = {"get_follow_up_questions"}
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)

        assert await wizard.submit_specifics() == Step.ITINERARY

    @pytest.mark.parametrize("days,expected", [(3, 5), (5, 5), (6, 10), (12, 10)])
    async def test_question_cap_by_trip_length(self, days, expected):
        backend = InMemoryBackend()
        backend.questions = _make_questions(12)
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard, days=days)

        await wizard.submit_specifics()

        assert [q.id for q in wizard.ctx.questions] == [f"q{i}" for i in range(expected)]

    async def test_answers_reach_generation(self):
        backend = InMemoryBackend()
        backend.questions = _make_questions(2)
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)
        await wizard.submit_specifics()

        await wizard.answer(True)
        await wizard.answer(False)

        day_one = wizard.ctx.itinerary.day(1)
        assert day_one.highlight_event is not None
        assert day_one.highlight_event.name == "Q0"


# ============================================================================
# TestGenerationOutcome
# ============================================================================


class TestGenerationOutcome:
    async def test_generation_failure_returns_to_start(self):
        backend = InMemoryBackend()
        backend.questions = []
        backend.failing = {"generate_itinerary"}
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)

        step = await wizard.submit_specifics()

        assert step == Step.START
        assert wizard.ctx.notice.kind == NoticeKind.GENERATION
        assert wizard.ctx.notice.message == GENERATION_FAILED
        assert wizard.ctx.notice.blocking is False
        # Inputs survive so the traveler can try again
        assert wizard.ctx.draft.destination == "Tokyo, Japan"
        assert wizard.ctx.draft_frozen is False
        assert wizard.ctx.itinerary is None

    async def test_loading_progress_in_snapshot(self):
        backend = InMemoryBackend()
        backend.questions = []
        backend.gates["generate_itinerary"] = asyncio.Event()
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)

        task = asyncio.create_task(wizard.submit_specifics())
        await _wait_for(lambda: backend.calls["generate_itinerary"] == 1)

        started = wizard.ctx.loading_started_at
        assert wizard.step == Step.LOADING
        assert wizard.snapshot(now=started).loading_progress == 0.0
        assert 0.0 < wizard.snapshot(now=started + 1.0).loading_progress < 90.0

        backend.gates["generate_itinerary"].set()
        await task
        assert wizard.snapshot().loading_progress == 100.0

    def test_loading_progress_eases_to_cap(self):
        values = [loading_progress(seconds, 90.0) for seconds in (0.0, 0.1, 0.5, 2.0, 10.0, 60.0)]
        assert values[0] == 0.0
        assert values[1] == pytest.approx(4.5)
        assert values == sorted(values)
        assert values[-1] == 90.0


# ============================================================================
# TestRestart
# ============================================================================


class TestRestart:
    async def test_restart_discards_draft_and_session(self):
        backend = InMemoryBackend()
        backend.questions = []
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)
        await wizard.submit_specifics()
        await wizard.wait_idle()
        assert wizard.ctx.images

        wizard.restart()

        snapshot = wizard.snapshot()
        assert snapshot.step == Step.START
        assert snapshot.draft.destination == ""
        assert snapshot.images == {}
        assert snapshot.displayed_days == []
        assert snapshot.share_query is None
        assert wizard.ctx.draft_frozen is False

    async def test_restart_during_loading_discards_late_result(self):
        backend = InMemoryBackend()
        backend.questions = []
        backend.gates["generate_itinerary"] = asyncio.Event()
        wizard = _make_wizard(backend)
        await _drive_to_specifics(wizard)

        task = asyncio.create_task(wizard.submit_specifics())
        await _wait_for(lambda: backend.calls["generate_itinerary"] == 1)
        wizard.restart()
        backend.gates["generate_itinerary"].set()
        await task

        assert wizard.step == Step.START
        assert wizard.ctx.itinerary is None
        assert wizard.ctx.session_id is None

    async def test_restart_during_destination_check_stays_at_start(self):
        backend = InMemoryBackend()
        backend.gates["validate_destination"] = asyncio.Event()
        wizard = _make_wizard(backend)
        wizard.set_trip_basics(
            destination="tokyo",
            start_date=START,
            end_date=START + datetime.timedelta(days=2),
        )

        task = asyncio.create_task(wizard.submit_start())
        await _wait_for(lambda: backend.calls["validate_destination"] == 1)
        wizard.restart()
        backend.gates["validate_destination"].set()

        assert await task is False
        assert wizard.step == Step.START
        assert wizard.ctx.draft.destination == ""
        assert wizard.ctx.notice is None

    async def test_subscribers_receive_snapshots(self):
        wizard = _make_wizard()
        seen = []
        unsubscribe = wizard.subscribe(lambda snap: seen.append(snap.step))

        await _drive_to_specifics(wizard)
        unsubscribe()
        wizard.back()

        assert seen[-1] == Step.SPECIFICS
        assert Step.PREFERENCES in seen
