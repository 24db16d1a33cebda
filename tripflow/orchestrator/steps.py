"""
Step state machine.

Holds the transition table and the handlers that move the wizard
between steps. Every handler receives the wizard context and its
collaborators explicitly; none of them keep state of their own.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tripflow.orchestrator.errors import InvalidTransitionError, StepMismatchError
from tripflow.orchestrator.graph import OUTCOME_ITINERARY, OUTCOME_QUESTIONS
from tripflow.orchestrator.hydration import ImageHydrator
from tripflow.orchestrator.paywall import (
    EntryContext,
    EntryPath,
    adopt_session,
    share_query_for,
)
from tripflow.orchestrator.preferences import (
    freeze_draft,
    record_answer,
    thaw_draft,
    validate_preferences,
    validate_start,
)
from tripflow.orchestrator.state import Notice, NoticeKind, OrchestratorContext, Step
from tripflow.orchestrator.swipe import Commit, Decision, SwipeInterpreter
from tripflow.services.base import PlannerBackend
from tripflow.services.errors import BackendError
from tripflow.shared.contracts import PreferenceDraft, SessionResource, SmartQuestion
from tripflow.shared.logging import log_state_transition


logger = logging.getLogger(__name__)

TRANSITIONS = {
    Step.START: {Step.PREFERENCES, Step.LOADING, Step.VERIFYING_PAYMENT},
    Step.PREFERENCES: {Step.START, Step.SPECIFICS},
    Step.SPECIFICS: {Step.PREFERENCES, Step.LOADING},
    Step.LOADING: {Step.QUESTIONS, Step.ITINERARY, Step.START},
    Step.QUESTIONS: {Step.LOADING},
    Step.ITINERARY: {Step.START},
    Step.VERIFYING_PAYMENT: {Step.ITINERARY, Step.START},
}

BACK_TARGETS = {
    Step.PREFERENCES: Step.START,
    Step.SPECIFICS: Step.PREFERENCES,
}

# User-facing messages
INVALID_DESTINATION = (
    "We couldn't find that destination. Please check the spelling or try a specific city/country."
)
GENERATION_FAILED = "Something went wrong generating your trip."
CHECKOUT_FAILED = "Could not initialize payment. Please try again."
VERIFICATION_FAILED = "Verification failed. Please try again or contact support."
SESSION_NOT_FOUND = "We couldn't find that itinerary. Let's plan a new one."
PAYMENT_CANCELED = "Payment was cancelled. Your free preview is still available."


@dataclass
class StepDeps:
    """Collaborators handed to step handlers alongside the context."""

    backend: PlannerBackend
    hydrator: ImageHydrator
    loading_graph: Any


def _require_step(ctx: OrchestratorContext, handler: str, *steps: Step) -> None:
    if ctx.step not in steps:
        raise StepMismatchError(handler, steps, ctx.step)


def transition(ctx: OrchestratorContext, target: Step, reason: Optional[str] = None) -> None:
    """
    Move to another step.

    Raises:
        InvalidTransitionError: If the move is not in the transition table
    """
    source = ctx.step
    if target not in TRANSITIONS[source]:
        raise InvalidTransitionError(source, target)

    ctx.step = target
    if target == Step.LOADING:
        ctx.loading_started_at = time.monotonic()

    logger.info(
        f"[wizard={ctx.wizard_id}] [transition] {source.value} -> {target.value}"
        + (f" | reason={reason}" if reason else "")
    )
    log_state_transition(
        "step_transition",
        ctx.summary(),
        extra={"from": source.value, "to": target.value, "reason": reason},
    )


def _superseded(ctx: OrchestratorContext, epoch: int, step: Step) -> bool:
    """True once a restart or a new session has replaced what an await was started for."""
    return ctx.epoch != epoch or ctx.step != step


def _notify_user(ctx: OrchestratorContext, kind: NoticeKind, message: str, blocking: bool = False) -> None:
    ctx.notice = Notice(kind=kind, message=message, blocking=blocking)


def restart(ctx: OrchestratorContext) -> None:
    """
    Reset to Start from any step, discarding the draft and the session.

    Results still in flight for the discarded session are dropped on
    arrival because the epoch changes.
    """
    source = ctx.step
    ctx.bump_epoch()
    ctx.step = Step.START
    ctx.draft = PreferenceDraft()
    ctx.draft_frozen = False
    ctx.questions = []
    ctx.swipe = None
    ctx.itinerary = None
    ctx.session_id = None
    ctx.unlocked = False
    ctx.total_days = 0
    ctx.images = {}
    ctx.regenerating = {}
    ctx.notice = None
    ctx.email_prompt_open = False
    ctx.redirect_url = None
    ctx.share_query = None
    ctx.loading_started_at = None

    logger.info(f"[wizard={ctx.wizard_id}] [transition] {source.value} -> start | reason=restart")
    log_state_transition("restart", ctx.summary(), extra={"from": source.value})


def go_back(ctx: OrchestratorContext) -> Step:
    target = BACK_TARGETS.get(ctx.step)
    if target is None:
        raise StepMismatchError("go_back", tuple(BACK_TARGETS), ctx.step)
    transition(ctx, target, reason="back")
    return target


# ============================================================================
# Start / Preferences / Specifics
# ============================================================================


async def submit_start(ctx: OrchestratorContext, deps: StepDeps) -> bool:
    """
    Validate the destination and move to Preferences.

    An unreachable validation service does not block the traveler.
    """
    _require_step(ctx, "submit_start", Step.START)
    _log = ctx.log_prefix("submit_start")

    errors = validate_start(ctx.draft)
    if errors:
        _notify_user(ctx, NoticeKind.VALIDATION, " ".join(errors))
        return False

    epoch = ctx.epoch
    try:
        check = await deps.backend.validate_destination(ctx.draft.destination)
    except BackendError as e:
        if _superseded(ctx, epoch, Step.START):
            logger.info(f"{_log}Wizard restarted while validating, discarding result")
            return False
        logger.warning(f"{_log}Destination validation unavailable, proceeding optimistically: {e}")
        ctx.notice = None
        transition(ctx, Step.PREFERENCES, reason="validation_unavailable")
        return True

    if _superseded(ctx, epoch, Step.START):
        logger.info(f"{_log}Wizard restarted while validating, discarding result")
        return False

    if not check.is_valid:
        logger.info(f"{_log}Destination '{ctx.draft.destination}' rejected")
        _notify_user(ctx, NoticeKind.VALIDATION, INVALID_DESTINATION)
        return False

    if check.formatted_name:
        ctx.draft.destination = check.formatted_name
    ctx.notice = None
    transition(ctx, Step.PREFERENCES, reason="destination_valid")
    return True


def submit_preferences(ctx: OrchestratorContext) -> bool:
    _require_step(ctx, "submit_preferences", Step.PREFERENCES)
    errors = validate_preferences(ctx.draft)
    if errors:
        _notify_user(ctx, NoticeKind.VALIDATION, " ".join(errors))
        return False
    ctx.notice = None
    transition(ctx, Step.SPECIFICS)
    return True


async def submit_specifics(ctx: OrchestratorContext, deps: StepDeps) -> None:
    """Enter Loading for the first time: fetch questions, then pause or generate."""
    _require_step(ctx, "submit_specifics", Step.SPECIFICS)
    # Answers from an earlier, failed attempt must not leak into this one
    ctx.draft.follow_up_answers = {}
    prefs = freeze_draft(ctx)
    transition(ctx, Step.LOADING, reason="specifics_submitted")
    await run_loading(ctx, deps, prefs, questions_requested=False, answers_complete=False)


# ============================================================================
# Loading
# ============================================================================


async def run_loading(
    ctx: OrchestratorContext,
    deps: StepDeps,
    prefs: PreferenceDraft,
    questions_requested: bool,
    answers_complete: bool,
) -> None:
    """Run one pass of the loading graph and apply its outcome."""
    _log = ctx.log_prefix("run_loading")
    epoch = ctx.epoch

    initial_state: Dict[str, Any] = {
        "wizard_id": ctx.wizard_id,
        "prefs": prefs.model_dump(mode="json"),
        "question_cap": ctx.config.question_cap(prefs.trip_days),
        "questions_requested": questions_requested,
        "answers_complete": answers_complete,
        "questions": None,
        "generation": None,
        "outcome": None,
        "errors": [],
    }

    logger.info(f"{_log}Invoking loading graph | entry=route_loading")
    final_state = await deps.loading_graph.ainvoke(initial_state)

    if _superseded(ctx, epoch, Step.LOADING):
        logger.info(f"{_log}Wizard moved on while loading, discarding outcome")
        return

    outcome = final_state.get("outcome")
    if outcome == OUTCOME_QUESTIONS:
        questions = [SmartQuestion.model_validate(q) for q in final_state["questions"]]
        ctx.questions = questions
        ctx.swipe = SwipeInterpreter(questions, ctx.config.swipe_threshold)
        thaw_draft(ctx)
        transition(ctx, Step.QUESTIONS, reason=f"{len(questions)} questions")
        return

    if outcome == OUTCOME_ITINERARY:
        resource = SessionResource.model_validate(final_state["generation"])
        _show_itinerary(ctx, deps, resource, reason="generated")
        ctx.email_prompt_open = True
        return

    logger.warning(f"{_log}Generation failed | errors={final_state.get('errors')}")
    thaw_draft(ctx)
    _notify_user(ctx, NoticeKind.GENERATION, GENERATION_FAILED)
    transition(ctx, Step.START, reason="generation_failed")


def _show_itinerary(
    ctx: OrchestratorContext, deps: StepDeps, resource: SessionResource, reason: str
) -> None:
    adopt_session(ctx, resource)
    transition(ctx, Step.ITINERARY, reason=reason)
    deps.hydrator.schedule(ctx.itinerary.days, ctx.itinerary.destination, resource.images)


# ============================================================================
# Questions
# ============================================================================


def begin_gesture(ctx: OrchestratorContext, x: float, y: float) -> bool:
    _require_step(ctx, "begin_gesture", Step.QUESTIONS)
    return ctx.swipe.begin(x, y)


def move_gesture(ctx: OrchestratorContext, x: float, y: float) -> None:
    _require_step(ctx, "move_gesture", Step.QUESTIONS)
    ctx.swipe.move(x, y)


async def release_gesture(ctx: OrchestratorContext, deps: StepDeps) -> Decision:
    _require_step(ctx, "release_gesture", Step.QUESTIONS)
    decision = ctx.swipe.release()
    await _commit(ctx, deps, decision, "release_gesture")
    return decision


async def press_answer(ctx: OrchestratorContext, deps: StepDeps, answer: bool) -> Decision:
    _require_step(ctx, "press_answer", Step.QUESTIONS)
    decision = ctx.swipe.press(answer)
    await _commit(ctx, deps, decision, "press_answer")
    return decision


async def _commit(ctx: OrchestratorContext, deps: StepDeps, decision: Decision, handler: str) -> None:
    if not isinstance(decision, Commit):
        return

    swipe = ctx.swipe
    question = swipe.current
    _log = ctx.log_prefix(handler)
    record_answer(ctx, question.id, decision.answer)
    logger.info(f"{_log}Answered '{question.id}' -> {decision.direction}")

    await asyncio.sleep(ctx.config.swipe_animation_seconds)

    if ctx.step != Step.QUESTIONS or ctx.swipe is not swipe:
        logger.info(f"{_log}Wizard moved on during the swipe animation")
        return

    if not swipe.advance():
        return

    logger.info(f"{_log}All {len(swipe.questions)} questions answered")
    prefs = freeze_draft(ctx)
    transition(ctx, Step.LOADING, reason="questions_complete")
    await run_loading(ctx, deps, prefs, questions_requested=True, answers_complete=True)


# ============================================================================
# Resume and payment
# ============================================================================


async def resume(ctx: OrchestratorContext, deps: StepDeps, entry: EntryContext) -> EntryPath:
    """
    Reconstruct the wizard from a deep link.

    The entry parameters alone decide the path: no locator starts fresh,
    a locator resumes, and a locator with a payment-success marker and a
    payment reference verifies the payment first.
    """
    _require_step(ctx, "resume", Step.START)
    path = entry.path
    _log = ctx.log_prefix("resume")
    logger.info(f"{_log}Entry path={path.value} | locator={entry.locator}, canceled={entry.canceled}")

    if path == EntryPath.FRESH:
        return path

    if path == EntryPath.VERIFY_PAYMENT:
        await _verify_and_load(ctx, deps, entry)
        return path

    transition(ctx, Step.LOADING, reason="resume")
    epoch = ctx.epoch
    try:
        resource = await deps.backend.load_session(entry.locator)
    except BackendError as e:
        if _superseded(ctx, epoch, Step.LOADING):
            logger.info(f"{_log}Wizard restarted while resuming, discarding error")
            return path
        logger.warning(f"{_log}Could not load session {entry.locator}: {e}")
        _notify_user(ctx, NoticeKind.INFO, SESSION_NOT_FOUND)
        transition(ctx, Step.START, reason="session_not_found")
        return path

    if _superseded(ctx, epoch, Step.LOADING):
        logger.info(f"{_log}Wizard restarted while resuming, discarding session {resource.id}")
        return path

    _show_itinerary(ctx, deps, resource, reason="resumed")
    if entry.canceled:
        _notify_user(ctx, NoticeKind.INFO, PAYMENT_CANCELED)
    return path


async def _verify_and_load(ctx: OrchestratorContext, deps: StepDeps, entry: EntryContext) -> None:
    _log = ctx.log_prefix("verify_payment")
    transition(ctx, Step.VERIFYING_PAYMENT, reason="payment_success_marker")
    epoch = ctx.epoch
    ctx.session_id = entry.locator
    ctx.share_query = share_query_for(entry.locator)

    try:
        verified = await deps.backend.verify_payment_session(entry.locator, entry.payment_ref)
        resource = await deps.backend.load_session(entry.locator) if verified else None
    except BackendError as e:
        logger.warning(f"{_log}Payment verification failed: {e}")
        verified, resource = False, None

    if _superseded(ctx, epoch, Step.VERIFYING_PAYMENT):
        logger.info(f"{_log}Wizard restarted while verifying payment, discarding result")
        return

    if not verified or resource is None:
        logger.warning(f"{_log}Payment not verified for session {entry.locator}")
        ctx.session_id = None
        ctx.share_query = None
        _notify_user(ctx, NoticeKind.PAYMENT, VERIFICATION_FAILED, blocking=True)
        transition(ctx, Step.START, reason="verification_failed")
        return

    if not resource.unlocked:
        logger.warning(f"{_log}Session {resource.id} still locked after verification")
    _show_itinerary(ctx, deps, resource, reason="payment_verified")


async def start_checkout(ctx: OrchestratorContext, deps: StepDeps) -> Optional[str]:
    """
    Create a checkout for unlocking the session.

    Returns:
        The redirect URL, or None if checkout could not be initialised
    """
    _require_step(ctx, "start_checkout", Step.ITINERARY)
    _log = ctx.log_prefix("start_checkout")
    if ctx.unlocked:
        logger.info(f"{_log}Session already unlocked, no checkout needed")
        return None

    try:
        url = await deps.backend.create_checkout_session(ctx.session_id)
    except BackendError as e:
        logger.warning(f"{_log}Checkout initialisation failed: {e}")
        _notify_user(ctx, NoticeKind.PAYMENT, CHECKOUT_FAILED)
        return None

    ctx.redirect_url = url
    logger.info(f"{_log}Redirecting to checkout for session {ctx.session_id}")
    return url


async def share_by_email(ctx: OrchestratorContext, deps: StepDeps, email: str) -> bool:
    """Attach an email to the session. The prompt closes whatever the outcome."""
    _require_step(ctx, "share_by_email", Step.ITINERARY)
    _log = ctx.log_prefix("share_by_email")
    email = (email or "").strip()
    if not email:
        return False

    try:
        await deps.backend.save_email(email, ctx.session_id)
        saved = True
    except BackendError as e:
        logger.warning(f"{_log}Could not save email: {e}")
        saved = False
    finally:
        ctx.email_prompt_open = False
    return saved


def set_email_prompt(ctx: OrchestratorContext, open_: bool) -> None:
    _require_step(ctx, "set_email_prompt", Step.ITINERARY)
    ctx.email_prompt_open = open_
