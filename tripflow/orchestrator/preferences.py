"""
Preference aggregate.

Step-scoped mutators and validators for the preference draft. Every
mutator checks that the wizard is in the step that owns the field and
that the draft has not been handed to the generation service; values
are replaced whole (never mutated in place) so validate_assignment runs
on every change.
"""

import datetime
import logging
from typing import List, Optional

from pydantic import ValidationError

from tripflow.orchestrator.errors import (
    DraftFrozenError,
    PreferenceValidationError,
    StepMismatchError,
)
from tripflow.orchestrator.state import OrchestratorContext, Step
from tripflow.shared.contracts import (
    BudgetLevel,
    FixedPlan,
    Gender,
    Interest,
    KidsAgeRange,
    PaceType,
    PreferenceDraft,
    TripType,
    VibeType,
    missing_demographics,
)


logger = logging.getLogger(__name__)

# Message shown when a trip type's demographics are incomplete
DEMOGRAPHICS_MESSAGES = {
    TripType.SOLO: "Please select your gender and enter your age.",
    TripType.COUPLE: "Please enter the average age of your group.",
    TripType.FRIENDS: "Please enter the average age of your group.",
    TripType.FAMILY: "Please select the age range of the children.",
}


def _require(ctx: OrchestratorContext, handler: str, *steps: Step) -> None:
    if ctx.step not in steps:
        raise StepMismatchError(handler, steps, ctx.step)
    if ctx.draft_frozen:
        raise DraftFrozenError(f"'{handler}' called after the draft was sent for generation")


def _assign(draft: PreferenceDraft, **values) -> None:
    try:
        for name, value in values.items():
            setattr(draft, name, value)
    except ValidationError as e:
        raise PreferenceValidationError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e


# ============================================================================
# Mutators
# ============================================================================


def update_trip_basics(
    ctx: OrchestratorContext,
    destination: Optional[str] = None,
    start_date: Optional[datetime.date] = None,
    end_date: Optional[datetime.date] = None,
    hotel_location: Optional[str] = None,
) -> None:
    """Set the Start-step fields. None leaves a field unchanged."""
    _require(ctx, "update_trip_basics", Step.START)
    draft = ctx.draft

    start = start_date if start_date is not None else draft.start_date
    end = end_date if end_date is not None else draft.end_date
    if start is not None and end is not None and end < start:
        raise PreferenceValidationError(["End date must be on or after the start date."])

    changes = {}
    if destination is not None:
        changes["destination"] = destination.strip()
    if start_date is not None:
        changes["start_date"] = start_date
    if end_date is not None:
        changes["end_date"] = end_date
    if hotel_location is not None:
        changes["hotel_location"] = hotel_location.strip()
    _assign(draft, **changes)

    # Plans pinned to days outside a narrowed range no longer apply
    kept = [plan for plan in draft.fixed_plans if draft.covers(plan.date)]
    if len(kept) != len(draft.fixed_plans):
        logger.info(
            f"{ctx.log_prefix('update_trip_basics')}Dropped "
            f"{len(draft.fixed_plans) - len(kept)} fixed plan(s) outside the new dates"
        )
        _assign(draft, fixed_plans=kept)


def update_profile(
    ctx: OrchestratorContext,
    trip_type: Optional[TripType] = None,
    budget: Optional[BudgetLevel] = None,
    vibe: Optional[VibeType] = None,
    pace: Optional[PaceType] = None,
) -> None:
    _require(ctx, "update_profile", Step.PREFERENCES)
    changes = {
        name: value
        for name, value in (
            ("trip_type", trip_type),
            ("budget", budget),
            ("vibe", vibe),
            ("pace", pace),
        )
        if value is not None
    }
    _assign(ctx.draft, **changes)


def update_demographics(
    ctx: OrchestratorContext,
    gender: Optional[Gender] = None,
    age: Optional[int] = None,
    kids_age_range: Optional[KidsAgeRange] = None,
) -> None:
    _require(ctx, "update_demographics", Step.PREFERENCES)
    current = ctx.draft.demographics.model_dump()
    for name, value in (("gender", gender), ("age", age), ("kids_age_range", kids_age_range)):
        if value is not None:
            current[name] = value
    _assign(ctx.draft, demographics=current)


def toggle_interest(ctx: OrchestratorContext, interest: Interest) -> bool:
    """
    Add or remove an interest.

    Returns:
        True if the interest is selected after the toggle
    """
    _require(ctx, "toggle_interest", Step.PREFERENCES)
    interests = set(ctx.draft.interests)
    interest = Interest(interest)
    if interest in interests:
        interests.discard(interest)
    else:
        interests.add(interest)
    _assign(ctx.draft, interests=interests)
    return interest in interests


def add_fixed_plan(ctx: OrchestratorContext, date: Optional[datetime.date], description: str) -> FixedPlan:
    """
    Append a fixed commitment to the draft.

    Raises:
        PreferenceValidationError: If a field is missing or the date is
            outside the trip range
    """
    _require(ctx, "add_fixed_plan", Step.SPECIFICS)
    description = (description or "").strip()
    if date is None or not description:
        raise PreferenceValidationError(["A fixed plan needs both a date and a description."])
    if not ctx.draft.covers(date):
        raise PreferenceValidationError(["Fixed plans must fall within your travel dates."])

    taken = {plan.id for plan in ctx.draft.fixed_plans}
    plan = FixedPlan(date=date, description=description)
    while plan.id in taken:
        plan = FixedPlan(date=date, description=description)

    _assign(ctx.draft, fixed_plans=[*ctx.draft.fixed_plans, plan])
    return plan


def remove_fixed_plan(ctx: OrchestratorContext, plan_id: str) -> bool:
    _require(ctx, "remove_fixed_plan", Step.SPECIFICS)
    kept = [plan for plan in ctx.draft.fixed_plans if plan.id != plan_id]
    if len(kept) == len(ctx.draft.fixed_plans):
        return False
    _assign(ctx.draft, fixed_plans=kept)
    return True


def set_must_visit(ctx: OrchestratorContext, text: str) -> None:
    _require(ctx, "set_must_visit", Step.SPECIFICS)
    _assign(ctx.draft, must_visit=text or "")


def record_answer(ctx: OrchestratorContext, question_id: str, answer: bool) -> None:
    """Write one follow-up answer; re-answering the same id overwrites."""
    _require(ctx, "record_answer", Step.QUESTIONS)
    _assign(ctx.draft, follow_up_answers={**ctx.draft.follow_up_answers, question_id: bool(answer)})


# ============================================================================
# Validators
# ============================================================================


def validate_start(draft: PreferenceDraft) -> List[str]:
    """Errors blocking Start -> Preferences (before destination validation)."""
    errors = []
    if not draft.destination.strip():
        errors.append("Please enter a destination.")
    if draft.start_date is None or draft.end_date is None:
        errors.append("Please select your travel dates.")
    elif draft.end_date < draft.start_date:
        errors.append("End date must be on or after the start date.")
    return errors


def validate_preferences(draft: PreferenceDraft) -> List[str]:
    """Errors blocking Preferences -> Specifics."""
    if missing_demographics(draft.trip_type, draft.demographics):
        return [DEMOGRAPHICS_MESSAGES[draft.trip_type]]
    return []


# ============================================================================
# Freezing
# ============================================================================


def freeze_draft(ctx: OrchestratorContext) -> PreferenceDraft:
    """
    Freeze the draft and return the copy sent to the generation service.
    """
    ctx.draft_frozen = True
    return ctx.draft.model_copy(deep=True)


def thaw_draft(ctx: OrchestratorContext) -> None:
    ctx.draft_frozen = False
