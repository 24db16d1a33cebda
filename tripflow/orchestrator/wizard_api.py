"""
FastAPI endpoints for the planning wizard.

Provides a REST API that drives one wizard per browser session:
opening (optionally from a deep link), per-step inputs, swipe gestures,
slot operations, checkout and email sharing. Every endpoint returns the
wizard's render-ready snapshot.
"""

import datetime
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from tripflow.orchestrator.config import DEFAULT_CONFIG, WizardConfig
from tripflow.orchestrator.errors import WizardError
from tripflow.orchestrator.state import WizardSnapshot
from tripflow.orchestrator.wizard import PlanningWizard
from tripflow.services import PlannerBackend, get_cached_backend
from tripflow.shared.contracts import (
    BudgetLevel,
    Gender,
    Interest,
    KidsAgeRange,
    PaceType,
    Period,
    TripType,
    VibeType,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wizard", tags=["wizard"])

# In-memory wizard storage (replace with Redis/DB in production)
_wizards: Dict[str, PlanningWizard] = {}


def get_backend() -> PlannerBackend:
    """Backend shared by all wizards (overridden in tests)."""
    return get_cached_backend()


def get_wizard_config() -> WizardConfig:
    return DEFAULT_CONFIG


def get_wizard(wizard_id: str) -> PlanningWizard:
    wizard = _wizards.get(wizard_id)
    if wizard is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Wizard {wizard_id} not found",
        )
    return wizard


def _conflict(wizard: PlanningWizard, error: WizardError) -> HTTPException:
    logger.warning(f"[wizard={wizard.wizard_id}] [api] Rejected: {error}")
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))


# ============================================================================
# Request Models
# ============================================================================


class OpenWizardRequest(BaseModel):
    """Deep-link query the page was opened with, e.g. 'id=...&success=true'."""

    query: Optional[str] = Field(default=None, description="Entry query string")


class TripBasicsRequest(BaseModel):
    destination: Optional[str] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    hotel_location: Optional[str] = None


class ProfileRequest(BaseModel):
    trip_type: Optional[TripType] = None
    budget: Optional[BudgetLevel] = None
    vibe: Optional[VibeType] = None
    pace: Optional[PaceType] = None


class DemographicsRequest(BaseModel):
    gender: Optional[Gender] = None
    age: Optional[int] = None
    kids_age_range: Optional[KidsAgeRange] = None


class InterestRequest(BaseModel):
    interest: Interest


class FixedPlanRequest(BaseModel):
    date: Optional[datetime.date] = None
    description: str = ""


class MustVisitRequest(BaseModel):
    text: str = ""


class PointerRequest(BaseModel):
    x: float
    y: float


class AnswerRequest(BaseModel):
    yes: bool


class SlotRequest(BaseModel):
    day_number: int = Field(ge=1)
    period: Period
    index: int = Field(ge=0)
    instruction: Optional[str] = Field(default=None, description="Free-text regeneration request")


class EmailRequest(BaseModel):
    email: str = Field(min_length=3)


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", response_model=WizardSnapshot)
async def open_wizard(
    request: OpenWizardRequest,
    backend: PlannerBackend = Depends(get_backend),
    config: WizardConfig = Depends(get_wizard_config),
) -> WizardSnapshot:
    """
    Open a new wizard.

    With a deep-link query the wizard resumes the referenced session or
    verifies a completed payment before showing it.
    """
    wizard = PlanningWizard(backend, config=config)
    _wizards[wizard.wizard_id] = wizard
    logger.info(f"[wizard={wizard.wizard_id}] [api=open] Opening | query={request.query!r}")
    await wizard.open(request.query)
    return wizard.snapshot()


@router.get("/{wizard_id}", response_model=WizardSnapshot)
async def get_snapshot(wizard_id: str, settle: bool = False) -> WizardSnapshot:
    """Current snapshot. With settle=true, waits for image hydration first."""
    wizard = get_wizard(wizard_id)
    if settle:
        await wizard.wait_idle()
    return wizard.snapshot()


@router.delete("/{wizard_id}")
async def delete_wizard(wizard_id: str):
    get_wizard(wizard_id)
    del _wizards[wizard_id]
    return {"status": "deleted", "wizard_id": wizard_id}


@router.post("/{wizard_id}/restart", response_model=WizardSnapshot)
async def restart(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    wizard.restart()
    return wizard.snapshot()


@router.post("/{wizard_id}/back", response_model=WizardSnapshot)
async def back(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.back()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/notice/dismiss", response_model=WizardSnapshot)
async def dismiss_notice(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    wizard.dismiss_notice()
    return wizard.snapshot()


# --- Start -------------------------------------------------------------------


@router.post("/{wizard_id}/basics", response_model=WizardSnapshot)
async def set_trip_basics(wizard_id: str, request: TripBasicsRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.set_trip_basics(
            destination=request.destination,
            start_date=request.start_date,
            end_date=request.end_date,
            hotel_location=request.hotel_location,
        )
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/start/submit", response_model=WizardSnapshot)
async def submit_start(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.submit_start()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


# --- Preferences ---------------------------------------------------------------


@router.post("/{wizard_id}/profile", response_model=WizardSnapshot)
async def set_profile(wizard_id: str, request: ProfileRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.set_profile(
            trip_type=request.trip_type,
            budget=request.budget,
            vibe=request.vibe,
            pace=request.pace,
        )
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/demographics", response_model=WizardSnapshot)
async def set_demographics(wizard_id: str, request: DemographicsRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.set_demographics(
            gender=request.gender,
            age=request.age,
            kids_age_range=request.kids_age_range,
        )
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/interests/toggle", response_model=WizardSnapshot)
async def toggle_interest(wizard_id: str, request: InterestRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.toggle_interest(request.interest)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/preferences/submit", response_model=WizardSnapshot)
async def submit_preferences(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.submit_preferences()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


# --- Specifics -------------------------------------------------------------------


@router.post("/{wizard_id}/fixed-plans", response_model=WizardSnapshot)
async def add_fixed_plan(wizard_id: str, request: FixedPlanRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.add_fixed_plan(request.date, request.description)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.delete("/{wizard_id}/fixed-plans/{plan_id}", response_model=WizardSnapshot)
async def remove_fixed_plan(wizard_id: str, plan_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        removed = wizard.remove_fixed_plan(plan_id)
    except WizardError as e:
        raise _conflict(wizard, e)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Fixed plan {plan_id} not found",
        )
    return wizard.snapshot()


@router.post("/{wizard_id}/must-visit", response_model=WizardSnapshot)
async def set_must_visit(wizard_id: str, request: MustVisitRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.set_must_visit(request.text)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/specifics/submit", response_model=WizardSnapshot)
async def submit_specifics(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.submit_specifics()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


# --- Questions ---------------------------------------------------------------------


@router.post("/{wizard_id}/swipe/begin", response_model=WizardSnapshot)
async def begin_gesture(wizard_id: str, request: PointerRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.begin_gesture(request.x, request.y)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/swipe/move", response_model=WizardSnapshot)
async def move_gesture(wizard_id: str, request: PointerRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.move_gesture(request.x, request.y)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/swipe/release", response_model=WizardSnapshot)
async def release_gesture(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.release_gesture()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/answer", response_model=WizardSnapshot)
async def answer(wizard_id: str, request: AnswerRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.answer(request.yes)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


# --- Itinerary -----------------------------------------------------------------------


@router.post("/{wizard_id}/slots/regenerate", response_model=WizardSnapshot)
async def regenerate(wizard_id: str, request: SlotRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.regenerate(request.day_number, request.period, request.index, request.instruction)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/slots/delete", response_model=WizardSnapshot)
async def delete_activity(wizard_id: str, request: SlotRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.delete_activity(request.day_number, request.period, request.index)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/checkout", response_model=WizardSnapshot)
async def start_checkout(wizard_id: str) -> WizardSnapshot:
    """Create a checkout; the snapshot's redirect_url carries the provider URL."""
    wizard = get_wizard(wizard_id)
    try:
        await wizard.start_checkout()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/email", response_model=WizardSnapshot)
async def share_by_email(wizard_id: str, request: EmailRequest) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        await wizard.share_by_email(request.email)
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.post("/{wizard_id}/email/prompt", response_model=WizardSnapshot)
async def open_email_prompt(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.open_email_prompt()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()


@router.delete("/{wizard_id}/email/prompt", response_model=WizardSnapshot)
async def close_email_prompt(wizard_id: str) -> WizardSnapshot:
    wizard = get_wizard(wizard_id)
    try:
        wizard.close_email_prompt()
    except WizardError as e:
        raise _conflict(wizard, e)
    return wizard.snapshot()
