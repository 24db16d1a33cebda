"""
Wizard state schema.

Defines the explicit context object handed to every step handler, the
slot addressing key, user-facing notices, and the render-ready snapshot
the wizard exposes after each change.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tripflow.orchestrator.config import DEFAULT_CONFIG, WizardConfig
from tripflow.orchestrator.swipe import SwipeInterpreter
from tripflow.shared.contracts import (
    DayPlan,
    Itinerary,
    Period,
    PreferenceDraft,
    SmartQuestion,
)


class Step(str, Enum):
    """Wizard steps. LOADING is re-entered from SPECIFICS and QUESTIONS."""

    START = "start"
    PREFERENCES = "preferences"
    SPECIFICS = "specifics"
    QUESTIONS = "questions"
    LOADING = "loading"
    ITINERARY = "itinerary"
    VERIFYING_PAYMENT = "verifying_payment"


@dataclass(frozen=True)
class SlotKey:
    """Addressable (day, period, index) position holding one activity."""

    day_number: int
    period: Period
    index: int

    def __str__(self) -> str:
        return f"{self.day_number}-{Period(self.period).value}-{self.index}"


class NoticeKind(str, Enum):
    VALIDATION = "validation"
    GENERATION = "generation"
    PAYMENT = "payment"
    INFO = "info"


class Notice(BaseModel):
    """A user-facing message; blocking notices must be dismissed explicitly."""

    kind: NoticeKind
    message: str
    blocking: bool = False

    class Config:
        frozen = True


@dataclass
class OrchestratorContext:
    """
    Everything one wizard owns.

    Handlers receive this object instead of reaching for shared state.
    `regenerating` maps the activity id of every in-flight regeneration
    to the slot it occupied when the request was accepted. `epoch` is
    bumped whenever the itinerary is replaced wholesale so late async
    results for a superseded session can be recognised and dropped.
    """

    wizard_id: str
    config: WizardConfig = DEFAULT_CONFIG
    step: Step = Step.START

    # Preference aggregate
    draft: PreferenceDraft = field(default_factory=PreferenceDraft)
    draft_frozen: bool = False

    # Questions
    questions: List[SmartQuestion] = field(default_factory=list)
    swipe: Optional[SwipeInterpreter] = None

    # Session resource
    itinerary: Optional[Itinerary] = None
    session_id: Optional[str] = None
    unlocked: bool = False
    total_days: int = 0
    images: Dict[int, str] = field(default_factory=dict)

    # In-flight slot regenerations: activity id -> slot key at accept time
    regenerating: Dict[str, SlotKey] = field(default_factory=dict)

    # UI affordances
    notice: Optional[Notice] = None
    email_prompt_open: bool = False
    redirect_url: Optional[str] = None
    share_query: Optional[str] = None

    epoch: int = 0
    loading_started_at: Optional[float] = None

    def log_prefix(self, handler: str) -> str:
        return f"[wizard={self.wizard_id}] [step={self.step.value}] [handler={handler}] "

    def bump_epoch(self) -> int:
        self.epoch += 1
        return self.epoch

    def locate(self, activity_id: str) -> Optional[SlotKey]:
        """Current slot of an activity, or None if it is no longer in the plan."""
        if self.itinerary is None:
            return None
        for day in self.itinerary.days:
            for period in Period:
                for index, activity in enumerate(day.activities(period)):
                    if activity.activity_id == activity_id:
                        return SlotKey(day.day_number, period, index)
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "wizard_id": self.wizard_id,
            "step": self.step.value,
            "session_id": self.session_id,
            "unlocked": self.unlocked,
            "epoch": self.epoch,
        }


def loading_progress(elapsed: float, cap: float, tick: float = 0.1) -> float:
    """
    Progress bar value after `elapsed` seconds in LOADING.

    Advances once per tick by max(0.5, remaining / 20) and stops at cap.
    """
    progress = 0.0
    for _ in range(int(max(0.0, elapsed) / tick)):
        if progress >= cap:
            break
        progress += max(0.5, (cap - progress) / 20)
    return min(progress, cap)


class WizardSnapshot(BaseModel):
    """Render-ready view of a wizard."""

    wizard_id: str
    step: Step
    draft: PreferenceDraft
    draft_frozen: bool = False

    questions: List[SmartQuestion] = Field(default_factory=list)
    active_question_index: int = 0
    swipe_delta: List[float] = Field(default_factory=lambda: [0.0, 0.0])
    animating: bool = False

    destination: Optional[str] = None
    displayed_days: List[DayPlan] = Field(default_factory=list)
    total_days: int = 0
    locked_days_count: int = 0
    show_unlock: bool = False
    unlocked: bool = False
    images: Dict[int, str] = Field(default_factory=dict)
    regenerating: List[str] = Field(default_factory=list)

    notice: Optional[Notice] = None
    email_prompt_open: bool = False
    share_query: Optional[str] = None
    redirect_url: Optional[str] = None
    loading_progress: float = 0.0
