"""
Planning wizard facade.

Owns one wizard's context and collaborators, exposes every traveler
action as a method, and publishes a render-ready snapshot to
subscribers after each change.
"""

import datetime
import logging
import time
import uuid
from typing import Callable, List, Optional, Union

from tripflow.orchestrator import preferences, steps
from tripflow.orchestrator.config import DEFAULT_CONFIG, WizardConfig
from tripflow.orchestrator.errors import PreferenceValidationError
from tripflow.orchestrator.graph import create_loading_graph
from tripflow.orchestrator.hydration import ImageHydrator
from tripflow.orchestrator.paywall import EntryContext, EntryPath, PaywallView
from tripflow.orchestrator.slots import SlotController, in_flight_slots
from tripflow.orchestrator.state import (
    Notice,
    NoticeKind,
    OrchestratorContext,
    SlotKey,
    Step,
    WizardSnapshot,
    loading_progress,
)
from tripflow.orchestrator.swipe import Decision
from tripflow.services.base import PlannerBackend
from tripflow.shared.contracts import (
    Activity,
    BudgetLevel,
    FixedPlan,
    Gender,
    Interest,
    KidsAgeRange,
    PaceType,
    Period,
    TripType,
    VibeType,
)


logger = logging.getLogger(__name__)

Subscriber = Callable[[WizardSnapshot], None]


class PlanningWizard:
    """
    One traveler's planning session.

    Args:
        backend: Generation, persistence and payment capabilities
        config: Wizard tuning (defaults to DEFAULT_CONFIG)
        wizard_id: Identifier used in logs (generated when omitted)
    """

    def __init__(
        self,
        backend: PlannerBackend,
        config: Optional[WizardConfig] = None,
        wizard_id: Optional[str] = None,
    ):
        self.backend = backend
        self.ctx = OrchestratorContext(
            wizard_id=wizard_id or str(uuid.uuid4()),
            config=config or DEFAULT_CONFIG,
        )
        self.hydrator = ImageHydrator(self.ctx, backend, on_change=self._publish)
        self.slots = SlotController(backend, on_change=self._publish)
        self.deps = steps.StepDeps(
            backend=backend,
            hydrator=self.hydrator,
            loading_graph=create_loading_graph(backend),
        )
        self._subscribers: List[Subscriber] = []

    @property
    def wizard_id(self) -> str:
        return self.ctx.wizard_id

    @property
    def step(self) -> Step:
        return self.ctx.step

    # ------------------------------------------------------------------
    # Snapshot and subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a snapshot listener. Returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            callback(snapshot)

    def snapshot(self, now: Optional[float] = None) -> WizardSnapshot:
        ctx = self.ctx
        view = PaywallView.from_context(ctx)
        swipe = ctx.swipe

        if ctx.step == Step.LOADING and ctx.loading_started_at is not None:
            elapsed = (now if now is not None else time.monotonic()) - ctx.loading_started_at
            progress = loading_progress(elapsed, ctx.config.progress_cap)
        elif ctx.itinerary is not None:
            progress = 100.0
        else:
            progress = 0.0

        return WizardSnapshot(
            wizard_id=ctx.wizard_id,
            step=ctx.step,
            draft=ctx.draft.model_copy(deep=True),
            draft_frozen=ctx.draft_frozen,
            questions=list(ctx.questions),
            active_question_index=swipe.index if swipe is not None else 0,
            swipe_delta=list(swipe.delta) if swipe is not None else [0.0, 0.0],
            animating=swipe.animating if swipe is not None else False,
            destination=ctx.itinerary.destination if ctx.itinerary is not None else None,
            displayed_days=view.displayed_days,
            total_days=view.total_days,
            locked_days_count=view.locked_days_count,
            show_unlock=view.show_unlock,
            unlocked=ctx.unlocked,
            images=dict(ctx.images),
            regenerating=[str(key) for key in in_flight_slots(ctx)],
            notice=ctx.notice,
            email_prompt_open=ctx.email_prompt_open,
            share_query=ctx.share_query,
            redirect_url=ctx.redirect_url,
            loading_progress=progress,
        )

    def _validation_notice(self, error: PreferenceValidationError) -> None:
        logger.info(f"{self.ctx.log_prefix('validation')}Rejected input: {error}")
        self.ctx.notice = Notice(kind=NoticeKind.VALIDATION, message=" ".join(error.errors))

    # ------------------------------------------------------------------
    # Entry, restart and navigation
    # ------------------------------------------------------------------

    async def open(self, entry: Union[EntryContext, str, None] = None) -> EntryPath:
        """Open the wizard, resuming from deep-link parameters when present."""
        if not isinstance(entry, EntryContext):
            entry = EntryContext.from_query(entry)
        path = await steps.resume(self.ctx, self.deps, entry)
        self._publish()
        return path

    def restart(self) -> None:
        steps.restart(self.ctx)
        self._publish()

    def back(self) -> Step:
        target = steps.go_back(self.ctx)
        self._publish()
        return target

    def dismiss_notice(self) -> None:
        self.ctx.notice = None
        self._publish()

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def set_trip_basics(
        self,
        destination: Optional[str] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
        hotel_location: Optional[str] = None,
    ) -> bool:
        try:
            preferences.update_trip_basics(
                self.ctx, destination, start_date, end_date, hotel_location
            )
        except PreferenceValidationError as e:
            self._validation_notice(e)
            return False
        finally:
            self._publish()
        return True

    async def submit_start(self) -> bool:
        moved = await steps.submit_start(self.ctx, self.deps)
        self._publish()
        return moved

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def set_profile(
        self,
        trip_type: Optional[TripType] = None,
        budget: Optional[BudgetLevel] = None,
        vibe: Optional[VibeType] = None,
        pace: Optional[PaceType] = None,
    ) -> None:
        preferences.update_profile(self.ctx, trip_type, budget, vibe, pace)
        self._publish()

    def set_demographics(
        self,
        gender: Optional[Gender] = None,
        age: Optional[int] = None,
        kids_age_range: Optional[KidsAgeRange] = None,
    ) -> bool:
        try:
            preferences.update_demographics(self.ctx, gender, age, kids_age_range)
        except PreferenceValidationError as e:
            self._validation_notice(e)
            return False
        finally:
            self._publish()
        return True

    def toggle_interest(self, interest: Interest) -> bool:
        selected = preferences.toggle_interest(self.ctx, interest)
        self._publish()
        return selected

    def submit_preferences(self) -> bool:
        moved = steps.submit_preferences(self.ctx)
        self._publish()
        return moved

    # ------------------------------------------------------------------
    # Specifics
    # ------------------------------------------------------------------

    def add_fixed_plan(self, date: Optional[datetime.date], description: str) -> Optional[FixedPlan]:
        try:
            plan = preferences.add_fixed_plan(self.ctx, date, description)
        except PreferenceValidationError as e:
            self._validation_notice(e)
            return None
        finally:
            self._publish()
        return plan

    def remove_fixed_plan(self, plan_id: str) -> bool:
        removed = preferences.remove_fixed_plan(self.ctx, plan_id)
        self._publish()
        return removed

    def set_must_visit(self, text: str) -> None:
        preferences.set_must_visit(self.ctx, text)
        self._publish()

    async def submit_specifics(self) -> Step:
        """Fetch questions and either pause at Questions or generate."""
        await steps.submit_specifics(self.ctx, self.deps)
        self._publish()
        return self.ctx.step

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def begin_gesture(self, x: float, y: float) -> bool:
        started = steps.begin_gesture(self.ctx, x, y)
        self._publish()
        return started

    def move_gesture(self, x: float, y: float) -> None:
        steps.move_gesture(self.ctx, x, y)
        self._publish()

    async def release_gesture(self) -> Decision:
        decision = await steps.release_gesture(self.ctx, self.deps)
        self._publish()
        return decision

    async def answer(self, yes: bool) -> Decision:
        """Button equivalent of swiping right (yes) or left (no)."""
        decision = await steps.press_answer(self.ctx, self.deps, yes)
        self._publish()
        return decision

    # ------------------------------------------------------------------
    # Itinerary
    # ------------------------------------------------------------------

    async def regenerate(
        self,
        day_number: int,
        period: Period,
        index: int,
        instruction: Optional[str] = None,
    ) -> bool:
        return await self.slots.regenerate(
            self.ctx, SlotKey(day_number, Period(period), index), instruction
        )

    def delete_activity(self, day_number: int, period: Period, index: int) -> Activity:
        return self.slots.delete(self.ctx, SlotKey(day_number, Period(period), index))

    async def start_checkout(self) -> Optional[str]:
        url = await steps.start_checkout(self.ctx, self.deps)
        self._publish()
        return url

    async def share_by_email(self, email: str) -> bool:
        saved = await steps.share_by_email(self.ctx, self.deps, email)
        self._publish()
        return saved

    def open_email_prompt(self) -> None:
        steps.set_email_prompt(self.ctx, True)
        self._publish()

    def close_email_prompt(self) -> None:
        steps.set_email_prompt(self.ctx, False)
        self._publish()

    async def wait_idle(self) -> None:
        """Wait for background image hydration and persistence to finish."""
        await self.hydrator.wait_idle()
