"""
Slot regeneration and deletion.

Slots are addressed by (day, period, index) at the edges, but an
accepted regeneration is tracked by the activity id found at that slot.
The replacement is written to wherever that activity sits when the
result arrives, so deletions that shift indices in the meantime cannot
redirect it to a neighbouring activity. If the activity itself was
deleted, the result is dropped.
"""

import logging
from typing import Callable, List, Optional

from tripflow.orchestrator.errors import SlotNotFoundError, StepMismatchError
from tripflow.orchestrator.state import OrchestratorContext, SlotKey, Step
from tripflow.services.base import PlannerBackend
from tripflow.services.errors import BackendError
from tripflow.shared.contracts import Activity, DayPlan, Period, SlotContext
from tripflow.shared.contracts.itinerary import new_activity_id


logger = logging.getLogger(__name__)


def resolve_slot(ctx: OrchestratorContext, key: SlotKey) -> DayPlan:
    """
    Return the day holding a slot.

    Raises:
        SlotNotFoundError: If the day or the index does not exist
    """
    day = ctx.itinerary.day(key.day_number) if ctx.itinerary is not None else None
    if day is None:
        raise SlotNotFoundError(f"No day {key.day_number} in the itinerary")
    activities = day.activities(key.period)
    if not 0 <= key.index < len(activities):
        raise SlotNotFoundError(f"No activity at {key}")
    return day


def in_flight_slots(ctx: OrchestratorContext) -> List[SlotKey]:
    """Current slots of every activity with a regeneration in flight."""
    slots = []
    for activity_id in ctx.regenerating:
        key = ctx.locate(activity_id)
        if key is not None:
            slots.append(key)
    return slots


class SlotController:
    """
    Regenerate and delete activities for one wizard.

    At most one regeneration per activity is in flight; different
    activities may regenerate concurrently.
    """

    def __init__(self, backend: PlannerBackend, on_change: Optional[Callable[[], None]] = None):
        self.backend = backend
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    @staticmethod
    def _require_itinerary(ctx: OrchestratorContext, handler: str) -> None:
        if ctx.step != Step.ITINERARY:
            raise StepMismatchError(handler, (Step.ITINERARY,), ctx.step)

    async def regenerate(
        self,
        ctx: OrchestratorContext,
        key: SlotKey,
        instruction: Optional[str] = None,
    ) -> bool:
        """
        Replace the activity at a slot with an alternative.

        Returns:
            True if a replacement was written, False if the request was a
            duplicate, failed, or its result no longer applied
        """
        self._require_itinerary(ctx, "regenerate")
        day = resolve_slot(ctx, key)
        period = Period(key.period)
        activity = day.activities(period)[key.index]
        activity_id = activity.activity_id
        _log = ctx.log_prefix("regenerate") + f"[slot={key}] "

        if activity_id in ctx.regenerating:
            logger.info(f"{_log}Already regenerating, ignoring duplicate request")
            return False

        ctx.regenerating = {**ctx.regenerating, activity_id: key}
        self._changed()

        epoch = ctx.epoch
        exclusions = ctx.itinerary.activity_names()
        context = SlotContext(day_title=day.title, area=day.area_focus, time_of_day=period)
        prefs = ctx.draft
        if not prefs.destination:
            prefs = prefs.model_copy(update={"destination": ctx.itinerary.destination})

        logger.info(
            f"{_log}Requesting alternative for '{activity.name}' | "
            f"exclusions={len(exclusions)}, instruction={bool(instruction)}"
        )

        try:
            try:
                replacement = await self.backend.get_alternative_activity(
                    prefs, activity, context, exclusions, instruction
                )
            except BackendError as e:
                logger.warning(f"{_log}Alternative request failed, keeping '{activity.name}': {e}")
                return False
            return self._apply(ctx, epoch, activity_id, replacement, _log)
        finally:
            ctx.regenerating = {
                aid: slot for aid, slot in ctx.regenerating.items() if aid != activity_id
            }
            self._changed()

    def _apply(
        self,
        ctx: OrchestratorContext,
        epoch: int,
        activity_id: str,
        replacement: Activity,
        _log: str,
    ) -> bool:
        if ctx.epoch != epoch:
            logger.info(f"{_log}Session replaced while regenerating, dropping result")
            return False

        current = ctx.locate(activity_id)
        if current is None:
            logger.info(f"{_log}Activity was deleted while regenerating, dropping result")
            return False

        day = ctx.itinerary.day(current.day_number)
        activities = list(day.activities(current.period))
        activities[current.index] = replacement.model_copy(update={"activity_id": new_activity_id()})
        ctx.itinerary = ctx.itinerary.with_day(day.with_activities(current.period, activities))

        logger.info(f"{_log}Replaced with '{replacement.name}' at {current}")
        return True

    def delete(self, ctx: OrchestratorContext, key: SlotKey) -> Activity:
        """Remove the activity at a slot immediately. Returns the removed activity."""
        self._require_itinerary(ctx, "delete")
        day = resolve_slot(ctx, key)
        activities = list(day.activities(key.period))
        removed = activities.pop(key.index)
        ctx.itinerary = ctx.itinerary.with_day(day.with_activities(key.period, activities))

        logger.info(
            f"{ctx.log_prefix('delete')}[slot={key}] Removed '{removed.name}' | "
            f"remaining={len(activities)}"
        )
        self._changed()
        return removed
