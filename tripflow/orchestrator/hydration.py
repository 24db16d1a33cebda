"""
Progressive image hydration.

One task per day without a known image. Tasks never touch the wizard
context directly: each reports an ImageEvent into a queue and the
hydrator, acting as the single mediator, drains the queue and merges
images into the context one key at a time. Merges are keyed by day
number, so completion order does not change the final image map.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Set

from tripflow.orchestrator.state import OrchestratorContext
from tripflow.services.base import PlannerBackend
from tripflow.services.errors import BackendError
from tripflow.shared.contracts import DayImageRequest, DayPlan


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageEvent:
    """Outcome of one day's image request. image is None when nothing was produced."""

    epoch: int
    session_id: str
    day_number: int
    image: Optional[str]


class ImageHydrator:
    """
    Schedules per-day image tasks for one wizard and merges their results.

    Args:
        ctx: Context the merged images are written to
        backend: Source of day images and image persistence
        on_change: Called after every merge
    """

    def __init__(
        self,
        ctx: OrchestratorContext,
        backend: PlannerBackend,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.ctx = ctx
        self.backend = backend
        self.on_change = on_change
        self._events: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._pending: Set[int] = set()

    @property
    def pending_days(self) -> Set[int]:
        """Days whose image request has not reported back yet."""
        return set(self._pending)

    def schedule(
        self,
        days: Iterable[DayPlan],
        destination: str,
        known_images: Optional[Dict[int, str]] = None,
    ) -> int:
        """
        Seed the image map and start a task for every day lacking an image.

        Must be called from a running event loop; returns immediately.

        Returns:
            Number of tasks started
        """
        ctx = self.ctx
        _log = ctx.log_prefix("hydrate")
        ctx.images = dict(known_images or {})

        started = 0
        for day in days:
            if day.day_number in ctx.images:
                continue
            request = DayImageRequest(
                day_title=day.title,
                area=day.area_focus,
                destination=destination or "Destination",
                vibe=day.vibe,
            )
            self._pending.add(day.day_number)
            self._spawn(self._hydrate_day(ctx.epoch, ctx.session_id, day.day_number, request))
            started += 1

        logger.info(
            f"{_log}Scheduled {started} image task(s) | known={len(ctx.images)}, "
            f"session={ctx.session_id}"
        )
        return started

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _hydrate_day(
        self, epoch: int, session_id: str, day_number: int, request: DayImageRequest
    ) -> None:
        _log = f"[wizard={self.ctx.wizard_id}] [hydrate] [day={day_number}] "
        image = None
        try:
            image = await self.backend.generate_day_image(request)
        except BackendError as e:
            logger.warning(f"{_log}Image generation failed, day stays imageless: {e}")
        finally:
            self._pending.discard(day_number)
            await self._events.put(ImageEvent(epoch, session_id, day_number, image))
            self._drain()

    def _drain(self) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                self._merge(event)
            finally:
                self._events.task_done()

    def _merge(self, event: ImageEvent) -> None:
        ctx = self.ctx
        _log = f"[wizard={ctx.wizard_id}] [hydrate] [day={event.day_number}] "

        if event.epoch != ctx.epoch or event.session_id != ctx.session_id:
            logger.info(f"{_log}Dropping image for superseded session {event.session_id}")
            return
        if not event.image:
            return

        ctx.images = {**ctx.images, event.day_number: event.image}
        logger.info(f"{_log}Merged image | cached={len(ctx.images)}")
        self._spawn(self._persist(event.session_id, event.day_number, event.image))

        if self.on_change is not None:
            self.on_change()

    async def _persist(self, session_id: str, day_number: int, image: str) -> None:
        try:
            await self.backend.save_generated_image(session_id, day_number, image)
        except BackendError as e:
            logger.warning(
                f"[wizard={self.ctx.wizard_id}] [hydrate] [day={day_number}] "
                f"Failed to persist image: {e}"
            )

    async def wait_idle(self) -> None:
        """Wait until every image and persistence task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        await self._events.join()
