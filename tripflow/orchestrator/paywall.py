"""
Paywall and resume reconciliation.

Parses the deep-link entry context, applies the free-preview display
rule, and adopts a session resource into the wizard context.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Union
from urllib.parse import parse_qs, urlencode

from tripflow.orchestrator.state import OrchestratorContext
from tripflow.shared.contracts import DayPlan, Period, SessionResource
from tripflow.shared.contracts.itinerary import new_activity_id


logger = logging.getLogger(__name__)


class EntryPath(str, Enum):
    FRESH = "fresh"
    RESUME = "resume"
    VERIFY_PAYMENT = "verify_payment"


@dataclass(frozen=True)
class EntryContext:
    """
    Deep-link parameters present when the wizard is opened.

    Attributes:
        locator: Session resource id (`id`)
        payment_success: Payment-success marker (`success=true`)
        payment_ref: Payment provider session reference (`session_id`)
        canceled: Checkout was abandoned (`canceled=true`)
    """

    locator: Optional[str] = None
    payment_success: bool = False
    payment_ref: Optional[str] = None
    canceled: bool = False

    @classmethod
    def from_query(cls, query: Union[str, Mapping[str, str], None]) -> "EntryContext":
        """Build from a query string (with or without '?') or a parsed mapping."""
        if not query:
            return cls()
        if isinstance(query, str):
            parsed = parse_qs(query.lstrip("?"))
            params = {key: values[0] for key, values in parsed.items() if values}
        else:
            params = dict(query)

        return cls(
            locator=params.get("id") or None,
            payment_success=params.get("success") == "true",
            payment_ref=params.get("session_id") or None,
            canceled=params.get("canceled") == "true",
        )

    @property
    def path(self) -> EntryPath:
        if not self.locator:
            return EntryPath.FRESH
        if self.payment_success and self.payment_ref:
            return EntryPath.VERIFY_PAYMENT
        return EntryPath.RESUME


def share_query_for(locator: str) -> str:
    """Clean, shareable query for a session (no payment markers)."""
    return urlencode({"id": locator})


@dataclass(frozen=True)
class PaywallView:
    """
    What the traveler may see of a session.

    total_days is authoritative for lock accounting; the day list may
    already be truncated by the server.
    """

    displayed_days: List[DayPlan]
    total_days: int
    unlocked: bool

    @classmethod
    def build(cls, days: List[DayPlan], total_days: int, unlocked: bool, free_days: int) -> "PaywallView":
        if unlocked:
            displayed = list(days)
        else:
            displayed = list(days[: min(free_days, total_days)])
        return cls(displayed_days=displayed, total_days=total_days, unlocked=unlocked)

    @classmethod
    def from_context(cls, ctx: OrchestratorContext) -> "PaywallView":
        days = ctx.itinerary.days if ctx.itinerary is not None else []
        return cls.build(days, ctx.total_days, ctx.unlocked, ctx.config.free_preview_days)

    @property
    def locked_days_count(self) -> int:
        return max(0, self.total_days - len(self.displayed_days))

    @property
    def show_unlock(self) -> bool:
        return not self.unlocked and self.locked_days_count > 0


def _with_fresh_ids(resource: SessionResource):
    days = []
    for day in resource.plan.days:
        for period in Period:
            day = day.with_activities(
                period,
                [a.model_copy(update={"activity_id": new_activity_id()}) for a in day.activities(period)],
            )
        days.append(day)
    return resource.plan.model_copy(update={"days": days})


def adopt_session(ctx: OrchestratorContext, resource: SessionResource) -> None:
    """
    Replace the wizard's session with a freshly received resource.

    Bumps the epoch so results still in flight for the previous session
    are dropped, and gives every activity a new id.
    """
    ctx.bump_epoch()
    ctx.itinerary = _with_fresh_ids(resource)
    ctx.session_id = resource.id
    ctx.unlocked = resource.unlocked
    ctx.total_days = resource.total_days
    ctx.images = {}
    ctx.regenerating = {}
    ctx.redirect_url = None
    ctx.share_query = share_query_for(resource.id)

    logger.info(
        f"{ctx.log_prefix('adopt_session')}Adopted session {resource.id} | "
        f"days={len(resource.plan.days)}, total_days={resource.total_days}, "
        f"unlocked={resource.unlocked}, known_images={len(resource.images)}"
    )
