"""Data contracts shared by the orchestrator and the backend adapters."""

from tripflow.shared.contracts.preferences import (
    BudgetLevel,
    Demographics,
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
from tripflow.shared.contracts.itinerary import (
    Activity,
    DayImageRequest,
    DayPlan,
    DestinationCheck,
    HighlightEvent,
    Itinerary,
    Period,
    SessionResource,
    SlotContext,
    SmartQuestion,
)

__all__ = [
    "Activity",
    "BudgetLevel",
    "DayImageRequest",
    "DayPlan",
    "Demographics",
    "DestinationCheck",
    "FixedPlan",
    "Gender",
    "HighlightEvent",
    "Interest",
    "Itinerary",
    "KidsAgeRange",
    "PaceType",
    "Period",
    "PreferenceDraft",
    "SessionResource",
    "SlotContext",
    "SmartQuestion",
    "TripType",
    "VibeType",
    "missing_demographics",
]
