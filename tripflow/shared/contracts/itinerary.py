"""
Itinerary and session resource contracts.

Defines the structures exchanged with the generation and persistence
services: follow-up questions, the day-by-day plan, and the server-owned
session resource that carries the paywall state.

Wire format is camelCase (as produced by the generation service);
models accept both the wire names and the Python field names.
"""

import uuid
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class Period(str, Enum):
    """Part of the day an activity list belongs to."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


def new_activity_id() -> str:
    return uuid.uuid4().hex


class SmartQuestion(BaseModel):
    """A yes/no follow-up question answered by swiping."""

    id: str
    emoji: str = ""
    title: str
    description: str = ""

    class Config:
        frozen = True


class DestinationCheck(BaseModel):
    """Result of validating a free-text destination."""

    is_valid: bool = Field(alias="isValid")
    formatted_name: Optional[str] = Field(default=None, alias="formattedName")

    class Config:
        populate_by_name = True


class Activity(BaseModel):
    """
    A single activity within a day period.

    activity_id is assigned locally when the activity enters the
    orchestrator; the generation service never supplies it.
    """

    activity_id: str = Field(default_factory=new_activity_id, alias="activityId")
    name: str
    description: str = ""
    emoji: str = ""
    category: str = ""
    maps_query: str = Field(default="", alias="mapsQuery")
    website: Optional[str] = None
    price_level: Optional[str] = Field(default=None, alias="priceLevel")
    admission_fee: Optional[str] = Field(default=None, alias="admissionFee")
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    opening_hours: Optional[str] = Field(default=None, alias="openingHours")
    is_local_recommendation: bool = Field(default=False, alias="isLocalRecommendation")

    class Config:
        populate_by_name = True


class HighlightEvent(BaseModel):
    name: str
    description: str = ""
    maps_query: str = Field(default="", alias="mapsQuery")

    class Config:
        populate_by_name = True


class DayPlan(BaseModel):
    """One day of the itinerary with three independently sized periods."""

    day_number: int = Field(ge=1, alias="dayNumber")
    date: str = ""
    title: str = ""
    area_focus: str = Field(default="", alias="areaFocus")
    vibe: str = ""
    vibe_icons: List[str] = Field(default_factory=list, alias="vibeIcons")
    highlight_event: Optional[HighlightEvent] = Field(default=None, alias="highlightEvent")
    morning: List[Activity] = Field(default_factory=list)
    afternoon: List[Activity] = Field(default_factory=list)
    evening: List[Activity] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def activities(self, period: Period) -> List[Activity]:
        return getattr(self, Period(period).value)

    def with_activities(self, period: Period, activities: List[Activity]) -> "DayPlan":
        """Return a copy of the day with one period list replaced."""
        return self.model_copy(update={Period(period).value: list(activities)})


class Itinerary(BaseModel):
    """Day-by-day plan, kept ordered by day number."""

    destination: str
    days: List[DayPlan] = Field(default_factory=list)

    @model_validator(mode="after")
    def _order_days(self) -> "Itinerary":
        self.days = sorted(self.days, key=lambda d: d.day_number)
        return self

    def day(self, day_number: int) -> Optional[DayPlan]:
        for day in self.days:
            if day.day_number == day_number:
                return day
        return None

    def with_day(self, replacement: DayPlan) -> "Itinerary":
        """Return a copy with the day of the same number replaced."""
        days = [
            replacement if d.day_number == replacement.day_number else d
            for d in self.days
        ]
        return self.model_copy(update={"days": days})

    def activity_names(self) -> List[str]:
        """Names of every activity across all days and periods."""
        return [
            activity.name
            for day in self.days
            for period in Period
            for activity in day.activities(period)
        ]


class SessionResource(BaseModel):
    """
    Server-owned itinerary session referenced by an opaque id.

    When locked, plan.days may be truncated; total_days always carries
    the true day count.
    """

    id: str
    plan: Itinerary
    unlocked: bool = False
    total_days: int = Field(ge=0, alias="totalDays")
    images: Dict[int, str] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class SlotContext(BaseModel):
    """Day/period context sent along with an alternative-activity request."""

    day_title: str = Field(alias="dayTitle")
    area: str
    time_of_day: Period = Field(alias="timeOfDay")

    class Config:
        populate_by_name = True


class DayImageRequest(BaseModel):
    """Inputs for a single day-card illustration."""

    day_title: str = Field(alias="dayTitle")
    area: str
    destination: str
    vibe: str = ""

    class Config:
        populate_by_name = True
