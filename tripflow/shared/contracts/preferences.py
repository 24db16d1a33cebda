"""
Traveler preference contract.

Defines the preference draft collected across the wizard steps, the
enumerations offered to the traveler, and the demographic requirements
that gate the Preferences -> Specifics transition.
"""

import datetime
import uuid
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field


class TripType(str, Enum):
    """Who the traveler is going with."""

    SOLO = "Solo"
    COUPLE = "Couple"
    FRIENDS = "Friends"
    FAMILY = "Family"


class BudgetLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class VibeType(str, Enum):
    FUN = "Extreme/Fun"
    BOTH = "Both"
    CHILL = "Laid back/Chill"


class PaceType(str, Enum):
    SLOW = "Slow"
    BALANCED = "Balanced"
    FAST = "Fast"


class Interest(str, Enum):
    DINING = "Dining"
    NIGHTLIFE = "Nightlife"
    CULTURE = "Culture"
    ACTIVE = "Active"
    VIEWPOINTS = "Viewpoints"
    NATURE = "Nature"
    SHOPPING = "Shopping"
    LOCAL_EXPERIENCES = "Local Experiences"
    SHOWS = "Shows & Concerts"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class KidsAgeRange(str, Enum):
    TODDLERS = "0-5"
    KIDS = "5-10"
    PRETEENS = "10-15"
    TEENS = "15-20"


class Demographics(BaseModel):
    """
    Demographic details for the selected trip type.

    All fields are optional while the traveler fills them in; which ones
    are required depends on the trip type (see REQUIRED_DEMOGRAPHICS).
    """

    gender: Optional[Gender] = None
    age: Optional[int] = Field(default=None, ge=1, le=120)
    kids_age_range: Optional[KidsAgeRange] = Field(default=None, alias="kidsAgeRange")

    class Config:
        populate_by_name = True


# Fields that must be filled in before leaving the Preferences step
REQUIRED_DEMOGRAPHICS: Dict[TripType, Tuple[str, ...]] = {
    TripType.SOLO: ("gender", "age"),
    TripType.COUPLE: ("age",),
    TripType.FRIENDS: ("age",),
    TripType.FAMILY: ("kids_age_range",),
}


def missing_demographics(trip_type: TripType, demographics: Demographics) -> List[str]:
    """
    Return the demographic fields still missing for a trip type.

    Args:
        trip_type: Selected trip type
        demographics: Demographics collected so far

    Returns:
        Names of required fields that are not set (empty when complete)
    """
    return [
        name
        for name in REQUIRED_DEMOGRAPHICS[trip_type]
        if getattr(demographics, name) is None
    ]


def _new_plan_id() -> str:
    return uuid.uuid4().hex[:9]


class FixedPlan(BaseModel):
    """A commitment the traveler already has on a given trip day."""

    id: str = Field(default_factory=_new_plan_id)
    date: datetime.date
    description: str


class PreferenceDraft(BaseModel):
    """
    Mutable draft of everything collected from the traveler.

    Created empty at session start and mutated only by the handlers of
    the step that owns each field. A copy is sent to the generation
    service when the wizard enters Loading.
    """

    destination: str = ""
    start_date: Optional[datetime.date] = Field(default=None, alias="startDate")
    end_date: Optional[datetime.date] = Field(default=None, alias="endDate")
    hotel_location: str = Field(default="", alias="hotelLocation")
    trip_type: TripType = Field(default=TripType.COUPLE, alias="tripType")
    budget: BudgetLevel = BudgetLevel.MEDIUM
    vibe: VibeType = VibeType.BOTH
    pace: PaceType = PaceType.BALANCED
    interests: Set[Interest] = Field(default_factory=set)
    demographics: Demographics = Field(default_factory=Demographics)
    fixed_plans: List[FixedPlan] = Field(default_factory=list, alias="fixedPlans")
    must_visit: str = Field(default="", alias="mustVisit")
    follow_up_answers: Dict[str, bool] = Field(
        default_factory=dict, alias="followUpAnswers"
    )

    class Config:
        populate_by_name = True
        validate_assignment = True

    @property
    def trip_days(self) -> int:
        """Number of calendar days in the trip (0 until both dates are set)."""
        if self.start_date is None or self.end_date is None:
            return 0
        return max(1, (self.end_date - self.start_date).days + 1)

    def covers(self, day: datetime.date) -> bool:
        """Whether a date falls inside the selected trip range."""
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= day <= self.end_date
