"""
Wizard configuration.

Centralizes the tunable constants of the planning wizard.
"""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class WizardConfig:
    """
    Configuration for a planning wizard.

    Attributes:
        swipe_threshold: Horizontal drag distance (px) a gesture must exceed to commit
        swipe_animation_seconds: Animation lock after a committed answer
        free_preview_days: Days visible before the itinerary is unlocked
        short_trip_days: Trips up to this many days count as short
        short_trip_questions: Question cap for short trips
        long_trip_questions: Question cap for longer trips
        progress_cap: Loading progress ceiling until generation completes
    """

    swipe_threshold: float = 100.0
    swipe_animation_seconds: float = 0.3
    free_preview_days: int = 2
    short_trip_days: int = 5
    short_trip_questions: int = 5
    long_trip_questions: int = 10
    progress_cap: float = 90.0

    def question_cap(self, trip_days: int) -> int:
        if trip_days <= self.short_trip_days:
            return self.short_trip_questions
        return self.long_trip_questions


# Default configuration instance
DEFAULT_CONFIG = WizardConfig()


def get_config(**overrides) -> WizardConfig:
    """
    Return the default configuration with the given fields replaced.

    None values are ignored so callers can forward optional settings.
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    return replace(DEFAULT_CONFIG, **changes)
