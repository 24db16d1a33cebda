"""
Mock data generator for the in-memory backend.

Generates hardcoded but preference-aware questions, itineraries,
alternative activities and day images for exercising the wizard
without the generation service.
"""

import base64
from datetime import timedelta
from typing import List, Optional

from tripflow.shared.contracts import (
    Activity,
    DayImageRequest,
    DayPlan,
    HighlightEvent,
    Itinerary,
    PreferenceDraft,
    SlotContext,
    SmartQuestion,
)


# Question templates: (id, emoji, title, description)
_QUESTION_TEMPLATES = [
    ("street_food_tour", "🍜", "Street Food Tour", "Up for an evening of street food stalls?"),
    ("sunrise_hike", "🌄", "Sunrise Hike", "Worth an early alarm for a sunrise viewpoint?"),
    ("museum_day", "🏛️", "Museum Day", "Spend a few hours in the main museums?"),
    ("live_music", "🎷", "Live Music", "Catch a local live music show?"),
    ("cooking_class", "👩‍🍳", "Cooking Class", "Learn a local dish in a cooking class?"),
    ("day_trip", "🚆", "Day Trip", "Take a day trip outside the city?"),
    ("spa_time", "💆", "Spa Time", "Block out a slow afternoon at a spa?"),
    ("night_market", "🏮", "Night Market", "Browse a night market for souvenirs?"),
    ("bike_tour", "🚲", "Bike Tour", "See the neighbourhoods on a guided bike tour?"),
    ("rooftop_bar", "🍸", "Rooftop Bar", "End a day with drinks at a rooftop bar?"),
]

_AREAS = ["Old Town", "Harbourfront", "Arts District", "Riverside", "Hillside Quarter"]

_DAY_THEMES = [
    "Arrival & First Impressions",
    "Culture & History",
    "Markets & Flavours",
    "Nature Escape",
    "Hidden Gems",
    "Slow Day & Sunsets",
]

_VIBES = [("Relaxed", ["🌿", "☕"]), ("Lively", ["🎉", "🍹"]), ("Cultural", ["🏛️", "🎨"])]

# Activity templates by period: (name, emoji, category, price level)
_MORNING = [
    ("Breakfast at a Local Bakery", "🥐", "Dining", "$"),
    ("Morning Market Walk", "🧺", "Local Experiences", "$"),
    ("Viewpoint Climb", "📸", "Viewpoints", "Free"),
]
_AFTERNOON = [
    ("Guided Heritage Walk", "🏛️", "Culture", "$$"),
    ("Botanical Garden Stroll", "🌳", "Nature", "$"),
    ("Design Boutiques", "🛍️", "Shopping", "$$"),
    ("Craft Workshop", "🧵", "Local Experiences", "$$"),
]
_EVENING = [
    ("Dinner at a Neighbourhood Tavern", "🍷", "Dining", "$$"),
    ("Jazz Cellar Night", "🎷", "Nightlife", "$$"),
]

_ALTERNATIVES = [
    ("Hidden Courtyard Cafe", "☕", "Dining"),
    ("Rooftop Panorama Deck", "🌆", "Viewpoints"),
    ("Artisan Food Hall", "🥘", "Dining"),
    ("Independent Gallery", "🖼️", "Culture"),
    ("Riverside Kayak Session", "🛶", "Active"),
    ("Vintage Record Store", "💿", "Shopping"),
]


def _activity(name: str, emoji: str, category: str, price: str, area: str) -> Activity:
    return Activity(
        name=name,
        description=f"{name} in {area}",
        emoji=emoji,
        category=category,
        maps_query=f"{name} {area}",
        price_level=price,
        admission_fee="Free" if price == "Free" else None,
        rating=4.5,
        opening_hours="09:00-18:00",
        is_local_recommendation=category == "Local Experiences",
    )


def generate_mock_questions(prefs: PreferenceDraft) -> List[SmartQuestion]:
    """
    Generate yes/no follow-up questions for a draft.

    Short trips (5 days or fewer) get 5 questions, longer trips 10.
    """
    count = 5 if prefs.trip_days <= 5 else 10
    return [
        SmartQuestion(id=qid, emoji=emoji, title=title, description=description)
        for qid, emoji, title, description in _QUESTION_TEMPLATES[:count]
    ]


def generate_mock_itinerary(prefs: PreferenceDraft) -> Itinerary:
    """
    Generate a mock day-by-day itinerary.

    One day per calendar day of the trip, two morning and two afternoon
    activities and one evening activity per day. Questions the traveler
    swiped "yes" on become highlight events, one per day in answer order.

    Args:
        prefs: Frozen preference draft

    Returns:
        Itinerary with populated mock days
    """
    liked = [qid for qid, ok in prefs.follow_up_answers.items() if ok]

    days = []
    for day_num in range(1, prefs.trip_days + 1):
        day_idx = day_num - 1
        area = _AREAS[day_idx % len(_AREAS)]
        theme = _DAY_THEMES[day_idx % len(_DAY_THEMES)]
        vibe, icons = _VIBES[day_idx % len(_VIBES)]

        morning = [
            _activity(*_MORNING[(day_idx + i) % len(_MORNING)], area=area)
            for i in range(2)
        ]
        afternoon = [
            _activity(*_AFTERNOON[(day_idx + i) % len(_AFTERNOON)], area=area)
            for i in range(2)
        ]
        evening = [_activity(*_EVENING[day_idx % len(_EVENING)], area=area)]

        highlight: Optional[HighlightEvent] = None
        if day_idx < len(liked):
            label = liked[day_idx].replace("_", " ").title()
            highlight = HighlightEvent(
                name=label,
                description=f"{label} picked from your answers",
                maps_query=f"{label} {prefs.destination}",
            )

        days.append(DayPlan(
            day_number=day_num,
            date=(prefs.start_date + timedelta(days=day_idx)).strftime("%d/%m/%Y"),
            title=f"{theme} in {area}",
            area_focus=area,
            vibe=vibe,
            vibe_icons=icons,
            highlight_event=highlight,
            morning=morning,
            afternoon=afternoon,
            evening=evening,
        ))

    return Itinerary(destination=prefs.destination, days=days)


def generate_mock_alternative(
    activity: Activity,
    context: SlotContext,
    exclusions: List[str],
    instruction: Optional[str] = None,
) -> Activity:
    """
    Pick a replacement activity whose name is not already in the plan.

    Falls back to a numbered variant when every template is excluded.
    """
    taken = set(exclusions)
    for name, emoji, category in _ALTERNATIVES:
        candidate = f"{name} ({context.area})"
        if candidate not in taken:
            break
    else:
        suffix = 2
        name, emoji, category = _ALTERNATIVES[0]
        candidate = f"{name} ({context.area}) #{suffix}"
        while candidate in taken:
            suffix += 1
            candidate = f"{name} ({context.area}) #{suffix}"

    description = f"Instead of {activity.name}, this {context.time_of_day.value} pick"
    if instruction:
        description += f" follows your request: {instruction}"

    return Activity(
        name=candidate,
        description=description,
        emoji=emoji,
        category=category,
        maps_query=f"{candidate} {context.area}",
        price_level="$$",
        rating=4.6,
        is_local_recommendation=True,
    )


def generate_mock_image(request: DayImageRequest) -> str:
    """Encode the request into a deterministic data URL."""
    seed = f"{request.destination}|{request.area}|{request.day_title}|{request.vibe}"
    encoded = base64.b64encode(seed.encode("utf-8")).decode("ascii")
    return f"data:image/png;base64,{encoded}"
