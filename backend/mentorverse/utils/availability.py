# backend/mentorverse/utils/availability.py
"""
Placeholder availability for mentors who have not published any.

The schedule is derived from the mentor id alone, so the same mentor gets
the same slots on every request. It is display data only and plays no part
in conflict checks.
"""

from datetime import date, timedelta
from typing import Dict, List

from mentorverse.core import constants as C

MORNING_SLOTS = ["9:00 AM", "10:00 AM", "11:00 AM"]
AFTERNOON_SLOTS = ["1:00 PM", "2:00 PM", "3:00 PM", "4:00 PM"]
EVENING_SLOTS = ["6:00 PM", "7:00 PM"]


def string_hash(value: str) -> int:
    """32-bit signed `h = h * 31 + code` hash over the characters of `value`."""
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


class SeededRandom:
    """Linear congruential generator; floats in [0, 1)."""

    MULTIPLIER = 9301
    INCREMENT = 49297
    MODULUS = 233280

    def __init__(self, seed: int):
        self.seed = abs(seed)

    def random(self) -> float:
        self.seed = (self.seed * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self.seed / self.MODULUS


def generate_default_availability(
    mentor_id: str,
    today: date,
    days: int = C.AVAILABILITY_HORIZON_DAYS,
) -> Dict[str, List[str]]:
    rng = SeededRandom(string_hash(str(mentor_id)))
    availability: Dict[str, List[str]] = {}

    for offset in range(1, days + 1):
        day = today + timedelta(days=offset)
        if day.weekday() >= 5:  # weekend
            continue

        slots: List[str] = []
        if rng.random() > 0.3:
            slots.extend(MORNING_SLOTS)
        if rng.random() > 0.4:
            slots.extend(AFTERNOON_SLOTS)
        if rng.random() > 0.6:
            slots.extend(EVENING_SLOTS)

        if slots:
            availability[day.isoformat()] = slots

    return availability
