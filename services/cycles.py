"""Recurrence cycles and due-date derivation."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

DEFAULT_CYCLE_DURATION = timedelta(days=1)

CYCLE_DURATIONS: Dict[str, timedelta] = {
    "": timedelta(0),
    "5m": timedelta(minutes=5),
    "1h": timedelta(hours=1),
    "4h": timedelta(hours=4),
    "12h": timedelta(hours=12),
    "1d": timedelta(days=1),
    "3d": timedelta(days=3),
    "1w": timedelta(weeks=1),
    "1m": timedelta(days=30),
    "3m": timedelta(days=90),
}

# Labels shown in the page forms, in display order
CYCLE_CHOICES: List[Tuple[str, str]] = [
    ("", "No cycle"),
    ("5m", "5 minutes"),
    ("1h", "1 hour"),
    ("4h", "4 hours"),
    ("12h", "12 hours"),
    ("1d", "1 day"),
    ("3d", "3 days"),
    ("1w", "1 week"),
    ("1m", "1 month"),
    ("3m", "3 months"),
]


def cycle_duration(cycle: str) -> timedelta:
    """Look up a cycle code. Unknown codes fall back to one day."""
    return CYCLE_DURATIONS.get(cycle, DEFAULT_CYCLE_DURATION)


def calculate_due_at(created_at: datetime, cycle: str) -> Optional[datetime]:
    """Return created_at + the cycle's duration, or None for no recurrence."""
    if not cycle:
        return None
    duration = cycle_duration(cycle)
    if not duration:
        return None
    return created_at + duration
