"""Due-date derivation from cycle codes."""

from datetime import datetime, timedelta, timezone

import pytest

from services.cycles import CYCLE_CHOICES, CYCLE_DURATIONS, calculate_due_at, cycle_duration

CREATED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "cycle, expected",
    [
        ("5m", timedelta(minutes=5)),
        ("1h", timedelta(hours=1)),
        ("4h", timedelta(hours=4)),
        ("12h", timedelta(hours=12)),
        ("1d", timedelta(hours=24)),
        ("3d", timedelta(hours=72)),
        ("1w", timedelta(days=7)),
        ("1m", timedelta(days=30)),
        ("3m", timedelta(days=90)),
    ],
)
def test_known_cycles(cycle, expected):
    assert calculate_due_at(CREATED, cycle) == CREATED + expected


def test_empty_cycle_has_no_due_date():
    assert calculate_due_at(CREATED, "") is None
    assert cycle_duration("") == timedelta(0)


def test_unknown_cycle_defaults_to_one_day():
    assert cycle_duration("2y") == timedelta(days=1)
    assert calculate_due_at(CREATED, "fortnight") == CREATED + timedelta(days=1)


def test_choices_cover_the_table():
    assert [code for code, _ in CYCLE_CHOICES] == list(CYCLE_DURATIONS)
