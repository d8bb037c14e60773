"""Tests for the numeric integrity guard."""

import logging
import math

from macro_tracker.services.integrity import (
    corruption_report,
    count_corrupted,
    filter_corrupted,
    goal_progress,
    is_corrupted,
    is_valid_number,
    safe_aggregate,
    safe_display,
    safe_number,
)
from tests.conftest import make_entry


def test_is_valid_number() -> None:
    assert is_valid_number(1)
    assert is_valid_number(0.5)
    assert not is_valid_number(math.nan)
    assert not is_valid_number(math.inf)
    assert not is_valid_number("5")
    assert not is_valid_number(True)


def test_safe_number_falls_back() -> None:
    assert safe_number("2.5") == 2.5
    assert safe_number(math.nan) == 0.0
    assert safe_number(None, fallback=3.0) == 3.0


def test_aggregate_ignores_corrupted_field_only() -> None:
    entries = [
        make_entry(id=1, calories=100.0, protein=10.0, carbs=10.0, fat=1.0),
        make_entry(id=2, calories=math.nan, protein=5.0, carbs=5.0, fat=5.0),
    ]

    totals = safe_aggregate(entries)

    assert totals.calories == 100.0
    assert totals.protein == 15.0
    assert totals.carbs == 15.0
    assert totals.fat == 6.0
    assert count_corrupted(entries) == 1


def test_filter_corrupted_returns_new_list_and_logs(caplog, monkeypatch) -> None:
    entries = [
        make_entry(id=1),
        make_entry(id=2, protein=math.inf),
        make_entry(id=3, fat=-math.inf),
    ]
    monkeypatch.setattr(logging.getLogger("macro_tracker"), "propagate", True)

    with caplog.at_level(logging.WARNING, logger="macro_tracker.services.integrity"):
        clean = filter_corrupted(entries)

    assert [entry.id for entry in clean] == [1]
    assert len(entries) == 3
    assert len(caplog.records) == 2


def test_corruption_report_lists_ids() -> None:
    entries = [make_entry(id=1), make_entry(id=7, carbs=math.nan)]

    report = corruption_report(entries)

    assert report.count == 1
    assert report.entry_ids == (7,)
    assert report.needs_cleanup
    assert not corruption_report([make_entry()]).needs_cleanup
    assert is_corrupted(entries[1])


def test_safe_display() -> None:
    assert safe_display(math.nan) == "0"
    assert safe_display(math.inf, 1) == "0"
    assert safe_display(12.345, 1) == "12.3"
    assert safe_display(7) == "7"
    assert safe_display("oops") == "0"


def test_goal_progress_caps_and_guards() -> None:
    over = goal_progress(2500, 2000)
    assert over.percentage == 100.0
    assert over.remaining == 0.0

    half = goal_progress(50, 100)
    assert half.percentage == 50.0
    assert half.remaining == 50.0

    broken = goal_progress(math.nan, 0)
    assert broken.current == 0.0
    assert broken.goal == 1.0
    assert broken.percentage == 0.0
