"""Unit tests for summary aggregation - pure functions, no mocks needed."""

from datetime import date

import pytest

from nutrilog.core.errors import InvalidInputError
from nutrilog.core.models import DailySummary, DailyTarget, FoodEntry, Status, Targets
from nutrilog.core.summary import (
    build_calendar,
    calculate_totals,
    month_bounds,
    summarize,
    summarize_range,
)


def entry(day: date, calories: float, protein: float, name: str = "Food") -> FoodEntry:
    return FoodEntry(date=day, food_description=name, calories=calories, protein=protein)


JAN_1 = date(2024, 1, 1)
JAN_2 = date(2024, 1, 2)
JAN_3 = date(2024, 1, 3)


class TestCalculateTotals:
    """Tests for calculate_totals."""

    def test_empty_entries(self):
        """Empty list returns zeros."""
        assert calculate_totals([]) == (0, 0)

    def test_protein_rounded_to_one_decimal(self):
        """Float noise in protein sums is rounded away."""
        totals = calculate_totals([entry(JAN_1, 10, 0.1), entry(JAN_1, 10, 0.2)])
        assert totals == (20, 0.3)


class TestSummarize:
    """Tests for summarize."""

    def test_empty_day(self):
        """A day with no food totals zero against its targets."""
        summary = summarize([], Targets(calories=1800, protein=90), JAN_1)

        assert summary.date == JAN_1
        assert summary.total_calories == 0
        assert summary.total_protein == 0
        assert summary.target_calories == 1800

    def test_two_entries(self):
        """Entries are summed and targets copied."""
        summary = summarize(
            [entry(JAN_1, 300, 20), entry(JAN_1, 450, 30)],
            Targets(calories=2000, protein=150),
            JAN_1,
        )
        assert summary == DailySummary(
            date=JAN_1,
            total_calories=750,
            total_protein=50,
            target_calories=2000,
            target_protein=150,
        )

    def test_other_dates_ignored(self):
        """Entries from other dates are not counted."""
        summary = summarize(
            [entry(JAN_1, 300, 20), entry(JAN_2, 999, 99)],
            Targets(calories=2000, protein=150),
            JAN_1,
        )
        assert summary.total_calories == 300
        assert summary.total_protein == 20


class TestSummarizeRange:
    """Tests for summarize_range."""

    def test_dates_without_override_use_default(self):
        """Entry-only dates use the supplied default, not a constant."""
        defaults = Targets(calories=2556, protein=112)
        summaries = summarize_range(
            entries=[entry(JAN_1, 500, 30), entry(JAN_3, 700, 40)],
            targets=[DailyTarget(date=JAN_1, calories=1800, protein=100)],
            start_date=JAN_1,
            end_date=date(2024, 1, 31),
            default_targets=defaults,
        )

        assert [s.date.isoformat() for s in summaries] == ["2024-01-01", "2024-01-03"]
        assert summaries[0].target_calories == 1800
        assert summaries[1].target_calories == 2556
        assert summaries[1].target_protein == 112

    def test_empty_dates_omitted(self):
        """Dates with neither entries nor targets are not synthesized."""
        summaries = summarize_range(
            [entry(JAN_3, 100, 5)], [], JAN_1, JAN_3, Targets(calories=2000, protein=100)
        )
        assert [s.date for s in summaries] == [JAN_3]

    def test_target_only_date_included(self):
        """A date with only a target appears with zero totals."""
        summaries = summarize_range(
            [], [DailyTarget(date=JAN_2, calories=1500, protein=80)],
            JAN_1, JAN_3, Targets(calories=2000, protein=100),
        )
        assert len(summaries) == 1
        assert summaries[0].total_calories == 0
        assert summaries[0].target_calories == 1500

    def test_sorted_ascending_regardless_of_input_order(self):
        """Output is sorted by date even when input is newest-first."""
        summaries = summarize_range(
            [entry(JAN_3, 1, 1), entry(JAN_1, 1, 1), entry(JAN_2, 1, 1)],
            [], JAN_1, JAN_3, Targets(calories=2000, protein=100),
        )
        assert [s.date for s in summaries] == [JAN_1, JAN_2, JAN_3]

    def test_each_entry_counted_once_on_its_date(self):
        """Totals per date equal the sum of that date's entries only."""
        summaries = summarize_range(
            [entry(JAN_1, 100, 10), entry(JAN_1, 200, 20), entry(JAN_2, 50, 5)],
            [], JAN_1, JAN_2, Targets(calories=2000, protein=100),
        )
        assert [(s.total_calories, s.total_protein) for s in summaries] == [(300, 30), (50, 5)]

    def test_out_of_range_rows_ignored(self):
        """Rows outside the range are dropped."""
        summaries = summarize_range(
            [entry(date(2023, 12, 31), 100, 10)],
            [DailyTarget(date=date(2024, 2, 1), calories=1500, protein=80)],
            JAN_1, JAN_3, Targets(calories=2000, protein=100),
        )
        assert summaries == []

    def test_inverted_range_rejected(self):
        """start_date after end_date is invalid."""
        with pytest.raises(InvalidInputError):
            summarize_range([], [], JAN_3, JAN_1, Targets(calories=2000, protein=100))


class TestMonthBounds:
    """Tests for month_bounds."""

    def test_leap_february(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_december(self):
        assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_invalid_month(self):
        with pytest.raises(InvalidInputError):
            month_bounds(2024, 13)


class TestBuildCalendar:
    """Tests for build_calendar."""

    def test_status_attached(self):
        """Each day carries the combined status."""
        summaries = [
            DailySummary(date=JAN_1, total_calories=1500, total_protein=100,
                         target_calories=2000, target_protein=150),
            DailySummary(date=JAN_2, total_calories=2500, total_protein=200,
                         target_calories=2000, target_protein=150),
        ]
        days = build_calendar(summaries)

        assert [d.status for d in days] == [Status.GREEN, Status.RED]
        assert days[0].total_calories == 1500
