"""Summary Aggregation - Pure functions turning entries and targets into daily summaries.

All functions are pure: same input always produces same output, no side effects.
"""

import calendar
from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from .errors import InvalidInputError
from .models import CalendarDay, DailySummary, DailyTarget, FoodEntry, Targets
from .status import day_status


def calculate_totals(entries: Iterable[FoodEntry]) -> tuple[float, float]:
    """Sum calories and protein over entries.

    Returns:
        Tuple of (calories, protein)
    """
    total_calories = 0.0
    total_protein = 0.0
    for entry in entries:
        total_calories += entry.calories
        total_protein += entry.protein
    return total_calories, round(total_protein, 1)


def summarize(entries: Iterable[FoodEntry], targets: Targets, day: date) -> DailySummary:
    """Summarize one day's intake against its targets.

    Only entries dated ``day`` are counted, so the caller may pass a wider set.
    A day with no entries is valid and totals zero.

    Args:
        entries: Food entries (any order, may include other dates)
        targets: Targets in force for ``day``
        day: The date to summarize

    Returns:
        DailySummary for ``day``
    """
    total_cal, total_pro = calculate_totals(e for e in entries if e.date == day)

    return DailySummary(
        date=day,
        total_calories=total_cal,
        total_protein=total_pro,
        target_calories=targets.calories,
        target_protein=targets.protein,
    )


def summarize_range(
    entries: Iterable[FoodEntry],
    targets: Iterable[DailyTarget],
    start_date: date,
    end_date: date,
    default_targets: Targets,
) -> list[DailySummary]:
    """Summarize every date in a range that has entries or an explicit target.

    Dates with neither are left out rather than filled in. A date with
    entries but no explicit target falls back to ``default_targets``, which
    is the user's own computed default.

    Args:
        entries: Food entries for the range
        targets: Explicit per-date targets for the range
        start_date: First date (inclusive)
        end_date: Last date (inclusive)
        default_targets: Targets for dates without an explicit row

    Returns:
        Summaries sorted ascending by date

    Raises:
        InvalidInputError: If start_date is after end_date
    """
    if start_date > end_date:
        raise InvalidInputError(f"start_date {start_date} is after end_date {end_date}")

    entries_by_date: dict[date, list[FoodEntry]] = defaultdict(list)
    for entry in entries:
        if start_date <= entry.date <= end_date:
            entries_by_date[entry.date].append(entry)

    targets_by_date = {
        t.date: t.as_targets()
        for t in targets
        if start_date <= t.date <= end_date
    }

    days = set(entries_by_date) | set(targets_by_date)

    # ISO strings sort the same as dates
    return [
        summarize(
            entries_by_date.get(day, []),
            targets_by_date.get(day, default_targets),
            day,
        )
        for day in sorted(days, key=date.isoformat)
    ]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last date of a calendar month.

    Raises:
        InvalidInputError: If month is not 1-12 or year is out of range
    """
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise InvalidInputError(f"Invalid month: {year}-{month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def build_calendar(summaries: Iterable[DailySummary]) -> list[CalendarDay]:
    """Attach the combined status to each summary for calendar colouring."""
    return [
        CalendarDay(**summary.model_dump(), status=day_status(summary))
        for summary in summaries
    ]
