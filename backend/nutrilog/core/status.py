"""Status Classification - Pure functions grading intake against targets.

All functions are pure: same input always produces same output, no side effects.
"""

from .errors import InvalidInputError
from .models import DailySummary, Status


# Percent of target up to which intake is still "slightly over"
YELLOW_CEILING_PCT = 110


def classify(current: float, target: float) -> Status:
    """Grade one metric against its target.

    Args:
        current: Amount consumed so far
        target: Goal for the day, must be positive

    Returns:
        GREEN up to 100% of target, YELLOW up to 110%, RED beyond

    Raises:
        InvalidInputError: If target is zero or negative
    """
    if target <= 0:
        raise InvalidInputError(f"Target must be positive, got {target}")

    pct = current / target * 100
    if pct <= 100:
        return Status.GREEN
    if pct <= YELLOW_CEILING_PCT:
        return Status.YELLOW
    return Status.RED


def combine(calories_status: Status, protein_status: Status) -> Status:
    """Merge two per-metric statuses into one.

    A lookup, not an average: both green is green, both red is red, and
    every other pairing is yellow. One metric far over with the other under
    is still yellow.
    """
    if calories_status == Status.GREEN and protein_status == Status.GREEN:
        return Status.GREEN
    if calories_status == Status.RED and protein_status == Status.RED:
        return Status.RED
    return Status.YELLOW


def day_status(summary: DailySummary) -> Status:
    """Combined status of a day's calories and protein."""
    return combine(
        classify(summary.total_calories, summary.target_calories),
        classify(summary.total_protein, summary.target_protein),
    )
