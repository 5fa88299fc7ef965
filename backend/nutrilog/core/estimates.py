"""Estimate Sanitizing - Pure functions cleaning up model-produced nutrition numbers.

Language-model output is noisy. Instead of rejecting it, negative or
unreadable values are clamped to zero so a save is never blocked.
"""

import math
from collections.abc import Mapping
from typing import Any

from .models import NutritionEstimate
from .targets import round_half_up


def _as_number(value: Any) -> float:
    """Coerce a raw value to a finite float, 0 when that is impossible."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def clamp_calories(value: Any) -> int:
    """Whole calories, never negative."""
    return max(0, round_half_up(_as_number(value)))


def clamp_protein(value: Any) -> float:
    """Protein grams to one decimal, never negative."""
    tenths = _as_number(_as_number(value) * 10)
    return max(0.0, round_half_up(tenths) / 10)


def clamp_estimate(raw: Mapping[str, Any]) -> NutritionEstimate:
    """Turn a raw estimation response into a NutritionEstimate.

    Args:
        raw: Parsed response with ``calories``, ``protein`` and ``breakdown``

    Returns:
        NutritionEstimate with clamped, rounded values
    """
    breakdown = raw.get("breakdown") or ""
    return NutritionEstimate(
        calories=clamp_calories(raw.get("calories")),
        protein=clamp_protein(raw.get("protein")),
        breakdown=str(breakdown),
    )
