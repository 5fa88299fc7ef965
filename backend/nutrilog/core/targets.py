"""Target Calculations - Pure functions deriving daily goals from body metrics.

BMR uses the Mifflin-St Jeor equation; TDEE scales it by an activity
multiplier. Protein is a fixed number of grams per kilogram of body weight.
All functions are pure: same input always produces same output, no side effects.
"""

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from .errors import InvalidInputError
from .models import ActivityLevel, BodyProfile, Gender, Targets


GENDER_OFFSETS: Mapping[Gender, float] = MappingProxyType({
    Gender.MALE: 5,
    Gender.FEMALE: -161,
})

ACTIVITY_MULTIPLIERS: Mapping[ActivityLevel, float] = MappingProxyType({
    ActivityLevel.SEDENTARY: 1.2,      # little or no exercise
    ActivityLevel.LIGHT: 1.375,        # 1-3 days/week
    ActivityLevel.MODERATE: 1.55,      # 3-5 days/week
    ActivityLevel.ACTIVE: 1.725,       # 6-7 days/week
    ActivityLevel.VERY_ACTIVE: 1.9,    # physical job or twice a day
})

# Grams of protein per kg of body weight
PROTEIN_PER_KG: Mapping[ActivityLevel, float] = MappingProxyType({
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.4,
    ActivityLevel.MODERATE: 1.6,
    ActivityLevel.ACTIVE: 1.8,
    ActivityLevel.VERY_ACTIVE: 2.0,
})


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, not 2).

    Raises:
        InvalidInputError: If the value is NaN or infinite
    """
    if not math.isfinite(value):
        raise InvalidInputError(f"Cannot round non-finite value: {value}")
    return int(math.floor(value + 0.5))


def calculate_bmr(weight_kg: float, height_cm: float, age: int, gender: Gender) -> float:
    """Basal metabolic rate in kcal/day, unrounded.

    Args:
        weight_kg: Body weight in kilograms
        height_cm: Height in centimetres
        age: Age in years
        gender: Biological sex for the equation constant

    Returns:
        10*weight + 6.25*height - 5*age, plus 5 for men or minus 161 for women
    """
    return 10 * weight_kg + 6.25 * height_cm - 5 * age + GENDER_OFFSETS[Gender(gender)]


def calculate_tdee(
    weight_kg: float,
    height_cm: float,
    age: int,
    gender: Gender,
    activity_level: ActivityLevel,
) -> int:
    """Maintenance calories: BMR times the activity multiplier, rounded half-up."""
    bmr = calculate_bmr(weight_kg, height_cm, age, gender)
    return round_half_up(bmr * ACTIVITY_MULTIPLIERS[ActivityLevel(activity_level)])


def calculate_protein(weight_kg: float, activity_level: ActivityLevel) -> int:
    """Suggested daily protein in whole grams."""
    return round_half_up(weight_kg * PROTEIN_PER_KG[ActivityLevel(activity_level)])


def _check_profile(profile: BodyProfile) -> None:
    # Instances built with model_construct skip pydantic validation
    if not all(math.isfinite(v) and v > 0 for v in (profile.weight_kg, profile.height_cm)):
        raise InvalidInputError("weight_kg and height_cm must be positive")
    if not 0 < profile.age <= 120:
        raise InvalidInputError("age must be between 1 and 120")
    try:
        Gender(profile.gender)
    except ValueError as e:
        raise InvalidInputError(f"Unknown gender: {profile.gender!r}") from e
    try:
        ActivityLevel(profile.activity_level)
    except ValueError as e:
        raise InvalidInputError(f"Unknown activity_level: {profile.activity_level!r}") from e


def compute_targets(profile: BodyProfile) -> Targets:
    """Compute recommended daily calorie and protein targets.

    Used both to seed a new user's profile and as the default for any date
    without an explicit override.

    Args:
        profile: The user's body metrics

    Returns:
        Targets with whole-number calories and protein

    Raises:
        InvalidInputError: If any field is outside its domain
    """
    _check_profile(profile)

    calories = calculate_tdee(
        profile.weight_kg,
        profile.height_cm,
        profile.age,
        profile.gender,
        profile.activity_level,
    )
    protein = calculate_protein(profile.weight_kg, profile.activity_level)
    if calories <= 0 or protein <= 0:
        raise InvalidInputError("Body metrics yield a non-positive target")

    return Targets(calories=calories, protein=protein)


def parse_profile(data: Mapping[str, Any]) -> BodyProfile:
    """Build a BodyProfile from untrusted input.

    Raises:
        InvalidInputError: If a field is missing or out of its domain
    """
    try:
        return BodyProfile(
            weight_kg=data.get("weight_kg"),
            height_cm=data.get("height_cm"),
            age=data.get("age"),
            gender=data.get("gender"),
            activity_level=data.get("activity_level"),
        )
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidInputError(f"Invalid body profile: {', '.join(fields)}") from e
