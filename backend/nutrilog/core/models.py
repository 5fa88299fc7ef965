"""Core Data Models - Pydantic models for type safety.

All models are value objects with no behavior beyond validation.
"""

from datetime import datetime, timezone
from datetime import date as DateType
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"


class Status(str, Enum):
    """Adherence of an actual value to its target."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class BodyProfile(BaseModel):
    """Body metrics used to derive default targets."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    weight_kg: float = Field(gt=0, description="Body weight in kilograms")
    height_cm: float = Field(gt=0, description="Height in centimetres")
    age: int = Field(gt=0, le=120, description="Age in years")
    gender: Gender
    activity_level: ActivityLevel


class Targets(BaseModel):
    """Daily calorie and protein goals."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    calories: float = Field(ge=0, description="Daily calorie target")
    protein: float = Field(ge=0, description="Daily protein target in grams")


class DailyTarget(BaseModel):
    """Targets pinned to one calendar date. At most one per (user, date)."""

    model_config = ConfigDict(allow_inf_nan=False)

    date: DateType
    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    updated_at: datetime = Field(default_factory=utcnow)

    def as_targets(self) -> Targets:
        return Targets(calories=self.calories, protein=self.protein)


class FoodEntry(BaseModel):
    """A single food item logged by the user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: DateType = Field(description="Day the food was eaten")
    food_description: str = Field(min_length=1, description="Free-text description of the food")
    calories: float = Field(ge=0, description="Estimated calories")
    protein: float = Field(ge=0, description="Estimated protein in grams")
    created_at: datetime = Field(default_factory=utcnow)


class DailySummary(BaseModel):
    """Intake totals for one date next to that date's targets.

    Derived on every read, never persisted.
    """

    date: DateType
    total_calories: float = Field(ge=0)
    total_protein: float = Field(ge=0)
    target_calories: float = Field(ge=0)
    target_protein: float = Field(ge=0)


class CalendarDay(DailySummary):
    """A daily summary with the combined status used to colour a calendar cell."""

    status: Status


class NutritionEstimate(BaseModel):
    """Calories and protein estimated from a food description."""

    calories: int = Field(ge=0)
    protein: float = Field(ge=0)
    breakdown: str = ""


class User(BaseModel):
    """User record stored in Firestore."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    email: str
    password_hash: str = Field(description="PBKDF2 hash - never store plaintext")
    created_at: datetime = Field(default_factory=utcnow)


class UserProfile(BaseModel):
    """Body metrics and the targets computed from them at signup."""

    weight_kg: float = Field(gt=0)
    height_cm: float = Field(gt=0)
    age: int = Field(gt=0, le=120)
    gender: Gender
    activity_level: ActivityLevel
    target_calories: float = Field(ge=0)
    target_protein: float = Field(ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def body(self) -> BodyProfile:
        return BodyProfile(
            weight_kg=self.weight_kg,
            height_cm=self.height_cm,
            age=self.age,
            gender=self.gender,
            activity_level=self.activity_level,
        )

    @property
    def default_targets(self) -> Targets:
        return Targets(calories=self.target_calories, protein=self.target_protein)

    @classmethod
    def from_body(cls, body: BodyProfile, targets: Targets) -> "UserProfile":
        return cls(
            **body.model_dump(),
            target_calories=targets.calories,
            target_protein=targets.protein,
        )


class EntryUpdate(BaseModel):
    """Fields of a food entry that may be changed after it is logged."""

    food_description: Optional[str] = Field(default=None, min_length=1)
    calories: Optional[float] = Field(default=None, ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
