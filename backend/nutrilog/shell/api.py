"""API Handlers - JSON endpoints for entries, targets and summaries.

Every handler here runs behind the auth middleware, which puts the caller's
user_id on ``request.state``. Pure calculations come from the core module;
this module only moves data between the store and HTTP.
"""

import logging
import math
from datetime import date
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from ..core.errors import InvalidInputError
from ..core.estimates import clamp_calories, clamp_protein
from ..core.models import DailySummary, EntryUpdate, FoodEntry, Targets, UserProfile
from ..core.status import classify, combine
from ..core.summary import build_calendar, month_bounds, summarize, summarize_range
from .estimator import EstimationError, NutritionEstimator
from .store import NutritionStore


logger = logging.getLogger(__name__)


class NotFound(Exception):
    """A requested record does not exist for this user."""


class StoreFailure(Exception):
    """The store reported a failed read or write."""


# ==================== Helpers ====================


def get_store(request: Request) -> NutritionStore:
    return request.app.state.store


def get_estimator(request: Request) -> NutritionEstimator:
    return request.app.state.estimator


def get_user_id(request: Request) -> str:
    """Get the authenticated user ID set by the auth middleware.

    Raises:
        RuntimeError: If no user is authenticated
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise RuntimeError("No authenticated user. Ensure API key is provided.")
    return user_id


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def parse_date(value: Any, field: str = "date") -> date:
    """Parse an ISO ``YYYY-MM-DD`` string.

    Raises:
        InvalidInputError: If the value is missing or malformed
    """
    if not value:
        raise InvalidInputError(f"{field} is required")
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise InvalidInputError(f"Invalid {field}: {value!r}, expected YYYY-MM-DD") from e


def parse_number(value: Any, field: str) -> float:
    """Parse a finite number; NaN and infinity are rejected like garbage."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{field} must be a number") from e
    if not math.isfinite(number):
        raise InvalidInputError(f"{field} must be a finite number")
    return number


async def read_json(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError
        raise InvalidInputError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return body


def json_errors(handler):
    """Turn the exceptions handlers raise into JSON error responses."""

    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await handler(request)
        except InvalidInputError as e:
            return error_response(str(e), 400)
        except NotFound as e:
            return error_response(str(e), 404)
        except EstimationError as e:
            return error_response(str(e), 502)
        except StoreFailure as e:
            logger.error("Store failure in %s: %s", handler.__name__, str(e))
            return error_response(str(e), 500)
        except Exception:
            logger.exception("Unhandled error in %s", handler.__name__)
            return error_response("Internal server error", 500)

    wrapper.__name__ = handler.__name__
    wrapper.__doc__ = handler.__doc__
    return wrapper


def load_profile(store: NutritionStore, user_id: str) -> UserProfile:
    profile = store.get_profile(user_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


def daily_summary(store: NutritionStore, user_id: str, day: date, defaults: Targets) -> DailySummary:
    """Summary for one date. Reading materializes the date's target row."""
    target = store.get_or_create_target(user_id, day, defaults)
    if target is None:
        raise StoreFailure("Failed to load target")
    return summarize(store.get_entries(user_id, day), target.as_targets(), day)


def range_summaries(
    store: NutritionStore, user_id: str, start_date: date, end_date: date, defaults: Targets
) -> list[DailySummary]:
    """Summaries for every date in a range with entries or a target.

    Dates that only have entries get their default target row stored.
    """
    entries = store.get_entries_range(user_id, start_date, end_date)
    targets = store.get_targets_range(user_id, start_date, end_date)

    known = {t.date for t in targets}
    for day in sorted({e.date for e in entries} - known):
        target = store.get_or_create_target(user_id, day, defaults)
        if target is not None:
            targets.append(target)

    return summarize_range(entries, targets, start_date, end_date, defaults)


def dump(model) -> dict:
    return model.model_dump(mode="json")


# ==================== Profile ====================


@json_errors
async def me(request: Request) -> JSONResponse:
    """Return the current user and their body profile."""
    user_id = get_user_id(request)
    store = get_store(request)

    user = store.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    profile = store.get_profile(user_id)

    return JSONResponse({
        "user": {"id": user.id, "email": user.email},
        "profile": dump(profile) if profile else None,
    })


# ==================== Estimation ====================


@json_errors
async def estimate_nutrition(request: Request) -> JSONResponse:
    """Estimate calories and protein for a free-text food description."""
    body = await read_json(request)
    description = body.get("description")
    if not description or not isinstance(description, str):
        raise InvalidInputError("Food description is required")

    grams = body.get("grams")
    if grams is not None:
        grams = parse_number(grams, "grams")
    cooked = body.get("cooked")
    if cooked is not None and not isinstance(cooked, bool):
        raise InvalidInputError("cooked must be true or false")

    estimate = await get_estimator(request).estimate(description, grams=grams, cooked=cooked)
    return JSONResponse(dump(estimate))


# ==================== Entries ====================


@json_errors
async def list_entries(request: Request) -> JSONResponse:
    """List entries for ?date= or for ?startDate=&endDate=."""
    user_id = get_user_id(request)
    store = get_store(request)
    params = request.query_params

    if params.get("date"):
        entries = store.get_entries(user_id, parse_date(params["date"]))
        return JSONResponse([dump(e) for e in entries])

    if params.get("startDate") and params.get("endDate"):
        start_date = parse_date(params["startDate"], "startDate")
        end_date = parse_date(params["endDate"], "endDate")
        entries = store.get_entries_range(user_id, start_date, end_date)
        return JSONResponse([dump(e) for e in entries])

    raise InvalidInputError("Either date or startDate and endDate are required")


@json_errors
async def create_entry(request: Request) -> JSONResponse:
    """Log a food entry and return it with the updated daily summary."""
    user_id = get_user_id(request)
    store = get_store(request)
    body = await read_json(request)

    required = ("date", "food_description", "estimated_calories", "estimated_protein")
    if any(body.get(key) in (None, "") for key in required):
        raise InvalidInputError(
            "Missing required fields: date, food_description, estimated_calories, estimated_protein"
        )

    day = parse_date(body["date"])
    entry = FoodEntry(
        date=day,
        food_description=str(body["food_description"]),
        calories=clamp_calories(parse_number(body["estimated_calories"], "estimated_calories")),
        protein=clamp_protein(parse_number(body["estimated_protein"], "estimated_protein")),
    )

    if store.add_entry(user_id, entry) is None:
        raise StoreFailure("Failed to save entry")

    profile = load_profile(store, user_id)
    summary = daily_summary(store, user_id, day, profile.default_targets)
    return JSONResponse({"entry": dump(entry), "summary": dump(summary)})


@json_errors
async def update_entry(request: Request) -> JSONResponse:
    """Change an entry's description or estimates. Only provided fields are updated."""
    user_id = get_user_id(request)
    store = get_store(request)
    entry_id = request.query_params.get("id")
    if not entry_id:
        raise InvalidInputError("Entry ID is required")
    body = await read_json(request)

    updates: dict[str, Any] = {}
    if body.get("food_description") is not None:
        description = str(body["food_description"]).strip()
        if not description:
            raise InvalidInputError("food_description cannot be empty")
        updates["food_description"] = description
    if body.get("estimated_calories") is not None:
        updates["calories"] = clamp_calories(parse_number(body["estimated_calories"], "estimated_calories"))
    if body.get("estimated_protein") is not None:
        updates["protein"] = clamp_protein(parse_number(body["estimated_protein"], "estimated_protein"))

    if not updates:
        raise InvalidInputError("No updates provided.")

    if store.get_entry(user_id, entry_id) is None:
        raise NotFound("Entry not found")

    entry = store.update_entry(user_id, entry_id, EntryUpdate(**updates))
    if entry is None:
        raise StoreFailure("Failed to update entry")

    profile = load_profile(store, user_id)
    summary = daily_summary(store, user_id, entry.date, profile.default_targets)
    return JSONResponse({"entry": dump(entry), "summary": dump(summary)})


@json_errors
async def delete_entry(request: Request) -> JSONResponse:
    """Delete an entry and return the updated summary for its date."""
    user_id = get_user_id(request)
    store = get_store(request)
    entry_id = request.query_params.get("id")
    if not entry_id:
        raise InvalidInputError("Entry ID is required")

    if store.get_entry(user_id, entry_id) is None:
        raise NotFound("Entry not found")

    entry = store.delete_entry(user_id, entry_id)
    if entry is None:
        raise StoreFailure("Failed to delete entry")

    profile = load_profile(store, user_id)
    summary = daily_summary(store, user_id, entry.date, profile.default_targets)
    return JSONResponse({"success": True, "summary": dump(summary)})


# ==================== Targets & Summaries ====================


@json_errors
async def get_targets(request: Request) -> JSONResponse:
    """Target for ?date= (created from defaults if absent), or range summaries."""
    user_id = get_user_id(request)
    store = get_store(request)
    params = request.query_params
    profile = load_profile(store, user_id)

    if params.get("date"):
        day = parse_date(params["date"])
        target = store.get_or_create_target(user_id, day, profile.default_targets)
        if target is None:
            raise StoreFailure("Failed to load target")
        return JSONResponse(dump(target))

    if params.get("startDate") and params.get("endDate"):
        start_date = parse_date(params["startDate"], "startDate")
        end_date = parse_date(params["endDate"], "endDate")
        summaries = range_summaries(store, user_id, start_date, end_date, profile.default_targets)
        return JSONResponse([dump(s) for s in summaries])

    raise InvalidInputError("Either date or startDate and endDate are required")


@json_errors
async def set_target(request: Request) -> JSONResponse:
    """Override the targets for one date."""
    user_id = get_user_id(request)
    store = get_store(request)
    body = await read_json(request)

    if body.get("date") in (None, "") or body.get("target_calories") is None or body.get("target_protein") is None:
        raise InvalidInputError("Missing required fields: date, target_calories, target_protein")

    day = parse_date(body["date"])
    calories = parse_number(body["target_calories"], "target_calories")
    protein = parse_number(body["target_protein"], "target_protein")
    # Zero targets would make the status classifier divide by zero
    if not (calories > 0 and protein > 0):
        raise InvalidInputError("target_calories and target_protein must be positive")

    target = store.set_target(user_id, day, Targets(calories=calories, protein=protein))
    if target is None:
        raise StoreFailure("Failed to set target")

    profile = load_profile(store, user_id)
    summary = daily_summary(store, user_id, day, profile.default_targets)
    return JSONResponse({"target": dump(target), "summary": dump(summary)})


@json_errors
async def get_summary(request: Request) -> JSONResponse:
    """Daily summary for ?date= with per-metric and combined status."""
    user_id = get_user_id(request)
    store = get_store(request)
    day = parse_date(request.query_params.get("date"))
    profile = load_profile(store, user_id)

    summary = daily_summary(store, user_id, day, profile.default_targets)
    calories_status = classify(summary.total_calories, summary.target_calories)
    protein_status = classify(summary.total_protein, summary.target_protein)

    return JSONResponse({
        "summary": dump(summary),
        "status": {
            "calories": calories_status.value,
            "protein": protein_status.value,
            "combined": combine(calories_status, protein_status).value,
        },
    })


@json_errors
async def get_calendar(request: Request) -> JSONResponse:
    """Month view: one coloured day per date with entries or a target."""
    user_id = get_user_id(request)
    store = get_store(request)
    params = request.query_params

    today = date.today()
    try:
        year = int(params.get("year", today.year))
        month = int(params.get("month", today.month))
    except ValueError as e:
        raise InvalidInputError("year and month must be integers") from e

    start_date, end_date = month_bounds(year, month)
    profile = load_profile(store, user_id)
    summaries = range_summaries(store, user_id, start_date, end_date, profile.default_targets)

    return JSONResponse({
        "year": year,
        "month": month,
        "days": [dump(day) for day in build_calendar(summaries)],
    })
