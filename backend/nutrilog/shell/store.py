"""Store Interface - The persistence operations the HTTP layer relies on.

Two implementations exist: Firestore for deployments and an in-memory
store for local development and tests. Both are opened by the app's
lifespan and closed on shutdown.
"""

from datetime import date
from typing import Protocol

from ..core.models import DailyTarget, EntryUpdate, FoodEntry, Targets, User, UserProfile


class EmailAlreadyRegistered(Exception):
    """Raised when signing up with an email that already has an account."""


class NutritionStore(Protocol):
    """Storage for users, profiles, API keys, food entries and daily targets.

    Every user-owned record is scoped by an opaque user ID. Read failures
    surface as None or an empty list, write failures as None or False.
    """

    def close(self) -> None: ...

    # Users
    def create_user(self, user: User) -> User: ...
    def get_user(self, user_id: str) -> User | None: ...
    def delete_user(self, user: User) -> bool: ...
    def get_user_by_email(self, email: str) -> User | None: ...
    def save_profile(self, user_id: str, profile: UserProfile) -> bool: ...
    def get_profile(self, user_id: str) -> UserProfile | None: ...
    def store_api_key(self, key_hash: str, user_id: str) -> bool: ...
    def resolve_api_key(self, key_hash: str) -> str | None: ...

    # Entries
    def add_entry(self, user_id: str, entry: FoodEntry) -> FoodEntry | None: ...
    def get_entry(self, user_id: str, entry_id: str) -> FoodEntry | None: ...
    def update_entry(self, user_id: str, entry_id: str, updates: EntryUpdate) -> FoodEntry | None: ...
    def delete_entry(self, user_id: str, entry_id: str) -> FoodEntry | None: ...
    def get_entries(self, user_id: str, day: date) -> list[FoodEntry]: ...
    def get_entries_range(self, user_id: str, start_date: date, end_date: date) -> list[FoodEntry]: ...

    # Targets
    def get_target(self, user_id: str, day: date) -> DailyTarget | None: ...
    def get_or_create_target(self, user_id: str, day: date, defaults: Targets) -> DailyTarget | None: ...
    def set_target(self, user_id: str, day: date, targets: Targets) -> DailyTarget | None: ...
    def get_targets_range(self, user_id: str, start_date: date, end_date: date) -> list[DailyTarget]: ...
