"""In-Memory Store - Process-local persistence for development and tests.

Implements the same operations as the Firestore client over plain dicts.
Data is lost when the process exits.
"""

import logging
import threading
from datetime import date

from ..core.models import DailyTarget, EntryUpdate, FoodEntry, Targets, User, UserProfile
from .store import EmailAlreadyRegistered


logger = logging.getLogger(__name__)


class InMemoryNutritionStore:
    """Dict-backed store. A single lock guards every read and write."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._emails: dict[str, str] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._api_keys: dict[str, str] = {}
        self._entries: dict[str, dict[str, FoodEntry]] = {}
        self._targets: dict[str, dict[date, DailyTarget]] = {}

    def close(self) -> None:
        logger.debug("Closing in-memory store")

    # ==================== User Operations ====================

    def create_user(self, user: User) -> User:
        with self._lock:
            if user.email in self._emails:
                raise EmailAlreadyRegistered(user.email)
            self._emails[user.email] = user.id
            self._users[user.id] = user
        logger.info("Created user: %s", user.id[:8])
        return user

    def delete_user(self, user: User) -> bool:
        with self._lock:
            self._profiles.pop(user.id, None)
            self._users.pop(user.id, None)
            if self._emails.get(user.email) == user.id:
                del self._emails[user.email]
        logger.info("Deleted user: %s", user.id[:8])
        return True

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._emails.get(email)
            return self._users.get(user_id) if user_id else None

    def save_profile(self, user_id: str, profile: UserProfile) -> bool:
        with self._lock:
            self._profiles[user_id] = profile
        return True

    def get_profile(self, user_id: str) -> UserProfile | None:
        with self._lock:
            return self._profiles.get(user_id)

    def store_api_key(self, key_hash: str, user_id: str) -> bool:
        with self._lock:
            self._api_keys[key_hash] = user_id
        return True

    def resolve_api_key(self, key_hash: str) -> str | None:
        with self._lock:
            return self._api_keys.get(key_hash)

    # ==================== Entry Operations ====================

    def add_entry(self, user_id: str, entry: FoodEntry) -> FoodEntry | None:
        with self._lock:
            self._entries.setdefault(user_id, {})[entry.id] = entry
        return entry

    def get_entry(self, user_id: str, entry_id: str) -> FoodEntry | None:
        with self._lock:
            return self._entries.get(user_id, {}).get(entry_id)

    def update_entry(self, user_id: str, entry_id: str, updates: EntryUpdate) -> FoodEntry | None:
        with self._lock:
            entries = self._entries.get(user_id, {})
            entry = entries.get(entry_id)
            if entry is None:
                logger.warning("Entry not found: %s", entry_id)
                return None
            updated = entry.model_copy(update=updates.model_dump(exclude_none=True))
            entries[entry_id] = updated
        return updated

    def delete_entry(self, user_id: str, entry_id: str) -> FoodEntry | None:
        with self._lock:
            entry = self._entries.get(user_id, {}).pop(entry_id, None)
        if entry is None:
            logger.warning("Entry not found: %s", entry_id)
        return entry

    def get_entries(self, user_id: str, day: date) -> list[FoodEntry]:
        with self._lock:
            entries = [e for e in self._entries.get(user_id, {}).values() if e.date == day]
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def get_entries_range(self, user_id: str, start_date: date, end_date: date) -> list[FoodEntry]:
        with self._lock:
            entries = [
                e for e in self._entries.get(user_id, {}).values()
                if start_date <= e.date <= end_date
            ]
        return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)

    # ==================== Target Operations ====================

    def get_target(self, user_id: str, day: date) -> DailyTarget | None:
        with self._lock:
            return self._targets.get(user_id, {}).get(day)

    def get_or_create_target(self, user_id: str, day: date, defaults: Targets) -> DailyTarget | None:
        with self._lock:
            targets = self._targets.setdefault(user_id, {})
            if day not in targets:
                targets[day] = DailyTarget(date=day, calories=defaults.calories, protein=defaults.protein)
            return targets[day]

    def set_target(self, user_id: str, day: date, targets: Targets) -> DailyTarget | None:
        target = DailyTarget(date=day, calories=targets.calories, protein=targets.protein)
        with self._lock:
            self._targets.setdefault(user_id, {})[day] = target
        return target

    def get_targets_range(self, user_id: str, start_date: date, end_date: date) -> list[DailyTarget]:
        with self._lock:
            targets = [
                t for t in self._targets.get(user_id, {}).values()
                if start_date <= t.date <= end_date
            ]
        return sorted(targets, key=lambda t: t.date)
