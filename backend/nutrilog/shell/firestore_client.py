"""Firestore Client - Persistence for users, food entries and daily targets.

This module handles all database I/O for nutrition tracking.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from ..core.models import (
    DailyTarget,
    EntryUpdate,
    FoodEntry,
    Targets,
    User,
    UserProfile,
    utcnow,
)
from .store import EmailAlreadyRegistered


logger = logging.getLogger(__name__)


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class NutritionFirestoreClient:
    """Client for persisting nutrition data to Firestore.

    Document structure:
        users/{user_id}: { id, email, password_hash, created_at }
            profile/current: { weight_kg, ..., target_calories, target_protein }
            entries/{entry_id}: { id, date, food_description, calories, protein, created_at }
            targets/{YYYY-MM-DD}: { date, calories, protein, updated_at }
        emails/{email}: { user_id }
        api_keys/{key_hash}: { user_id, created_at }

    Dates are stored as ISO strings so range queries compare lexicographically.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def close(self) -> None:
        """Release the underlying client, if one was opened."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _email_ref(self, email: str) -> firestore.DocumentReference:
        return self.client.collection("emails").document(email)

    def _api_key_ref(self, key_hash: str) -> firestore.DocumentReference:
        return self.client.collection("api_keys").document(key_hash)

    def _profile_ref(self, user_id: str) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("profile").document("current")

    def _entries_ref(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("entries")

    def _targets_ref(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("targets")

    def _target_ref(self, user_id: str, day: date) -> firestore.DocumentReference:
        """Get reference to a date's target document. One per (user, date)."""
        return self._targets_ref(user_id).document(day.isoformat())

    # ==================== User Operations ====================

    def create_user(self, user: User) -> User:
        """Create a user, claiming their email first.

        Args:
            user: The user to create

        Returns:
            The created user

        Raises:
            EmailAlreadyRegistered: If the email is taken
        """
        logger.info("Creating user: %s", user.id[:8])
        try:
            # create() fails if the document exists, making the claim atomic
            self._email_ref(user.email).create({"user_id": user.id})
        except AlreadyExists as e:
            raise EmailAlreadyRegistered(user.email) from e

        try:
            self._user_ref(user.id).set(user.model_dump(mode="json"))
        except Exception:
            logger.error("Failed to write user %s, releasing email", user.id[:8])
            self._email_ref(user.email).delete()
            raise
        return user

    def delete_user(self, user: User) -> bool:
        """Remove a user with their email claim and profile.

        Used to roll back a signup that failed part way. Entries, targets
        and API keys are not touched.
        """
        logger.info("Deleting user: %s", user.id[:8])
        try:
            batch = self.client.batch()
            batch.delete(self._profile_ref(user.id))
            batch.delete(self._user_ref(user.id))
            batch.delete(self._email_ref(user.email))
            batch.commit()
            return True
        except Exception as e:
            logger.error("Failed to delete user: %s", str(e))
            return False

    def get_user(self, user_id: str) -> User | None:
        """Fetch a user by ID."""
        try:
            doc = self._user_ref(user_id).get()
            if not doc.exists:
                return None
            return User(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch user: %s", str(e))
            return None

    def get_user_by_email(self, email: str) -> User | None:
        """Fetch a user by their (normalized) email."""
        try:
            doc = self._email_ref(email).get()
            if not doc.exists:
                return None
            return self.get_user(doc.to_dict()["user_id"])
        except Exception as e:
            logger.error("Failed to fetch user by email: %s", str(e))
            return None

    def save_profile(self, user_id: str, profile: UserProfile) -> bool:
        """Save a user's body profile and default targets."""
        logger.info("Saving profile for user: %s", user_id[:8])
        try:
            data = profile.model_dump(mode="json")
            data["updated_at"] = utcnow().isoformat()
            self._profile_ref(user_id).set(data)
            return True
        except Exception as e:
            logger.error("Failed to save profile: %s", str(e))
            return False

    def get_profile(self, user_id: str) -> UserProfile | None:
        """Fetch a user's profile."""
        logger.debug("Fetching profile for user: %s", user_id[:8])
        try:
            doc = self._profile_ref(user_id).get()
            if not doc.exists:
                return None
            return UserProfile(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch profile: %s", str(e))
            return None

    def store_api_key(self, key_hash: str, user_id: str) -> bool:
        """Record an API key hash as belonging to a user."""
        try:
            self._api_key_ref(key_hash).set({
                "user_id": user_id,
                "created_at": utcnow().isoformat(),
            })
            return True
        except Exception as e:
            logger.error("Failed to store API key: %s", str(e))
            return False

    def resolve_api_key(self, key_hash: str) -> str | None:
        """Look up the user owning an API key hash."""
        try:
            doc = self._api_key_ref(key_hash).get()
            if not doc.exists:
                return None
            return doc.to_dict().get("user_id")
        except Exception as e:
            logger.error("Failed to resolve API key: %s", str(e))
            return None

    # ==================== Entry Operations ====================

    def add_entry(self, user_id: str, entry: FoodEntry) -> FoodEntry | None:
        """Save a new food entry.

        Returns:
            The saved entry, None on failure
        """
        logger.info("Adding entry for %s on %s", user_id[:8], entry.date)
        try:
            self._entries_ref(user_id).document(entry.id).set(entry.model_dump(mode="json"))
            return entry
        except Exception as e:
            logger.error("Failed to add entry: %s", str(e))
            return None

    def get_entry(self, user_id: str, entry_id: str) -> FoodEntry | None:
        """Fetch one food entry."""
        try:
            doc = self._entries_ref(user_id).document(entry_id).get()
            if not doc.exists:
                return None
            return FoodEntry(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch entry: %s", str(e))
            return None

    def update_entry(self, user_id: str, entry_id: str, updates: EntryUpdate) -> FoodEntry | None:
        """Apply a partial update to a food entry.

        Args:
            user_id: The user's ID
            entry_id: ID of the entry to update
            updates: Fields to change; unset fields are kept

        Returns:
            The updated entry, None if not found or the write failed
        """
        entry = self.get_entry(user_id, entry_id)
        if entry is None:
            logger.warning("Entry not found: %s", entry_id)
            return None

        updated = entry.model_copy(update=updates.model_dump(exclude_none=True))
        try:
            self._entries_ref(user_id).document(entry_id).set(updated.model_dump(mode="json"))
            return updated
        except Exception as e:
            logger.error("Failed to update entry: %s", str(e))
            return None

    def delete_entry(self, user_id: str, entry_id: str) -> FoodEntry | None:
        """Delete a food entry.

        Returns:
            The deleted entry, None if not found or the delete failed
        """
        entry = self.get_entry(user_id, entry_id)
        if entry is None:
            logger.warning("Entry not found: %s", entry_id)
            return None

        try:
            self._entries_ref(user_id).document(entry_id).delete()
            return entry
        except Exception as e:
            logger.error("Failed to delete entry: %s", str(e))
            return None

    def get_entries(self, user_id: str, day: date) -> list[FoodEntry]:
        """Fetch a day's entries, newest first."""
        logger.debug("Fetching entries for %s on %s", user_id[:8], day)
        try:
            query = self._entries_ref(user_id).where("date", "==", day.isoformat())
            entries = [FoodEntry(**doc.to_dict()) for doc in query.stream()]
            return sorted(entries, key=lambda e: e.created_at, reverse=True)
        except Exception as e:
            logger.error("Failed to fetch entries: %s", str(e))
            return []

    def get_entries_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[FoodEntry]:
        """Fetch entries for a date range, newest date first.

        Args:
            user_id: The user's ID
            start_date: Start of range (inclusive)
            end_date: End of range (inclusive)

        Returns:
            List of entries found (may be empty)
        """
        logger.debug(
            "Fetching entries for %s from %s to %s", user_id[:8], start_date, end_date
        )
        try:
            query = (
                self._entries_ref(user_id)
                .where("date", ">=", start_date.isoformat())
                .where("date", "<=", end_date.isoformat())
            )
            entries = [FoodEntry(**doc.to_dict()) for doc in query.stream()]
            logger.debug("Found %d entries in range", len(entries))
            return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)
        except Exception as e:
            logger.error("Failed to fetch entries range: %s", str(e))
            return []

    # ==================== Target Operations ====================

    def get_target(self, user_id: str, day: date) -> DailyTarget | None:
        """Fetch the explicit target row for a date, if any."""
        try:
            doc = self._target_ref(user_id, day).get()
            if not doc.exists:
                return None
            return DailyTarget(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch target: %s", str(e))
            return None

    def get_or_create_target(
        self, user_id: str, day: date, defaults: Targets
    ) -> DailyTarget | None:
        """Fetch a date's target, materializing it from defaults when absent.

        Args:
            user_id: The user's ID
            day: The date
            defaults: Targets to store if the date has none yet

        Returns:
            The stored target, None on failure
        """
        existing = self.get_target(user_id, day)
        if existing is not None:
            return existing

        target = DailyTarget(date=day, calories=defaults.calories, protein=defaults.protein)
        try:
            self._target_ref(user_id, day).create(target.model_dump(mode="json"))
            logger.info("Materialized default target for %s on %s", user_id[:8], day)
            return target
        except AlreadyExists:
            # Another request created it first
            return self.get_target(user_id, day)
        except Exception as e:
            logger.error("Failed to create target: %s", str(e))
            return None

    def set_target(self, user_id: str, day: date, targets: Targets) -> DailyTarget | None:
        """Create or overwrite a date's target."""
        logger.info("Setting target for %s on %s", user_id[:8], day)
        target = DailyTarget(date=day, calories=targets.calories, protein=targets.protein)
        try:
            self._target_ref(user_id, day).set(target.model_dump(mode="json"))
            return target
        except Exception as e:
            logger.error("Failed to set target: %s", str(e))
            return None

    def get_targets_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[DailyTarget]:
        """Fetch explicit targets for a date range, ascending by date."""
        try:
            query = (
                self._targets_ref(user_id)
                .where("date", ">=", start_date.isoformat())
                .where("date", "<=", end_date.isoformat())
                .order_by("date")
            )
            return [DailyTarget(**doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch targets range: %s", str(e))
            return []
