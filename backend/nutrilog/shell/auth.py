"""Authentication - Passwords, API keys and account creation.

Passwords are stored as salted PBKDF2 hashes and API keys as SHA256
hashes. Plaintext secrets are never persisted.
"""

import base64
import hashlib
import hmac
import logging
import os
import re
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.errors import InvalidInputError
from ..core.models import Targets, User, UserProfile
from ..core.targets import compute_targets, parse_profile
from .store import NutritionStore


logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "nut_"

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_PBKDF2_ALG = "sha256"
_PBKDF2_ITERATIONS = 200_000


def generate_api_key() -> str:
    """Generate a cryptographically secure API key.

    Returns:
        API key in format: nut_<random_chars>
    """
    random_part = secrets.token_urlsafe(32)
    return f"{API_KEY_PREFIX}{random_part}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key for storage and lookup.

    Uses SHA256 and truncates to 32 chars for the Firestore document ID.

    Args:
        api_key: The plaintext API key

    Returns:
        32-character hex hash
    """
    return hashlib.sha256(api_key.encode()).hexdigest()[:32]


def validate_api_key_format(api_key: str | None) -> bool:
    """Check if API key has valid format.

    Args:
        api_key: The API key to validate

    Returns:
        True if format is valid
    """
    if not api_key:
        return False
    if not api_key.startswith(API_KEY_PREFIX):
        return False
    if len(api_key) < 40:  # prefix + at least some random chars
        return False
    return True


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + pad).encode("ascii"))


def hash_password(password: str) -> str:
    """Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac(_PBKDF2_ALG, password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return f"pbkdf2_{_PBKDF2_ALG}${_PBKDF2_ITERATIONS}${_b64(salt)}${_b64(dk)}"


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    try:
        scheme, iterations, salt_b64, dk_b64 = password_hash.split("$", 3)
        if not scheme.startswith("pbkdf2_"):
            return False
        alg = scheme.split("_", 1)[1]
        actual = hashlib.pbkdf2_hmac(alg, password.encode("utf-8"), _unb64(salt_b64), int(iterations))
        return hmac.compare_digest(actual, _unb64(dk_b64))
    except (ValueError, TypeError):
        return False


def normalize_email(email: Any) -> str:
    return str(email or "").strip().lower()


@dataclass
class SignupResult:
    """Outcome of a successful signup. The API key is only available here."""

    user: User
    profile: UserProfile
    targets: Targets
    api_key: str


class AuthService:
    """Account creation, login and API key resolution against the store."""

    def __init__(self, store: NutritionStore) -> None:
        """Initialize auth service.

        Args:
            store: Persistence handle
        """
        self._store = store

    def _issue_api_key(self, user_id: str) -> str:
        api_key = generate_api_key()
        if not self._store.store_api_key(hash_api_key(api_key), user_id):
            raise RuntimeError("Failed to store API key")
        return api_key

    def signup(self, email: Any, password: Any, profile_data: Mapping[str, Any]) -> SignupResult:
        """Register a new user with body metrics and computed targets.

        Args:
            email: Email address, normalized to lowercase
            password: Plaintext password, at least 6 characters
            profile_data: weight_kg, height_cm, age, gender, activity_level

        Returns:
            SignupResult with the new user's API key

        Raises:
            InvalidInputError: If email, password or body metrics are invalid
            EmailAlreadyRegistered: If the email already has an account
        """
        email_str = normalize_email(email)
        if not _EMAIL_RE.match(email_str):
            raise InvalidInputError("Invalid email")
        if len(str(password or "")) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        body = parse_profile(profile_data)
        targets = compute_targets(body)

        logger.info("Registering new user")
        user = self._store.create_user(
            User(email=email_str, password_hash=hash_password(str(password)))
        )

        try:
            profile = UserProfile.from_body(body, targets)
            if not self._store.save_profile(user.id, profile):
                raise RuntimeError("Failed to save profile")
            api_key = self._issue_api_key(user.id)
        except Exception:
            # Release the email so the signup can be retried
            logger.error("Signup incomplete, removing user: %s", user.id[:8])
            self._store.delete_user(user)
            raise

        logger.info("User registered successfully: %s", user.id[:8])
        return SignupResult(user=user, profile=profile, targets=targets, api_key=api_key)

    def login(self, email: Any, password: Any) -> tuple[str, User] | None:
        """Verify credentials and issue a fresh API key.

        Returns:
            Tuple of (api_key, user), None if the credentials are wrong
        """
        user = self._store.get_user_by_email(normalize_email(email))
        if user is None or not verify_password(str(password or ""), user.password_hash):
            logger.warning("Failed login attempt")
            return None
        return self._issue_api_key(user.id), user

    def authenticate(self, api_key: str | None) -> str | None:
        """Resolve an API key to its user_id.

        Args:
            api_key: The API key to validate

        Returns:
            user_id if valid, None if invalid
        """
        if not validate_api_key_format(api_key):
            return None

        user_id = self._store.resolve_api_key(hash_api_key(api_key))
        if user_id is None:
            logger.warning("API key not found in database")
            return None

        logger.debug("API key validated for user: %s", user_id[:8])
        return user_id
