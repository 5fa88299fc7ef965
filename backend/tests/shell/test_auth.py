"""Unit tests for auth module - key/password helpers and the auth service."""

import pytest

from nutrilog.core.errors import InvalidInputError
from nutrilog.shell.auth import (
    API_KEY_PREFIX,
    AuthService,
    generate_api_key,
    hash_api_key,
    hash_password,
    validate_api_key_format,
    verify_password,
)
from nutrilog.shell.memory_store import InMemoryNutritionStore
from nutrilog.shell.store import EmailAlreadyRegistered


PROFILE = {
    "weight_kg": 70,
    "height_cm": 175,
    "age": 30,
    "gender": "male",
    "activity_level": "moderate",
}


class TestGenerateApiKey:
    """Tests for generate_api_key."""

    def test_starts_with_prefix(self):
        """Generated key starts with nut_ prefix."""
        key = generate_api_key()
        assert key.startswith(API_KEY_PREFIX)

    def test_sufficient_length(self):
        """Generated key has sufficient length for security."""
        key = generate_api_key()
        # prefix (4) + base64 encoded 32 bytes (~43 chars)
        assert len(key) >= 40

    def test_unique_keys(self):
        """Each generated key is unique."""
        keys = [generate_api_key() for _ in range(100)]
        assert len(set(keys)) == 100


class TestHashApiKey:
    """Tests for hash_api_key."""

    def test_returns_32_char_hash(self):
        """Hash is exactly 32 characters."""
        assert len(hash_api_key("nut_test_key_12345678901234567890")) == 32

    def test_deterministic(self):
        """Same key always produces same hash."""
        key = "nut_test_key_12345678901234567890"
        assert hash_api_key(key) == hash_api_key(key)

    def test_different_keys_different_hashes(self):
        """Different keys produce different hashes."""
        assert hash_api_key("nut_key1_1234567890123456789012345") != hash_api_key(
            "nut_key2_1234567890123456789012345"
        )


class TestValidateApiKeyFormat:
    """Tests for validate_api_key_format."""

    def test_valid_key(self):
        """Valid key format returns True."""
        assert validate_api_key_format(generate_api_key()) is True

    def test_none_value(self):
        """None returns False."""
        assert validate_api_key_format(None) is False

    def test_wrong_prefix(self):
        """Key with wrong prefix returns False."""
        assert validate_api_key_format("flr_12345678901234567890123456789012345") is False

    def test_minimum_length(self):
        """Key at minimum length returns True."""
        assert validate_api_key_format("nut_" + "a" * 36) is True

    def test_below_minimum_length(self):
        """Key below minimum length returns False."""
        assert validate_api_key_format("nut_" + "a" * 35) is False


class TestPasswords:
    """Tests for hash_password and verify_password."""

    def test_roundtrip(self):
        """The right password verifies."""
        hashed = hash_password("hunter22")
        assert verify_password("hunter22", hashed) is True

    def test_wrong_password(self):
        """A wrong password does not verify."""
        assert verify_password("hunter23", hash_password("hunter22")) is False

    def test_salted(self):
        """Hashing the same password twice gives different hashes."""
        assert hash_password("hunter22") != hash_password("hunter22")

    def test_plaintext_not_stored(self):
        """The hash does not contain the password."""
        assert "hunter22" not in hash_password("hunter22")

    def test_malformed_hash(self):
        """Malformed hashes never verify."""
        assert verify_password("x", "not-a-hash") is False
        assert verify_password("x", "bcrypt$1$abc$def") is False


@pytest.fixture
def service():
    return AuthService(InMemoryNutritionStore())


class TestAuthService:
    """Tests for AuthService."""

    def test_signup_computes_targets(self, service):
        """Signup stores the profile with formula-derived targets."""
        result = service.signup("Alice@Example.com ", "secret1", PROFILE)

        assert result.user.email == "alice@example.com"
        assert result.targets.calories == 2556
        assert result.targets.protein == 112
        assert result.profile.target_calories == 2556
        assert validate_api_key_format(result.api_key)

    def test_signup_key_authenticates(self, service):
        """The key returned at signup resolves to the new user."""
        result = service.signup("alice@example.com", "secret1", PROFILE)
        assert service.authenticate(result.api_key) == result.user.id

    def test_signup_duplicate_email(self, service):
        """Second signup with the same email fails."""
        service.signup("alice@example.com", "secret1", PROFILE)
        with pytest.raises(EmailAlreadyRegistered):
            service.signup("ALICE@example.com", "secret2", PROFILE)

    def test_signup_invalid_email(self, service):
        with pytest.raises(InvalidInputError, match="email"):
            service.signup("not-an-email", "secret1", PROFILE)

    def test_signup_short_password(self, service):
        with pytest.raises(InvalidInputError, match="Password"):
            service.signup("alice@example.com", "12345", PROFILE)

    def test_signup_invalid_profile(self, service):
        """Out-of-domain metrics are rejected before anything is stored."""
        with pytest.raises(InvalidInputError):
            service.signup("alice@example.com", "secret1", {**PROFILE, "age": 130})
        assert service._store.get_user_by_email("alice@example.com") is None

    def test_signup_rolls_back_on_profile_failure(self, service, monkeypatch):
        """A failed profile write removes the user so the email can be reused."""
        monkeypatch.setattr(service._store, "save_profile", lambda user_id, profile: False)
        with pytest.raises(RuntimeError):
            service.signup("alice@example.com", "secret1", PROFILE)
        assert service._store.get_user_by_email("alice@example.com") is None

        monkeypatch.undo()
        result = service.signup("alice@example.com", "secret1", PROFILE)
        assert service._store.get_profile(result.user.id) is not None

    def test_signup_rolls_back_on_key_failure(self, service, monkeypatch):
        monkeypatch.setattr(service._store, "store_api_key", lambda key_hash, user_id: False)
        with pytest.raises(RuntimeError):
            service.signup("alice@example.com", "secret1", PROFILE)
        assert service._store.get_user_by_email("alice@example.com") is None

    def test_login_issues_new_key(self, service):
        """Login returns a fresh key for the same user."""
        signup = service.signup("alice@example.com", "secret1", PROFILE)
        api_key, user = service.login("alice@example.com", "secret1")

        assert api_key != signup.api_key
        assert user.id == signup.user.id
        assert service.authenticate(api_key) == signup.user.id

    def test_login_wrong_password(self, service):
        service.signup("alice@example.com", "secret1", PROFILE)
        assert service.login("alice@example.com", "wrong!") is None

    def test_login_unknown_email(self, service):
        assert service.login("nobody@example.com", "secret1") is None

    def test_authenticate_unknown_key(self, service):
        """Well-formed but unknown keys are rejected."""
        assert service.authenticate(generate_api_key()) is None

    def test_authenticate_bad_format(self, service):
        assert service.authenticate("invalid_key") is None
