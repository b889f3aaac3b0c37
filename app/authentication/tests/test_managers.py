"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates regular users with optional password
- create_superuser(): Creates admin users allowed on the refund endpoints
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(email="payer@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.email == "payer@example.com"
        assert user.check_password("SecurePass123!") is True
        assert user.is_staff is False
        assert user.is_superuser is False

    def test_normalizes_email_domain_to_lowercase(self, db):
        """
        Given an email with uppercase characters in domain
        When create_user is called
        Then only the domain portion is lowercased
        """
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="TestPass123!")

        assert user.email == "Test.User@example.com"

    def test_without_password_is_unusable(self, db):
        """
        Given no password
        When create_user is called
        Then the user exists but cannot log in with a password
        """
        user = User.objects.create_user(email="guest@example.com")

        assert user.has_usable_password() is False

    @pytest.mark.parametrize("email", ["", None])
    def test_raises_valueerror_when_email_missing(self, db, email):
        with pytest.raises(ValueError, match="Email field must be set"):
            User.objects.create_user(email=email, password="TestPass123!")


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_staff_superuser(self, db):
        """
        Given an email and password
        When create_superuser is called
        Then the user is both staff and superuser
        """
        admin = User.objects.create_superuser(email="ops@example.com", password="AdminPass123!")

        assert admin.is_staff is True
        assert admin.is_superuser is True

    @pytest.mark.parametrize("flag", ["is_staff", "is_superuser"])
    def test_rejects_missing_flag(self, db, flag):
        with pytest.raises(ValueError, match=f"Superuser must have {flag}=True"):
            User.objects.create_superuser(email="ops@example.com", password="pw", **{flag: False})
