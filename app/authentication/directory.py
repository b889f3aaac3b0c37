"""
User directory lookups.

UserDirectory is the narrow contract the payments app uses to go from a
user id to an email address and back (refund filtering, notification
delivery, subscription cancellation by email). It never creates users.

Usage:
    from authentication.directory import UserDirectory

    directory = UserDirectory()
    email = directory.email_for(user_id)
    user_id = directory.user_id_for("user@example.com")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model

if TYPE_CHECKING:
    from authentication.models import User


class UserDirectory:
    """Resolve user identity <-> email using the auth user table."""

    def get_by_email(self, email: str) -> User | None:
        if not email:
            return None
        return get_user_model().objects.filter(email__iexact=email.strip()).first()

    def get_by_id(self, user_id) -> User | None:
        if user_id is None:
            return None
        return get_user_model().objects.filter(pk=user_id).first()

    def email_for(self, user_id) -> str | None:
        user = self.get_by_id(user_id)
        return user.email if user else None

    def user_id_for(self, email: str):
        user = self.get_by_email(email)
        return user.pk if user else None

    def push_token_for(self, user_id) -> str | None:
        user = self.get_by_id(user_id)
        if user is None or not user.push_token:
            return None
        return user.push_token
