"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's conftest.py.

Tests run against the DATABASE_URL default (SQLite) unless a Postgres URL
is exported.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Local-memory cache so tests never need Redis
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }

    settings.PAYMENT_GATEWAY_WEBHOOK_SECRET = "whsec_test"
    settings.PAYMENT_GATEWAY_KEY_ID = "rzp_test_key"
    settings.PAYMENT_GATEWAY_KEY_SECRET = "rzp_test_secret"
    settings.REFUND_SUBSCRIPTION_CANCEL_RETRY_DELAY_SECONDS = 0


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full refund and subscription journeys)
    - test_views.py, *_service.py tests, test_tasks.py, etc. → integration
    - test_models.py, test_signature.py, test_helpers.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_tasks.py",
        "test_ingestor.py",
        "test_refund_service.py",
        "test_payment_service.py",
        "test_subscription_service.py",
        "test_catalog_service.py",
        "test_financial_aggregator.py",
        "test_subscription_lifecycle.py",
        "test_refund_state_machine.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_exceptions.py",
        "test_services.py",
        "test_helpers.py",
        "test_signature.py",
        "test_gateway_adapter.py",
        "test_credentials.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_email.py",
        "test_notifications.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
