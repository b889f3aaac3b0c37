"""
Tests for ServiceCatalog.
"""

import pytest

from payments.models import ServiceConfig, ServiceHistory
from payments.services import ServiceCatalog
from payments.state_machines import ServiceChangeType, ServiceStatus
from payments.tests.factories import ServiceConfigFactory


@pytest.fixture
def catalog():
    return ServiceCatalog()


@pytest.mark.django_db
class TestGetActiveService:
    def test_returns_active_service(self, catalog, service_config):
        result = catalog.get_active_service("PREMIUM_MONTHLY")

        assert result.success
        assert result.data == service_config

    def test_missing_service(self, catalog):
        result = catalog.get_active_service("NOPE")

        assert not result.success
        assert result.error_code == "NOT_FOUND"

    @pytest.mark.parametrize("status", [ServiceStatus.INACTIVE, ServiceStatus.ARCHIVED])
    def test_unavailable_service(self, catalog, status):
        ServiceConfigFactory(status=status)

        assert catalog.get_active_service("PREMIUM_MONTHLY").error_code == "NOT_FOUND"


@pytest.mark.django_db
class TestCreateService:
    def test_creates_service_with_history(self, catalog):
        result = catalog.create_service(
            "PREMIUM_YEARLY",
            "admin@example.com",
            display_name="Premium Yearly",
            amount=499900,
            duration_days=365,
        )

        assert result.success
        service = result.data
        assert service.updated_by == "admin@example.com"
        entry = ServiceHistory.objects.get(service=service)
        assert entry.change_type == ServiceChangeType.CREATED
        assert entry.changes["amount"] == {"old": None, "new": 499900}

    def test_duplicate_code_conflicts(self, catalog, service_config):
        result = catalog.create_service("PREMIUM_MONTHLY", "admin@example.com", display_name="x", amount=1)

        assert result.error_code == "CONFLICT"
        assert not ServiceHistory.objects.exists()

    def test_unknown_field_rejected(self, catalog):
        result = catalog.create_service("X", "admin@example.com", amount=1, colour="red")

        assert result.error_code == "VALIDATION_ERROR"
        assert result.details["fields"] == ["colour"]
        assert not ServiceConfig.objects.filter(service_code="X").exists()


@pytest.mark.django_db
class TestUpdateService:
    def test_price_change_records_diff(self, catalog, service_config):
        result = catalog.update_service("PREMIUM_MONTHLY", "admin@example.com", amount=59900)

        assert result.success
        service_config.refresh_from_db()
        assert service_config.amount == 59900
        assert service_config.updated_by == "admin@example.com"
        entry = service_config.history.get()
        assert entry.change_type == ServiceChangeType.UPDATED
        assert entry.changes == {"amount": {"old": 49900, "new": 59900}}

    def test_status_only_change(self, catalog, service_config):
        catalog.update_service("PREMIUM_MONTHLY", "admin@example.com", status=ServiceStatus.INACTIVE)

        assert service_config.history.get().change_type == ServiceChangeType.STATUS_CHANGED

    def test_archive(self, catalog, service_config):
        catalog.update_service("PREMIUM_MONTHLY", "admin@example.com", status=ServiceStatus.ARCHIVED)

        assert service_config.history.get().change_type == ServiceChangeType.ARCHIVED
        assert catalog.get_active_service("PREMIUM_MONTHLY").error_code == "NOT_FOUND"

    def test_unchanged_fields_are_not_recorded(self, catalog, service_config):
        catalog.update_service(
            "PREMIUM_MONTHLY",
            "admin@example.com",
            amount=service_config.amount,
            display_name="Premium (monthly)",
        )

        entry = service_config.history.get()
        assert set(entry.changes) == {"display_name"}

    def test_noop_update_writes_no_history(self, catalog, service_config):
        result = catalog.update_service("PREMIUM_MONTHLY", "admin@example.com", amount=service_config.amount)

        assert result.success
        assert not service_config.history.exists()

    def test_missing_service(self, catalog):
        assert catalog.update_service("NOPE", "admin@example.com", amount=100).error_code == "NOT_FOUND"

    @pytest.mark.parametrize(
        "changes",
        [
            {"status": "deleted"},
            {"amount": 0},
            {"amount": "100"},
            {"service_code": "RENAMED"},
        ],
    )
    def test_invalid_changes(self, catalog, service_config, changes):
        result = catalog.update_service("PREMIUM_MONTHLY", "admin@example.com", **changes)

        assert result.error_code == "VALIDATION_ERROR"
        assert not service_config.history.exists()
