"""
Pytest fixtures shared by payments/tests/ and the services, webhooks,
workers and adapters test packages.

Fixtures provide ledger rows in common states plus test doubles for the
gateway and the notification channel. Services are constructed directly
with these doubles rather than through payments.composition.

Usage:
    def test_refund_completes(refund, state_machine):
        result = state_machine.apply(refund.refund_id, RefundStatus.PROCESSED)
        assert result.data.changed
"""

from unittest.mock import MagicMock

import pytest

from authentication.directory import UserDirectory
from payments.adapters import GatewayClient
from payments.services import RefundStateMachine, SubscriptionService
from payments.state_machines import RefundStatus
from payments.tests.factories import (
    AdminUserFactory,
    PaymentFactory,
    RefundFactory,
    ServiceConfigFactory,
    SubscriptionFactory,
    UserFactory,
)
from payments.tests.helpers import RecordingNotifier


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()


# =============================================================================
# Ledger Rows
# =============================================================================


@pytest.fixture
def service_config(db):
    return ServiceConfigFactory()


@pytest.fixture
def payment(db, user):
    """₹500.00 verified payment."""
    return PaymentFactory(user=user, amount=50000)


@pytest.fixture
def refund(db, payment):
    """INITIATED ₹100.00 refund against payment."""
    return RefundFactory(payment=payment, amount=10000)


@pytest.fixture
def processing_refund(db, payment):
    return RefundFactory(payment=payment, amount=10000, status=RefundStatus.PROCESSING)


@pytest.fixture
def subscription(db, user, payment):
    """ACTIVE subscription bought by payment."""
    return SubscriptionFactory(user=user, source_payment=payment)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway():
    """GatewayClient mock; tests set create_refund/list_refunds behaviour."""
    return MagicMock(spec=GatewayClient)


@pytest.fixture
def state_machine(notifier):
    return RefundStateMachine(notifier=notifier)


@pytest.fixture
def user_directory():
    return UserDirectory()


@pytest.fixture
def subscription_service(user_directory):
    return SubscriptionService(user_directory=user_directory)
