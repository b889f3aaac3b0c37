"""
Construction of the payments object graph.

Every collaborator is built here from settings and passed in through
constructors. Views, tasks and management code call the build_* functions;
tests construct services directly with doubles instead.

Usage:
    from payments.composition import build_refund_service

    service = build_refund_service()
    result = service.initiate_refund(admin_email, payment_id)
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from django.conf import settings

from authentication.directory import UserDirectory
from toolkit.services import EmailService

from payments.adapters import GatewayClient, GatewayCredentialCache, load_credentials_from_settings
from payments.locks import DistributedLock
from payments.notifications import EmailNotificationSender
from payments.services.catalog_service import ServiceCatalog
from payments.services.financial_aggregator import FinancialAggregator
from payments.services.payment_service import PaymentService
from payments.services.refund_service import RefundService
from payments.services.refund_state_machine import RefundStateMachine
from payments.services.subscription_service import SubscriptionService
from payments.tasks import schedule_refund_sync
from payments.webhooks.ingestor import WebhookIngestor
from payments.workers.subscription_lifecycle import SubscriptionLifecycleJob


@lru_cache(maxsize=1)
def build_credential_cache() -> GatewayCredentialCache:
    """One cache per process so the snapshot is shared by every client."""
    return GatewayCredentialCache(
        loader=load_credentials_from_settings,
        ttl_seconds=settings.PAYMENT_GATEWAY_CREDENTIAL_TTL_SECONDS,
    )


def build_gateway_client() -> GatewayClient:
    return GatewayClient(
        base_url=settings.PAYMENT_GATEWAY_BASE_URL,
        credentials=build_credential_cache(),
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )


def build_user_directory() -> UserDirectory:
    return UserDirectory()


def build_notifier() -> EmailNotificationSender:
    return EmailNotificationSender(EmailService(), build_user_directory())


def build_state_machine() -> RefundStateMachine:
    return RefundStateMachine(notifier=build_notifier())


def build_subscription_service() -> SubscriptionService:
    return SubscriptionService(
        user_directory=build_user_directory(),
        aggregator=build_financial_aggregator(),
    )


def build_refund_service() -> RefundService:
    return RefundService(
        gateway=build_gateway_client(),
        state_machine=build_state_machine(),
        notifier=build_notifier(),
        subscriptions=build_subscription_service(),
        aggregator=build_financial_aggregator(),
        cancel_attempts=settings.REFUND_SUBSCRIPTION_CANCEL_ATTEMPTS,
        cancel_retry_delay=settings.REFUND_SUBSCRIPTION_CANCEL_RETRY_DELAY_SECONDS,
        export_max_rows=settings.REFUND_EXPORT_MAX_ROWS,
        sync_scheduler=schedule_refund_sync,
    )


def build_payment_service() -> PaymentService:
    return PaymentService(
        signing_secret=settings.PAYMENT_GATEWAY_KEY_SECRET,
        user_directory=build_user_directory(),
        catalog=ServiceCatalog(),
        export_max_rows=settings.REFUND_EXPORT_MAX_ROWS,
    )


def build_financial_aggregator() -> FinancialAggregator:
    return FinancialAggregator(user_directory=build_user_directory())


def build_webhook_ingestor() -> WebhookIngestor:
    return WebhookIngestor(
        secret=settings.PAYMENT_GATEWAY_WEBHOOK_SECRET,
        state_machine=build_state_machine(),
    )


def build_lifecycle_job() -> SubscriptionLifecycleJob:
    return SubscriptionLifecycleJob(
        notifier=build_notifier(),
        user_directory=build_user_directory(),
        lock_factory=DistributedLock,
        grace_period=timedelta(hours=settings.SUBSCRIPTION_GRACE_PERIOD_HOURS),
        lock_ttl=settings.SUBSCRIPTION_LIFECYCLE_LOCK_TTL_SECONDS,
    )
