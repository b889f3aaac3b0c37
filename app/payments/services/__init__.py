"""
Payment services.

This module provides:
- RefundStateMachine: The only writer of refund status
- RefundService: Admin refund initiation, gateway sync and reporting
- FinancialAggregator: Revenue and refund figures
- PaymentService: Verified payment recording and history
- SubscriptionService: Subscription status, history, admin list, analytics
  and cancellation
- ServiceCatalog: Purchasable services and their audit trail

Services take their collaborators in __init__; payments.composition wires
the production instances.

Usage:
    from payments.composition import build_refund_service

    result = build_refund_service().initiate_refund(
        admin_email="admin@example.com",
        payment_id="pay_29QQoUBi66xm2f",
    )
"""

from payments.services.catalog_service import ServiceCatalog
from payments.services.financial_aggregator import (
    FinancialAggregator,
    FinancialMetrics,
    MonthlyRefundData,
    MonthlyRevenueData,
    PageResult,
    RefundMetrics,
)
from payments.services.payment_service import PaymentRecord, PaymentService
from payments.services.refund_service import (
    PaymentRefundSummary,
    RefundInitiation,
    RefundService,
)
from payments.services.refund_state_machine import RefundStateMachine, TransitionOutcome
from payments.services.subscription_service import (
    SubscriptionAnalytics,
    SubscriptionHistory,
    SubscriptionService,
    SubscriptionStatusInfo,
)

__all__ = [
    "FinancialAggregator",
    "FinancialMetrics",
    "MonthlyRefundData",
    "MonthlyRevenueData",
    "PageResult",
    "PaymentRecord",
    "PaymentRefundSummary",
    "PaymentService",
    "RefundInitiation",
    "RefundMetrics",
    "RefundService",
    "RefundStateMachine",
    "ServiceCatalog",
    "SubscriptionAnalytics",
    "SubscriptionHistory",
    "SubscriptionService",
    "SubscriptionStatusInfo",
    "TransitionOutcome",
]
