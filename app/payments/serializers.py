"""
DRF serializers for payments app.

This module provides serializers for:
- Refund, payment and subscription display
- Subscription history, admin list and analytics
- Refund initiation and admin cancellation requests
- Refund summaries and financial metrics

Related files:
    - models/: Payment, Refund, Subscription
    - services/: Result types serialized here
    - views.py: Payment API views

Usage:
    serializer = RefundSerializer(refund)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, Refund, Subscription
from payments.state_machines import RefundSpeed


# =============================================================================
# Models
# =============================================================================


class RefundSerializer(serializers.ModelSerializer):
    """Read-only serializer for Refund."""

    payment_id = serializers.CharField(
        source="payment.transaction_id",
        read_only=True,
        help_text="Gateway payment ID",
    )

    class Meta:
        model = Refund
        fields = [
            "refund_id",
            "payment_id",
            "amount",
            "currency",
            "status",
            "speed_requested",
            "speed_processed",
            "user_email",
            "processed_by",
            "reason",
            "notes",
            "receipt",
            "processed_at",
            "failed_at",
            "error_code",
            "error_description",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Read-only serializer for Payment."""

    class Meta:
        model = Payment
        fields = [
            "transaction_id",
            "order_id",
            "user_email",
            "amount",
            "currency",
            "status",
            "service_code",
            "receipt",
            "verified_at",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """Read-only serializer for Subscription."""

    class Meta:
        model = Subscription
        fields = [
            "id",
            "service_code",
            "status",
            "start_date",
            "end_date",
            "grace_end_date",
            "cancelled_at",
        ]
        read_only_fields = fields



class AdminSubscriptionSerializer(serializers.ModelSerializer):
    """Subscription row for the admin list, with user and payment details."""

    user_id = serializers.CharField(source="user.pk", read_only=True)
    user_email = serializers.EmailField(source="user.email", read_only=True)
    days_remaining = serializers.SerializerMethodField()
    payment_id = serializers.CharField(
        source="source_payment.transaction_id",
        read_only=True,
        default=None,
        help_text="Gateway payment id that paid for this subscription",
    )
    amount = serializers.IntegerField(
        source="source_payment.amount",
        read_only=True,
        default=None,
        help_text="Amount paid in paise",
    )
    currency = serializers.CharField(source="source_payment.currency", read_only=True, default=None)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "user_id",
            "user_email",
            "service_code",
            "status",
            "start_date",
            "end_date",
            "days_remaining",
            "payment_id",
            "amount",
            "currency",
            "created_at",
        ]
        read_only_fields = fields

    def get_days_remaining(self, obj) -> int:
        return obj.days_remaining() if obj.has_access else 0


# =============================================================================
# Requests
# =============================================================================


class InitiateRefundSerializer(serializers.Serializer):
    """
    Refund initiation request.

    Omitting amount refunds everything that is still refundable.
    """

    amount = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        help_text="Amount in paise; defaults to the remaining refundable amount",
    )
    speed = serializers.ChoiceField(
        choices=[RefundSpeed.OPTIMUM, RefundSpeed.NORMAL],
        default=RefundSpeed.OPTIMUM,
        help_text="Gateway refund speed",
    )
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=500,
        help_text="Why the refund is being issued",
    )
    notes = serializers.DictField(
        required=False,
        child=serializers.CharField(max_length=256),
        help_text="Key/value notes forwarded to the gateway",
    )
    receipt = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=40,
        help_text="Merchant receipt reference",
    )


class VerifyPaymentSerializer(serializers.Serializer):
    """Checkout confirmation sent by the client after the gateway checkout."""

    order_id = serializers.CharField(max_length=255, help_text="Gateway order ID")
    payment_id = serializers.CharField(max_length=255, help_text="Gateway payment ID")
    signature = serializers.CharField(max_length=255, help_text="Checkout signature")
    service_code = serializers.CharField(max_length=100, help_text="Purchased service")
    amount = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Amount charged in paise, checked against the service price",
    )


class CancelSubscriptionSerializer(serializers.Serializer):
    user_email = serializers.EmailField(help_text="Email of the user whose subscription is cancelled")


# =============================================================================
# Responses
# =============================================================================


class RefundInitiationSerializer(serializers.Serializer):
    refund = RefundSerializer()
    notification_sent = serializers.BooleanField()
    subscription_cancelled = serializers.BooleanField()


class PaymentRefundSummarySerializer(serializers.Serializer):
    payment_id = serializers.CharField()
    original_amount = serializers.IntegerField()
    currency = serializers.CharField()
    total_refunded = serializers.IntegerField()
    remaining_refundable = serializers.IntegerField()
    is_fully_refunded = serializers.BooleanField()
    refunds = RefundSerializer(many=True)
    synced = serializers.BooleanField(help_text="False when the gateway could not be reached")


class PaymentRecordSerializer(serializers.Serializer):
    payment = PaymentSerializer()
    subscription = SubscriptionSerializer(allow_null=True)
    created = serializers.BooleanField()


class SubscriptionStatusSerializer(serializers.Serializer):
    subscription = SubscriptionSerializer(allow_null=True)
    status = serializers.CharField(allow_null=True)
    has_access = serializers.BooleanField()
    days_remaining = serializers.IntegerField()


class SubscriptionHistorySerializer(serializers.Serializer):
    subscriptions = SubscriptionSerializer(many=True)
    total_count = serializers.IntegerField()


class RecentSubscriptionSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True)
    amount = serializers.IntegerField(source="source_payment.amount", read_only=True, default=None)

    class Meta:
        model = Subscription
        fields = ["id", "user_email", "service_code", "status", "start_date", "amount"]
        read_only_fields = fields


class SubscriptionAnalyticsSerializer(serializers.Serializer):
    total_active = serializers.IntegerField()
    total_grace = serializers.IntegerField()
    total_expired = serializers.IntegerField(help_text="Expired, with or without a grace period")
    total_cancelled = serializers.IntegerField()
    total_revenue = serializers.IntegerField(help_text="Verified payments in paise")
    average_subscription_days = serializers.FloatField()
    recent_subscriptions = RecentSubscriptionSerializer(many=True)


class MonthlyRefundDataSerializer(serializers.Serializer):
    month = serializers.CharField(help_text="YYYY-MM")
    refund_amount = serializers.IntegerField()
    refund_count = serializers.IntegerField()


class MonthlyRevenueDataSerializer(serializers.Serializer):
    month = serializers.CharField(help_text="YYYY-MM")
    revenue = serializers.IntegerField()
    payment_count = serializers.IntegerField()


class RefundMetricsSerializer(serializers.Serializer):
    total_refunded = serializers.IntegerField()
    monthly_refunded = serializers.IntegerField()
    refund_rate = serializers.FloatField(help_text="Refunded share of revenue, percent")
    total_refund_count = serializers.IntegerField()
    monthly_refund_count = serializers.IntegerField()
    instant_refund_count = serializers.IntegerField()
    normal_refund_count = serializers.IntegerField()
    average_processing_time_hours = serializers.FloatField()
    monthly_chart = MonthlyRefundDataSerializer(many=True)


class FinancialMetricsSerializer(serializers.Serializer):
    total_revenue = serializers.IntegerField()
    monthly_revenue = serializers.IntegerField()
    payment_count = serializers.IntegerField()
    total_refunded = serializers.IntegerField()
    monthly_refunded = serializers.IntegerField()
    refund_rate = serializers.FloatField()
    net_revenue = serializers.IntegerField()
    monthly_revenue_chart = MonthlyRevenueDataSerializer(many=True)
    monthly_refund_chart = MonthlyRefundDataSerializer(many=True)
