"""
Payment admin configuration.

Ledger rows are read-mostly in the admin. Status changes go through the
service layer (RefundStateMachine, SubscriptionLifecycleJob), never
through admin forms, so FSM fields are read-only here.
"""

from django.contrib import admin

from toolkit.helpers import format_minor_units

from payments.models import (
    Payment,
    Refund,
    ServiceConfig,
    ServiceHistory,
    Subscription,
    SubscriptionNotification,
)

__all__ = [
    "PaymentAdmin",
    "RefundAdmin",
    "ServiceConfigAdmin",
    "ServiceHistoryAdmin",
    "SubscriptionAdmin",
    "SubscriptionNotificationAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Admin configuration for Payment. Payments are immutable."""

    list_display = [
        "transaction_id",
        "user_email",
        "amount_display",
        "status",
        "service_code",
        "created_at",
    ]
    list_filter = ["status", "service_code", "created_at"]
    search_fields = ["transaction_id", "order_id", "user_email"]
    readonly_fields = ["id", "created_at", "updated_at", "verified_at"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return format_minor_units(obj.amount, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(Refund)
class RefundAdmin(admin.ModelAdmin):
    """
    Admin configuration for Refund.

    Provides visibility into refund status and history.
    """

    list_display = [
        "refund_id",
        "payment",
        "amount_display",
        "status",
        "speed_processed",
        "processed_by",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "speed_requested", "speed_processed", "created_at"]
    search_fields = [
        "refund_id",
        "payment__transaction_id",
        "user_email",
        "processed_by",
    ]
    readonly_fields = [
        "id",
        "status",
        "created_at",
        "updated_at",
        "processed_at",
        "failed_at",
        "raw_response",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "refund_id", "payment", "status"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "currency", "speed_requested", "speed_processed"),
            },
        ),
        (
            "Refund Details",
            {
                "fields": ("user_email", "processed_by", "reason", "receipt", "batch_id", "notes"),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": ("processed_at", "failed_at"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("error_code", "error_description"),
                "classes": ("collapse",),
            },
        ),
        (
            "Gateway Payload",
            {
                "fields": ("raw_response",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Refund) -> str:
        return format_minor_units(obj.amount, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for refunds (audit trail)."""
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "service_code",
        "status",
        "end_date",
        "grace_end_date",
    ]
    list_filter = ["status", "service_code"]
    search_fields = ["id", "user__email", "service_code"]
    readonly_fields = ["id", "status", "created_at", "updated_at", "cancelled_at"]
    ordering = ["-created_at"]


@admin.register(SubscriptionNotification)
class SubscriptionNotificationAdmin(admin.ModelAdmin):
    list_display = ["subscription", "kind", "delivered", "sent_at", "created_at"]
    list_filter = ["kind", "delivered"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(ServiceConfig)
class ServiceConfigAdmin(admin.ModelAdmin):
    list_display = ["service_code", "display_name", "status", "amount_display", "duration_days"]
    list_filter = ["status"]
    search_fields = ["service_code", "display_name"]
    readonly_fields = ["id", "created_at", "updated_at"]

    @admin.display(description="Price")
    def amount_display(self, obj: ServiceConfig) -> str:
        return format_minor_units(obj.amount, obj.currency)


@admin.register(ServiceHistory)
class ServiceHistoryAdmin(admin.ModelAdmin):
    """Audit log is append-only."""

    list_display = ["service_code", "change_type", "changed_by", "created_at"]
    list_filter = ["change_type"]
    readonly_fields = ["id", "service", "service_code", "change_type", "changed_by", "changes", "created_at"]

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
