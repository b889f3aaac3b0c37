import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("transaction_id", models.CharField(help_text="Gateway payment ID (pay_xxx)", max_length=255, unique=True)),
                ("order_id", models.CharField(blank=True, db_index=True, default="", help_text="Gateway order ID (order_xxx)", max_length=255)),
                ("user_email", models.EmailField(db_index=True, help_text="Payer email at time of payment", max_length=254)),
                ("amount", models.PositiveBigIntegerField(help_text="Charged amount in minor units (paise)")),
                ("currency", models.CharField(default="INR", help_text="ISO 4217 currency code", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[("verified", "Verified"), ("failed", "Failed")],
                        db_index=True,
                        default="verified",
                        help_text="Verification status of the charge",
                        max_length=20,
                    ),
                ),
                ("service_code", models.CharField(blank=True, db_index=True, default="", help_text="Catalog service that was purchased", max_length=100)),
                ("receipt", models.CharField(blank=True, default="", help_text="Merchant receipt reference", max_length=255)),
                ("notes", models.JSONField(blank=True, default=dict, help_text="Gateway notes passthrough")),
                ("verified_at", models.DateTimeField(blank=True, help_text="When the checkout signature was verified", null=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who paid",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["status", "created_at"], name="payments_pa_status_8c1f0e_idx")],
                "constraints": [models.CheckConstraint(condition=models.Q(amount__gt=0), name="payment_amount_positive")],
            },
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("refund_id", models.CharField(help_text="Gateway refund ID (rfnd_xxx)", max_length=255, unique=True)),
                ("amount", models.PositiveBigIntegerField(help_text="Refund amount in minor units (paise)")),
                ("currency", models.CharField(default="INR", help_text="ISO 4217 currency code", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="initiated",
                        help_text="Current refund status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "speed_requested",
                    models.CharField(
                        choices=[("optimum", "Optimum"), ("normal", "Normal"), ("instant", "Instant")],
                        default="optimum",
                        help_text="Speed requested from the gateway",
                        max_length=20,
                    ),
                ),
                (
                    "speed_processed",
                    models.CharField(
                        blank=True,
                        choices=[("optimum", "Optimum"), ("normal", "Normal"), ("instant", "Instant")],
                        help_text="Speed the gateway actually used",
                        max_length=20,
                        null=True,
                    ),
                ),
                ("user_email", models.EmailField(blank=True, db_index=True, default="", help_text="Email of the refunded user", max_length=254)),
                ("processed_by", models.CharField(default="system", help_text="Admin email that initiated the refund, or 'system'", max_length=255)),
                ("reason", models.TextField(blank=True, default="", help_text="Reason for the refund")),
                ("notes", models.JSONField(blank=True, default=dict, help_text="Notes sent to the gateway")),
                ("receipt", models.CharField(blank=True, default="", help_text="Merchant receipt reference", max_length=255)),
                ("batch_id", models.CharField(blank=True, default="", help_text="Gateway batch ID for instant refunds", max_length=255)),
                ("processed_at", models.DateTimeField(blank=True, db_index=True, help_text="When the gateway completed the refund", null=True)),
                ("failed_at", models.DateTimeField(blank=True, help_text="When the gateway reported failure", null=True)),
                ("error_code", models.CharField(blank=True, default="", help_text="Gateway error code if failed", max_length=100)),
                ("error_description", models.TextField(blank=True, default="", help_text="Gateway error description if failed")),
                ("raw_response", models.JSONField(blank=True, default=dict, help_text="Last gateway payload for this refund")),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Payment being refunded",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Refund",
                "verbose_name_plural": "Refunds",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payment", "status"], name="payments_re_payment_3d7a2b_idx"),
                    models.Index(fields=["status", "processed_at"], name="payments_re_status_5e9c41_idx"),
                ],
                "constraints": [models.CheckConstraint(condition=models.Q(amount__gt=0), name="refund_amount_positive")],
            },
        ),
        migrations.CreateModel(
            name="ServiceConfig",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("service_code", models.CharField(help_text="Stable service identifier", max_length=100, unique=True)),
                ("display_name", models.CharField(help_text="User-facing name", max_length=255)),
                ("description", models.TextField(blank=True, default="", help_text="User-facing description")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive"), ("archived", "Archived")],
                        db_index=True,
                        default="active",
                        help_text="Availability of the service",
                        max_length=20,
                    ),
                ),
                ("amount", models.PositiveBigIntegerField(help_text="Price in minor units (paise)")),
                ("currency", models.CharField(default="INR", help_text="ISO 4217 currency code", max_length=3)),
                ("duration_days", models.PositiveIntegerField(default=30, help_text="Days of premium access granted per purchase")),
                ("updated_by", models.CharField(blank=True, default="", help_text="Admin email of the last editor", max_length=255)),
            ],
            options={
                "verbose_name": "Service Config",
                "verbose_name_plural": "Service Configs",
                "ordering": ["service_code"],
            },
        ),
        migrations.CreateModel(
            name="ServiceHistory",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("service_code", models.CharField(db_index=True, help_text="Service code at time of change", max_length=100)),
                (
                    "change_type",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("updated", "Updated"),
                            ("status_changed", "Status Changed"),
                            ("archived", "Archived"),
                        ],
                        help_text="Kind of change",
                        max_length=20,
                    ),
                ),
                ("changed_by", models.CharField(help_text="Admin email that made the change", max_length=255)),
                ("changes", models.JSONField(blank=True, default=dict, help_text="Field-level old/new values")),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Service that changed",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="payments.serviceconfig",
                    ),
                ),
            ],
            options={
                "verbose_name": "Service History",
                "verbose_name_plural": "Service History",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("service_code", models.CharField(db_index=True, help_text="Catalog service granting access", max_length=100)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("active", "Active"),
                            ("grace", "Grace Period"),
                            ("expired", "Expired"),
                            ("grace_expired", "Grace Period Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="active",
                        help_text="Current subscription status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("start_date", models.DateTimeField(help_text="Start of premium access")),
                ("end_date", models.DateTimeField(db_index=True, help_text="End of premium access")),
                ("grace_end_date", models.DateTimeField(blank=True, db_index=True, help_text="End of the grace window after end_date", null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, help_text="When the subscription was cancelled", null=True)),
                (
                    "source_payment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment that bought this subscription",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="subscriptions",
                        to="payments.payment",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Subscribed user",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="payments_su_user_id_4b2e8d_idx"),
                    models.Index(fields=["status", "end_date"], name="payments_su_status_a17c3f_idx"),
                    models.Index(fields=["status", "grace_end_date"], name="payments_su_status_e60b92_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionNotification",
            fields=[
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("expiry_warning_3_days", "Expires in 3 days"),
                            ("expiry_warning_1_day", "Expires in 1 day"),
                            ("subscription_expired", "Subscription expired"),
                        ],
                        help_text="Which lifecycle notice",
                        max_length=40,
                    ),
                ),
                ("delivered", models.BooleanField(default=False, help_text="Whether the sender accepted the notice")),
                ("sent_at", models.DateTimeField(blank=True, help_text="When the sender accepted the notice", null=True)),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Subscription the notice is about",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="payments.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription Notification",
                "verbose_name_plural": "Subscription Notifications",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("subscription", "kind"),
                        name="unique_subscription_notification_kind",
                    )
                ],
            },
        ),
    ]
