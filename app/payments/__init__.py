"""
Payments app for gateway refund reconciliation.

This app handles:
- Webhook verification and ingestion (refund status events)
- Forward-only refund state transitions with per-record compare-and-swap
- Refund initiation against the gateway
- Subscription expiry, grace windows and renewal reminders
- Revenue and refund reporting, CSV exports

Related apps:
    - authentication: User model and UserDirectory
    - core: ServiceResult, BaseService, exception hierarchy

Usage:
    from payments.composition import build_refund_service

    result = build_refund_service().initiate_refund(
        admin_email="ops@example.com",
        payment_id="pay_29QQoUBi66xm2f",
        amount=25000,
    )
"""
