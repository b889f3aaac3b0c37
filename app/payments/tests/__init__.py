"""
Tests for payments app.

This package contains test modules for:
- test_models.py, test_state_transitions.py: Ledger models and FSM transitions
- test_locks.py, test_notifications.py: Distributed locks and notifications
- test_tasks.py: Celery task wrappers
- test_views.py, test_integration.py: API endpoints and full journeys

Subpackages keep their own tests beside the code:
- services/tests/: Refund, payment, subscription and reporting services
- webhooks/tests/: Signature check, ingestion and the webhook view
- workers/tests/: Subscription lifecycle job
- adapters/tests/: Gateway client and credential cache

Shared fixtures live in payments/conftest.py; factories and helpers here.

Usage:
    pytest payments/
    pytest payments/services/tests/test_refund_service.py
"""
