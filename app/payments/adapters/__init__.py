"""
Payment adapters for external services.

All gateway API calls go through these adapters to ensure consistent
timeouts, error translation and observability.

Usage:
    from payments.adapters import GatewayClient, GatewayCredentialCache

    client = GatewayClient(
        base_url=settings.PAYMENT_GATEWAY_BASE_URL,
        credentials=GatewayCredentialCache(ttl_seconds=300),
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )
    refunds = client.list_refunds("pay_29QQoUBi66xm2f")
"""

from payments.adapters.credentials import (
    GatewayCredentialCache,
    GatewayCredentials,
    load_credentials_from_settings,
)
from payments.adapters.gateway_adapter import (
    GATEWAY_STATUS_MAP,
    GatewayClient,
    GatewayRefund,
    normalize_entity,
    parse_gateway_error,
)

__all__ = [
    "GATEWAY_STATUS_MAP",
    "GatewayClient",
    "GatewayCredentialCache",
    "GatewayCredentials",
    "GatewayRefund",
    "load_credentials_from_settings",
    "normalize_entity",
    "parse_gateway_error",
]
