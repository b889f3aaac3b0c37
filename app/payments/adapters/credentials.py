"""
TTL cache for gateway API credentials.

Credentials are read on every gateway call and rotated rarely. The cache
holds a single frozen snapshot; a refresh builds a new snapshot and
rebinds the attribute in one assignment, so readers always see either
the old pair or the new pair, never a mix of the two.

Usage:
    from payments.adapters.credentials import GatewayCredentialCache

    cache = GatewayCredentialCache(loader=load_from_settings, ttl_seconds=300)
    credentials = cache.get()
    session.auth = (credentials.key_id, credentials.key_secret)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayCredentials:
    """API key pair plus the monotonic time it stops being trusted."""

    key_id: str
    key_secret: str
    expires_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def __repr__(self) -> str:
        return f"GatewayCredentials(key_id={self.key_id!r}, key_secret='***')"


def load_credentials_from_settings() -> tuple[str, str]:
    """Default loader: the key pair configured in Django settings."""
    return settings.PAYMENT_GATEWAY_KEY_ID, settings.PAYMENT_GATEWAY_KEY_SECRET


class GatewayCredentialCache:
    """
    Lazily refreshed credential snapshot.

    Reads are lock-free. Refreshes are serialized by a lock so a burst
    of callers hitting an expired snapshot calls the loader once.

    Args:
        loader: Returns (key_id, key_secret)
        ttl_seconds: How long a loaded pair is trusted
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        loader: Callable[[], tuple[str, str]] = load_credentials_from_settings,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._snapshot: GatewayCredentials | None = None

    def get(self) -> GatewayCredentials:
        snapshot = self._snapshot
        if snapshot is not None and not snapshot.is_expired(self._clock()):
            return snapshot

        with self._refresh_lock:
            snapshot = self._snapshot
            if snapshot is not None and not snapshot.is_expired(self._clock()):
                return snapshot
            return self._refresh()

    def invalidate(self) -> None:
        """Drop the snapshot so the next get() reloads, e.g. after a 401."""
        self._snapshot = None

    def _refresh(self) -> GatewayCredentials:
        key_id, key_secret = self._loader()
        snapshot = GatewayCredentials(
            key_id=key_id,
            key_secret=key_secret,
            expires_at=self._clock() + self._ttl_seconds,
        )
        self._snapshot = snapshot
        logger.debug(
            "Gateway credentials refreshed",
            extra={"key_id": key_id, "ttl_seconds": self._ttl_seconds},
        )
        return snapshot
