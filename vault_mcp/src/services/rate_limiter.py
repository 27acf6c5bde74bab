"""Per-client fixed-window rate limiting."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from .config import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class ClientRateRecord:
    """Requests seen from one client in its current window."""

    count: int
    window_reset_at: float


class RateLimiter:
    """
    Fixed-window request counter keyed by client identity.

    A client's first request (or its first request once the window has
    ended) opens a new window with a count of 1. Further requests are allowed
    while the count is below ``max_requests`` and denied, without counting,
    afterwards. Bursts of up to twice the limit are possible across a window
    boundary.

    Records live in memory only. The map holds at most ``max_clients``
    entries; the least recently seen client is dropped first.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        *,
        max_clients: int = 10_000,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._clock = clock or time.monotonic
        self._records: OrderedDict[str, ClientRateRecord] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig) -> "RateLimiter":
        return cls(
            max_requests=config.rate_limit_per_minute,
            window_seconds=config.rate_limit_window_seconds,
            max_clients=config.rate_limit_max_clients,
        )

    def allow(self, client_id: str) -> bool:
        """Count a request from ``client_id`` and report whether it may proceed."""
        with self._lock:
            now = self._clock()
            record = self._records.get(client_id)

            if record is None or now >= record.window_reset_at:
                self._records[client_id] = ClientRateRecord(
                    count=1, window_reset_at=now + self.window_seconds
                )
                self._records.move_to_end(client_id)
                self._evict()
                return True

            self._records.move_to_end(client_id)
            if record.count >= self.max_requests:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": client_id, "count": record.count},
                )
                return False

            record.count += 1
            return True

    def get_record(self, client_id: str) -> Optional[ClientRateRecord]:
        with self._lock:
            record = self._records.get(client_id)
            if record is None:
                return None
            return ClientRateRecord(record.count, record.window_reset_at)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def _evict(self) -> None:
        while len(self._records) > self.max_clients:
            self._records.popitem(last=False)


__all__ = ["RateLimiter", "ClientRateRecord"]
