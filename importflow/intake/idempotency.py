"""
Delivery-id deduplication for carrier redeliveries.

The carrier retries a webhook until it gets a 2xx, and may deliver the same
event twice even after a success. Each delivery id moves through:

    begin() -> IN_FLIGHT -> complete() -> COMPLETED
                         -> fail()     -> FAILED -> begin() -> IN_FLIGHT ...

IN_FLIGHT and COMPLETED ids are duplicates. A FAILED id is admitted again
and hands back the group retained by ``fail`` so the retry assembles the
exact same attachments instead of re-running correlation.

Retention is bounded by a TTL and a maximum entry count. The database's
unique ``orders.delivery_id`` column covers ids that outlive the cache.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any

from importflow import config

logger = logging.getLogger(__name__)


class DeliveryState(StrEnum):
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class _Entry:
    state: DeliveryState
    recorded_at: datetime
    retained: Any = None


@dataclass(frozen=True)
class Claim:
    """Result of ``IdempotencyCache.begin``."""

    accepted: bool
    retained_group: Any = None

    @property
    def is_duplicate(self) -> bool:
        return not self.accepted


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyCache:
    """Bounded in-memory record of processed delivery ids."""

    def __init__(self, ttl_seconds: float | None = None, max_entries: int | None = None):
        self.ttl = timedelta(
            seconds=ttl_seconds if ttl_seconds is not None else config.IDEMPOTENCY_TTL_SECONDS
        )
        self.max_entries = (
            max_entries if max_entries is not None else config.IDEMPOTENCY_MAX_ENTRIES
        )
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def state_of(self, delivery_id: str) -> DeliveryState | None:
        with self._lock:
            entry = self._entries.get(delivery_id)
            return entry.state if entry else None

    def begin(self, delivery_id: str, now: datetime | None = None) -> Claim:
        """
        Claim a delivery id for processing.

        Returns:
            Claim with ``accepted=False`` for duplicates. A re-admitted failed
            delivery carries the group retained by ``fail``.
        """
        now = now or _utcnow()
        with self._lock:
            self._evict(now)
            entry = self._entries.get(delivery_id)

            if entry is not None and entry.state != DeliveryState.FAILED:
                return Claim(accepted=False)

            retained = entry.retained if entry is not None else None
            self._entries[delivery_id] = _Entry(DeliveryState.IN_FLIGHT, now, retained)
            self._entries.move_to_end(delivery_id)
            self._evict_overflow()
            return Claim(accepted=True, retained_group=retained)

    def complete(self, delivery_id: str, now: datetime | None = None) -> None:
        self._record(delivery_id, DeliveryState.COMPLETED, now, retained=None)

    def fail(
        self,
        delivery_id: str,
        retained_group: Any = None,
        now: datetime | None = None,
    ) -> None:
        """Mark a delivery failed so the carrier's retry is admitted."""
        self._record(delivery_id, DeliveryState.FAILED, now, retained=retained_group)

    def _record(
        self,
        delivery_id: str,
        state: DeliveryState,
        now: datetime | None,
        retained: Any,
    ) -> None:
        now = now or _utcnow()
        with self._lock:
            self._entries[delivery_id] = _Entry(state, now, retained)
            self._entries.move_to_end(delivery_id)
            self._evict_overflow()

    def _evict(self, now: datetime) -> None:
        # Entries are kept in recorded_at order, oldest first
        while self._entries:
            oldest_id, oldest = next(iter(self._entries.items()))
            if now - oldest.recorded_at <= self.ttl:
                break
            del self._entries[oldest_id]

    def _evict_overflow(self) -> None:
        while len(self._entries) > self.max_entries:
            evicted_id, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted delivery {evicted_id} from idempotency cache")
