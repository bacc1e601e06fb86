"""
Per-sender session store.

Each sender gets its own ``threading.Lock``. The registry lock only guards
the lookup tables (sessions and per-sender locks); it is never held while a
caller's function runs, so a slow sender never blocks another.

The store is in-process. Swapping it for an external keyed store with TTL
support leaves the correlation engine unchanged as long as ``with_lock``
keeps its per-sender serialization.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, TypeVar

from importflow import config
from importflow.intake.errors import SessionLockTimeout
from importflow.models.session import SenderSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    In-memory sender sessions with per-sender locking.

    Usage:
        store = SessionStore()
        name = store.with_lock(sender, lambda session: session.customer_name)
        store.sweep_expired(now)
    """

    def __init__(
        self,
        idle_ttl_seconds: float | None = None,
        lock_timeout_seconds: float | None = None,
    ):
        self.idle_ttl = timedelta(
            seconds=idle_ttl_seconds
            if idle_ttl_seconds is not None
            else config.SESSION_IDLE_TTL_SECONDS
        )
        self.lock_timeout = (
            lock_timeout_seconds
            if lock_timeout_seconds is not None
            else config.SESSION_LOCK_TIMEOUT_SECONDS
        )
        self._registry_lock = threading.Lock()
        self._sessions: dict[str, SenderSession] = {}
        self._locks: dict[str, threading.Lock] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    def __contains__(self, sender: str) -> bool:
        with self._registry_lock:
            return sender in self._sessions

    def get_or_create(self, sender: str, now: datetime | None = None) -> SenderSession:
        """
        Return the sender's session, creating it on first use.

        Callers that mutate the session must do so inside ``with_lock``.
        """
        now = now or _utcnow()
        with self._registry_lock:
            session = self._sessions.get(sender)
            if session is None:
                session = SenderSession(sender=sender, last_activity=now)
                self._sessions[sender] = session
            return session

    def _lock_for(self, sender: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(sender)
            if lock is None:
                lock = threading.Lock()
                self._locks[sender] = lock
            return lock

    def _is_current_lock(self, sender: str, lock: threading.Lock) -> bool:
        with self._registry_lock:
            return self._locks.get(sender) is lock

    def with_lock(
        self,
        sender: str,
        fn: Callable[[SenderSession], T],
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> T:
        """
        Run ``fn(session)`` with exclusive access to one sender's session.

        Args:
            sender: Sender identifier
            fn: Function receiving the mutable session
            now: Event time; recorded as the session's last activity
            timeout: Seconds to wait for the lock (defaults to the store's)

        Returns:
            Whatever ``fn`` returns

        Raises:
            SessionLockTimeout: If the lock is not acquired in time
        """
        now = now or _utcnow()
        timeout = self.lock_timeout if timeout is None else timeout

        while True:
            lock = self._lock_for(sender)
            if not lock.acquire(timeout=timeout):
                logger.warning(
                    "Session lock timeout",
                    extra={"json_fields": {"timeout_seconds": timeout}},
                )
                raise SessionLockTimeout(sender, timeout)
            # A sweep may have retired this lock between lookup and acquire
            if self._is_current_lock(sender, lock):
                break
            lock.release()

        try:
            session = self.get_or_create(sender, now)
            session.touch(now)
            return fn(session)
        finally:
            lock.release()

    def sweep_expired(self, now: datetime | None = None) -> int:
        """
        Remove sessions idle for longer than the TTL.

        Busy senders are skipped rather than waited for.

        Returns:
            Number of sessions removed
        """
        now = now or _utcnow()
        with self._registry_lock:
            candidates = [
                sender
                for sender, session in self._sessions.items()
                if now - session.last_activity > self.idle_ttl
            ]

        removed = 0
        for sender in candidates:
            lock = self._lock_for(sender)
            if not lock.acquire(blocking=False):
                continue
            try:
                with self._registry_lock:
                    session = self._sessions.get(sender)
                    if session is None or now - session.last_activity <= self.idle_ttl:
                        continue
                    del self._sessions[sender]
                    del self._locks[sender]
                    removed += 1
            finally:
                lock.release()

        if removed:
            logger.info(f"Swept {removed} idle sender session(s)")
        return removed
