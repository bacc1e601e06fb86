"""
Pairing of customer names with screenshots.

The carrier delivers a "name + screenshots" submission as independent,
possibly reordered events. Each event is decided under its sender's lock:

- text + media: the event's media form one group named by the text; older
  buffered media is abandoned and the name stays active.
- text only: buffered media that arrived within the pairing window is
  claimed by the text; anything older is dropped and reported.
- media only, no active name: media is buffered, waiting for a name.
- media only, active name: the sticky name claims the media at once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Sequence

from importflow import config
from importflow.intake.session_store import SessionStore
from importflow.models.session import BufferedAttachment, SenderSession
from importflow.utils.media import FetchedMedia

logger = logging.getLogger(__name__)


class DecisionKind(StrEnum):
    """What the engine decided for one event"""

    COMMIT = "commit"  # A group is ready for assembly
    BUFFERED = "buffered"  # Media held until a name arrives
    NAME_SET = "name_set"  # Name recorded, nothing to assemble yet
    IGNORED = "ignored"  # Neither text nor media


@dataclass(frozen=True)
class CorrelationDecision:
    kind: DecisionKind
    customer_name: str | None = None
    attachments: tuple[BufferedAttachment, ...] = ()
    # Buffered screenshots discarded because the pairing window passed
    dropped_count: int = 0
    # Fresh buffered screenshots left out because a text + media event
    # named its own group
    abandoned_count: int = 0

    @property
    def should_commit(self) -> bool:
        return self.kind == DecisionKind.COMMIT


class CorrelationEngine:
    """
    Decides, per inbound event, whether to buffer media, record a name or
    release a group of attachments for assembly.

    Usage:
        engine = CorrelationEngine(SessionStore())
        decision = engine.correlate(sender, "Maria Lopez", fetched, received_at)
        if decision.should_commit:
            ...
    """

    def __init__(
        self,
        store: SessionStore,
        pairing_window_seconds: float | None = None,
        sticky_name_ttl_seconds: float | None = config.STICKY_NAME_TTL_SECONDS,
    ):
        self.store = store
        self.pairing_window = timedelta(
            seconds=pairing_window_seconds
            if pairing_window_seconds is not None
            else config.PAIRING_WINDOW_SECONDS
        )
        self.sticky_name_ttl = (
            timedelta(seconds=sticky_name_ttl_seconds)
            if sticky_name_ttl_seconds is not None
            else None
        )

    def correlate(
        self,
        sender: str,
        text: str | None,
        attachments: Sequence[FetchedMedia],
        received_at: datetime,
    ) -> CorrelationDecision:
        """
        Apply one event to the sender's session under its lock.

        Args:
            sender: Sender identifier
            text: Message text (blank is treated as absent)
            attachments: Media already downloaded for this event
            received_at: When the event was received

        Returns:
            CorrelationDecision describing what to do next

        Raises:
            SessionLockTimeout: If the sender's lock is not acquired in time
        """
        return self.store.with_lock(
            sender,
            lambda session: self.decide(session, text, attachments, received_at),
            now=received_at,
        )

    def decide(
        self,
        session: SenderSession,
        text: str | None,
        attachments: Sequence[FetchedMedia],
        received_at: datetime,
    ) -> CorrelationDecision:
        """Mutate ``session`` for one event. Caller must hold the sender's lock."""
        name = (text or "").strip() or None
        incoming = tuple(
            BufferedAttachment(
                content=media.content,
                content_type=media.content_type,
                received_at=received_at,
            )
            for media in attachments
        )

        if name and incoming:
            abandoned = sum(
                1 for item in session.buffer if self._in_window(item, received_at)
            )
            dropped = len(session.buffer) - abandoned + self._take_unreported(session)
            session.buffer.clear()
            session.set_customer_name(name, received_at)
            return CorrelationDecision(
                kind=DecisionKind.COMMIT,
                customer_name=name,
                attachments=incoming,
                dropped_count=dropped,
                abandoned_count=abandoned,
            )

        if name:
            claimed = tuple(
                item for item in session.buffer if self._in_window(item, received_at)
            )
            expired = len(session.buffer) - len(claimed)
            dropped = expired + self._take_unreported(session)
            session.buffer.clear()
            session.set_customer_name(name, received_at)

            if dropped:
                logger.info(
                    f"Dropped {dropped} expired screenshot(s) for text event",
                    extra={"json_fields": {"claimed": len(claimed)}},
                )
            if claimed:
                return CorrelationDecision(
                    kind=DecisionKind.COMMIT,
                    customer_name=name,
                    attachments=claimed,
                    dropped_count=dropped,
                )
            return CorrelationDecision(
                kind=DecisionKind.NAME_SET, customer_name=name, dropped_count=dropped
            )

        if not incoming:
            return CorrelationDecision(kind=DecisionKind.IGNORED)

        active_name = self._active_name(session, received_at)
        if active_name:
            return CorrelationDecision(
                kind=DecisionKind.COMMIT,
                customer_name=active_name,
                attachments=incoming,
            )

        fresh = [item for item in session.buffer if self._in_window(item, received_at)]
        session.unreported_drops += len(session.buffer) - len(fresh)
        session.buffer[:] = fresh
        session.buffer.extend(incoming)
        return CorrelationDecision(kind=DecisionKind.BUFFERED)

    def _in_window(self, item: BufferedAttachment, now: datetime) -> bool:
        return now - item.received_at <= self.pairing_window

    def _active_name(self, session: SenderSession, now: datetime) -> str | None:
        if not session.customer_name:
            return None
        if self.sticky_name_ttl is not None and session.customer_name_set_at is not None:
            if now - session.customer_name_set_at > self.sticky_name_ttl:
                session.customer_name = None
                session.customer_name_set_at = None
                return None
        return session.customer_name

    @staticmethod
    def _take_unreported(session: SenderSession) -> int:
        count = session.unreported_drops
        session.unreported_drops = 0
        return count
