"""
Inbound event dispatch.

Runs the blocking intake pipeline for one carrier event, in a worker thread:

1. Claim the delivery id in the idempotency cache (duplicates stop here)
2. Resolve the sender to a registered user (unknown senders get a
   rate-limited notice)
3. Answer slash commands
4. Download every media reference before correlation, outside any lock
5. Correlate under the sender's lock
6. Assemble the released group outside the lock
7. Send exactly one reply, or none while screenshots wait for a name

A failure after a group was released records the group with the delivery
id, so the carrier's retry assembles the same screenshots again.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from importflow import config
from importflow.api.responder import Responder
from importflow.db.unit_of_work import UnitOfWork
from importflow.intake import replies
from importflow.intake.assembler import AttachmentGroup, OrderAssembler
from importflow.intake.commands import CommandHandler
from importflow.intake.correlation import CorrelationEngine, DecisionKind
from importflow.intake.errors import MediaFetchError, PersistenceError, SessionLockTimeout
from importflow.intake.idempotency import DeliveryState, IdempotencyCache
from importflow.intake.session_store import SessionStore
from importflow.models.order import Order
from importflow.models.user import RegisteredUser
from importflow.models.webhook import InboundEvent
from importflow.utils.logging import mask_phone
from importflow.utils.media import FetchedMedia, MediaFetcher

logger = logging.getLogger(__name__)


class DispatchStatus(StrEnum):
    """Outcome of one inbound event"""

    COMMITTED = "committed"  # Order created (or found for a retried group)
    BUFFERED = "buffered"  # Screenshots waiting for a customer name
    NAME_SET = "name_set"  # Customer name recorded
    COMMAND = "command"  # Slash command answered
    DUPLICATE = "duplicate"  # Delivery already processed or in flight
    UNREGISTERED = "unregistered"  # Sender not linked to a user
    FETCH_FAILED = "fetch_failed"  # Media could not be downloaded
    BUSY = "busy"  # Sender lock timed out
    IGNORED = "ignored"  # Neither text nor media


@dataclass
class DispatchResult:
    status: DispatchStatus
    order: Order | None = None
    reply: str | None = None


class IntakeDispatcher:
    """
    Wires the intake components together for one process.

    Usage:
        dispatcher = IntakeDispatcher()
        result = dispatcher.handle(event)
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        engine: CorrelationEngine | None = None,
        fetcher: MediaFetcher | None = None,
        assembler: OrderAssembler | None = None,
        responder: Responder | None = None,
        idempotency: IdempotencyCache | None = None,
        commands: CommandHandler | None = None,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        sweep_interval_seconds: float | None = None,
        unknown_sender_cooldown_seconds: float | None = None,
    ):
        self.store = store if store is not None else SessionStore()
        self.engine = engine or CorrelationEngine(self.store)
        self.fetcher = fetcher or MediaFetcher()
        self.assembler = assembler or OrderAssembler(uow_factory=uow_factory)
        self.responder = responder or Responder()
        self.idempotency = idempotency if idempotency is not None else IdempotencyCache()
        self.commands = commands or CommandHandler(uow_factory=uow_factory)
        self._uow_factory = uow_factory
        self.sweep_interval = timedelta(
            seconds=sweep_interval_seconds
            if sweep_interval_seconds is not None
            else config.SESSION_SWEEP_INTERVAL_SECONDS
        )
        self.unknown_sender_cooldown = timedelta(
            seconds=unknown_sender_cooldown_seconds
            if unknown_sender_cooldown_seconds is not None
            else config.UNKNOWN_SENDER_COOLDOWN_SECONDS
        )
        self._sweep_lock = threading.Lock()
        self._last_sweep: datetime | None = None

    def handle(self, event: InboundEvent) -> DispatchResult:
        """
        Process one carrier event exactly once.

        Returns:
            DispatchResult; DUPLICATE when the delivery was already claimed

        Raises:
            PersistenceError: Storage or database failure. The delivery is
                marked failed so the carrier's retry is processed.
        """
        claim = self.idempotency.begin(event.delivery_id, event.received_at)
        if claim.is_duplicate:
            logger.info(f"Duplicate delivery {event.delivery_id} ignored")
            return DispatchResult(status=DispatchStatus.DUPLICATE)

        self._maybe_sweep(event.received_at)

        try:
            if claim.retained_group is not None:
                logger.info(f"Re-assembling retained group for delivery {event.delivery_id}")
                result = self._assemble(claim.retained_group)
            else:
                result = self._dispatch(event)
        except Exception:
            # _assemble records the group itself; anything earlier has none
            if self.idempotency.state_of(event.delivery_id) == DeliveryState.IN_FLIGHT:
                self.idempotency.fail(event.delivery_id)
            raise

        self.idempotency.complete(event.delivery_id)
        if result.reply:
            self.responder.send(event.sender, result.reply)
        return result

    def _dispatch(self, event: InboundEvent) -> DispatchResult:
        user = self._find_sender(event.sender)
        if user is None:
            return self._reject_unknown_sender(event)

        if event.is_command:
            return self._run_command(event, user)

        try:
            fetched = [self.fetcher.fetch(media) for media in event.media]
        except MediaFetchError as e:
            logger.warning(
                f"Media download failed for {mask_phone(event.sender)}: {e.reason}",
                extra={"json_fields": {"delivery_id": event.delivery_id}},
            )
            return DispatchResult(
                status=DispatchStatus.FETCH_FAILED, reply=replies.media_fetch_failed()
            )

        return self._correlate(event, user, fetched)

    def _correlate(
        self,
        event: InboundEvent,
        user: RegisteredUser,
        fetched: list[FetchedMedia],
    ) -> DispatchResult:
        try:
            decision = self.engine.correlate(
                event.sender, event.text, fetched, event.received_at
            )
        except SessionLockTimeout:
            return DispatchResult(status=DispatchStatus.BUSY, reply=replies.retry_later())

        logger.info(
            f"Correlated event from {mask_phone(event.sender)}: {decision.kind.value}",
            extra={
                "json_fields": {
                    "delivery_id": event.delivery_id,
                    "attachments": len(decision.attachments),
                    "dropped": decision.dropped_count,
                    "abandoned": decision.abandoned_count,
                }
            },
        )

        if decision.kind == DecisionKind.BUFFERED:
            return DispatchResult(status=DispatchStatus.BUFFERED)
        if decision.kind == DecisionKind.NAME_SET:
            return DispatchResult(
                status=DispatchStatus.NAME_SET,
                reply=replies.name_set(decision.customer_name, decision.dropped_count),
            )
        if decision.kind == DecisionKind.IGNORED:
            return DispatchResult(status=DispatchStatus.IGNORED, reply=replies.usage_hint())

        group = AttachmentGroup(
            delivery_id=event.delivery_id,
            sender=event.sender,
            organization_id=user.organization_id,
            customer_name=decision.customer_name,
            attachments=decision.attachments,
            uploaded_by=user.id,
        )
        return self._assemble(
            group, dropped=decision.dropped_count, abandoned=decision.abandoned_count
        )

    def _assemble(
        self, group: AttachmentGroup, dropped: int = 0, abandoned: int = 0
    ) -> DispatchResult:
        try:
            order = self.assembler.assemble(group)
        except Exception:
            self.idempotency.fail(group.delivery_id, group)
            raise
        return DispatchResult(
            status=DispatchStatus.COMMITTED,
            order=order,
            reply=replies.order_created(order, dropped, abandoned),
        )

    def _find_sender(self, sender: str) -> RegisteredUser | None:
        try:
            with self._uow_factory() as uow:
                return uow.users.find_by_whatsapp_phone(sender)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Sender lookup failed: {e}") from e

    def _reject_unknown_sender(self, event: InboundEvent) -> DispatchResult:
        now = event.received_at

        def should_notify(session) -> bool:
            last = session.last_error_notice_at
            if last is not None and now - last < self.unknown_sender_cooldown:
                return False
            session.last_error_notice_at = now
            return True

        try:
            notify = self.store.with_lock(event.sender, should_notify, now=now)
        except SessionLockTimeout:
            notify = False

        logger.warning(
            f"Message from unregistered sender {mask_phone(event.sender)}",
            extra={"json_fields": {"notified": notify}},
        )
        return DispatchResult(
            status=DispatchStatus.UNREGISTERED,
            reply=replies.not_registered() if notify else None,
        )

    def _run_command(self, event: InboundEvent, user: RegisteredUser) -> DispatchResult:
        try:
            reply = self.commands.handle(event.text, user)
        except SQLAlchemyError as e:
            logger.error(f"Command {event.text!r} failed: {e}")
            reply = replies.processing_failed()
        return DispatchResult(status=DispatchStatus.COMMAND, reply=reply)

    def _maybe_sweep(self, now: datetime) -> None:
        if not self._sweep_lock.acquire(blocking=False):
            return
        try:
            if self._last_sweep is not None and now - self._last_sweep < self.sweep_interval:
                return
            self._last_sweep = now
        finally:
            self._sweep_lock.release()
        self.store.sweep_expired(now)
