"""
Order assembly.

Turns a correlated group of screenshots into one persisted Order:
extraction, duty, screenshot upload, package number and insert. Runs
outside the sender's lock.

A group is identified by the delivery id of the event that committed it.
The ``orders.delivery_id`` unique column makes assembly idempotent: a
retried group whose order already exists returns that order.
"""

import logging
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from importflow.agents.screenshot_extractor import ScreenshotExtractor
from importflow.db.unit_of_work import UnitOfWork
from importflow.intake.errors import PersistenceError
from importflow.intake.sequencer import PackageSequencer
from importflow.models.order import Order, OrderStatus
from importflow.models.session import BufferedAttachment
from importflow.utils.duty import calculate_duty
from importflow.utils.storage import ScreenshotStorage, screenshot_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttachmentGroup:
    """Screenshots released by the correlation engine for one order."""

    delivery_id: str
    sender: str
    organization_id: str
    customer_name: str
    attachments: tuple[BufferedAttachment, ...]
    uploaded_by: str | None = None


class OrderAssembler:
    """
    Builds and persists Orders from attachment groups.

    Usage:
        assembler = OrderAssembler()
        order = assembler.assemble(group)
    """

    def __init__(
        self,
        extractor: ScreenshotExtractor | None = None,
        storage: ScreenshotStorage | None = None,
        sequencer: PackageSequencer | None = None,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
    ):
        self.extractor = extractor or ScreenshotExtractor()
        self.storage = storage or ScreenshotStorage()
        self.sequencer = sequencer or PackageSequencer(uow_factory=uow_factory)
        self._uow_factory = uow_factory

    def assemble(self, group: AttachmentGroup) -> Order:
        """
        Create the Order for a group, or return the one already created.

        Args:
            group: Correlated screenshots with customer name and organization

        Returns:
            The persisted Order

        Raises:
            PersistenceError: If storage or the database fails; the group can
                be assembled again safely
        """
        existing = self._find_existing(group.delivery_id)
        if existing is not None:
            logger.info(
                f"Order for delivery {group.delivery_id} already exists as {existing.package_number}"
            )
            return existing

        extraction = self.extractor.extract_many(
            (item.content, item.content_type) for item in group.attachments
        )
        declared_value = extraction.declared_value()
        duty = (
            calculate_duty(declared_value, extraction.items)
            if declared_value is not None
            else None
        )

        attachment_urls = [
            self.storage.upload(
                screenshot_path(
                    group.organization_id,
                    group.delivery_id,
                    index,
                    group.customer_name,
                    item.content_type,
                ),
                item.content,
                item.content_type,
                metadata={"customer": group.customer_name, "delivery_id": group.delivery_id},
            )
            for index, item in enumerate(group.attachments)
        ]

        try:
            with self._uow_factory() as uow:
                package_number = self.sequencer.next(group.organization_id, uow=uow)
                order = Order(
                    id=str(uuid4()),
                    organization_id=group.organization_id,
                    package_number=package_number,
                    delivery_id=group.delivery_id,
                    customer_name=group.customer_name,
                    customer_phone=group.sender,
                    attachment_urls=attachment_urls,
                    extraction=extraction,
                    declared_value=declared_value,
                    duty=duty,
                    status=OrderStatus.PENDING_REVIEW,
                    uploaded_by=group.uploaded_by,
                )
                stored = uow.orders.create(order)
                uow.commit()
        except IntegrityError as e:
            # A concurrent retry of the same delivery committed first
            existing = self._find_existing(group.delivery_id)
            if existing is not None:
                return existing
            raise PersistenceError(f"Order insert rejected: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist order for delivery {group.delivery_id}: {e}")
            raise PersistenceError(f"Failed to persist order: {e}") from e

        logger.info(
            f"Created {stored.package_number} for {stored.customer_name}",
            extra={
                "json_fields": {
                    "order_id": stored.id,
                    "organization_id": stored.organization_id,
                    "screenshots": stored.screenshot_count,
                    "extraction_status": stored.extraction.status.value,
                }
            },
        )
        return stored

    def _find_existing(self, delivery_id: str) -> Order | None:
        try:
            with self._uow_factory() as uow:
                return uow.orders.get_by_delivery_id(delivery_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up delivery {delivery_id}: {e}") from e
