"""
Order repository for database operations.

Handles order persistence with JSONB serialization for extraction results
and duty breakdowns.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, select

from importflow.db.repositories.base import (
    BaseRepository,
    jsonb_to_model,
    model_to_jsonb,
)
from importflow.db.tables import orders
from importflow.models.order import (
    DutyBreakdown,
    ExtractedFields,
    Order,
    OrderStatus,
)


class OrderRepository(BaseRepository[Order]):
    """Repository for Order operations with JSONB handling."""

    @property
    def table(self) -> Table:
        return orders

    def _row_to_model(self, row: Any) -> Order:
        """Convert database row to Order model."""
        return Order(
            id=str(row.id),
            organization_id=row.organization_id,
            package_number=row.package_number,
            delivery_id=row.delivery_id,
            customer_name=row.customer_name,
            customer_phone=row.customer_phone,
            attachment_urls=row.attachment_urls or [],
            extraction=jsonb_to_model(row.extraction, ExtractedFields) or ExtractedFields(),
            declared_value=(
                Decimal(row.declared_value) if row.declared_value is not None else None
            ),
            duty=jsonb_to_model(row.duty, DutyBreakdown),
            status=OrderStatus(row.status),
            uploaded_by=str(row.uploaded_by) if row.uploaded_by else None,
            source=row.source,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: Order) -> dict:
        """Convert Order model to database dict."""
        now = datetime.now(timezone.utc)
        extraction = model.extraction
        return {
            "id": UUID(model.id) if model.id else uuid4(),
            "organization_id": model.organization_id,
            "package_number": model.package_number,
            "delivery_id": model.delivery_id,
            "customer_name": model.customer_name,
            "customer_phone": model.customer_phone,
            "attachment_urls": list(model.attachment_urls),
            "extraction": model_to_jsonb(extraction),
            "extraction_status": extraction.status.value,
            "tracking_number": extraction.tracking_number,
            "order_number": extraction.order_number,
            "seller": extraction.seller,
            "declared_value": model.declared_value,
            "duty": model_to_jsonb(model.duty),
            "status": model.status.value,
            "uploaded_by": UUID(model.uploaded_by) if model.uploaded_by else None,
            "source": model.source,
            "created_at": model.created_at or now,
            "updated_at": now,
        }

    def get_by_delivery_id(self, delivery_id: str) -> Order | None:
        """
        Get the order committed by a carrier delivery.

        Args:
            delivery_id: Carrier delivery id of the committing event

        Returns:
            Order or None if that delivery has not produced one
        """
        stmt = select(self.table).where(self.table.c.delivery_id == delivery_id)
        row = self.session.execute(stmt).fetchone()
        if row is None:
            return None
        return self._row_to_model(row)

    def get_by_organization(
        self,
        organization_id: str,
        status: OrderStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        """
        Get an organization's orders, newest first.

        Args:
            organization_id: Owning organization
            status: Optional status filter
            limit: Maximum number of orders
            offset: Number of orders to skip
        """
        stmt = select(self.table).where(self.table.c.organization_id == organization_id)
        if status is not None:
            stmt = stmt.where(self.table.c.status == status.value)
        stmt = stmt.order_by(self.table.c.created_at.desc()).limit(limit).offset(offset)

        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]
