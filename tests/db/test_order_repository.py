"""
Unit tests for OrderRepository row conversion.

These tests verify JSONB and column mapping without requiring a database connection.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest

from importflow.db.repositories.order import OrderRepository
from importflow.models.order import (
    DutyBreakdown,
    ExtractedFields,
    ExtractionStatus,
    Order,
    OrderItem,
    OrderStatus,
)


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock database session."""
    return MagicMock()


@pytest.fixture
def order_repo(mock_session: MagicMock) -> OrderRepository:
    """Create an OrderRepository with mock session."""
    return OrderRepository(mock_session)


@pytest.fixture
def sample_order() -> Order:
    return Order(
        id=str(uuid4()),
        organization_id="org_123",
        package_number="Paquete #29",
        delivery_id="SM0001",
        customer_name="Maria Lopez",
        customer_phone="whatsapp:+50377778888",
        attachment_urls=["https://storage.test/a.jpg"],
        extraction=ExtractedFields(
            tracking_number="TBA123",
            order_number="112-555",
            seller="Amazon",
            items=[OrderItem(name="Shoes", quantity=2, unit_value=Decimal("60"))],
        ),
        declared_value=Decimal("120"),
        duty=DutyBreakdown(
            duty=Decimal("0.00"), vat=Decimal("15.60"), total_fees=Decimal("15.60")
        ),
        uploaded_by=str(uuid4()),
    )


class TestModelToDict:
    def test_denormalizes_extraction_columns(
        self, order_repo: OrderRepository, sample_order: Order
    ):
        data = order_repo._model_to_dict(sample_order)

        assert data["id"] == UUID(sample_order.id)
        assert data["tracking_number"] == "TBA123"
        assert data["order_number"] == "112-555"
        assert data["seller"] == "Amazon"
        assert data["extraction_status"] == "completed"
        assert data["status"] == "pending-review"
        assert data["uploaded_by"] == UUID(sample_order.uploaded_by)

    def test_nested_models_are_json_ready(
        self, order_repo: OrderRepository, sample_order: Order
    ):
        data = order_repo._model_to_dict(sample_order)

        assert data["extraction"]["items"][0]["name"] == "Shoes"
        assert data["extraction"]["items"][0]["total_value"] == "120"
        assert data["duty"] == {"duty": "0.00", "vat": "15.60", "total_fees": "15.60"}

    def test_unknown_value_has_no_duty(
        self, order_repo: OrderRepository, sample_order: Order
    ):
        order = sample_order.model_copy(update={"declared_value": None, "duty": None})

        data = order_repo._model_to_dict(order)

        assert data["declared_value"] is None
        assert data["duty"] is None


class TestRowToModel:
    def test_round_trips_stored_row(
        self, order_repo: OrderRepository, sample_order: Order
    ):
        row = SimpleNamespace(**order_repo._model_to_dict(sample_order))

        order = order_repo._row_to_model(row)

        assert order.id == sample_order.id
        assert order.package_number == "Paquete #29"
        assert order.extraction.items[0].total_value == Decimal("120")
        assert order.duty.vat == Decimal("15.60")
        assert order.status == OrderStatus.PENDING_REVIEW

    def test_missing_extraction_defaults(self, order_repo: OrderRepository):
        now = datetime.now(timezone.utc)
        row = SimpleNamespace(
            id=uuid4(),
            organization_id="org_123",
            package_number="Paquete #1",
            delivery_id="SM1",
            customer_name="Ana",
            customer_phone="whatsapp:+1",
            attachment_urls=None,
            extraction=None,
            declared_value=None,
            duty=None,
            status="reviewed",
            uploaded_by=None,
            source="whatsapp",
            created_at=now,
            updated_at=now,
        )

        order = order_repo._row_to_model(row)

        assert order.attachment_urls == []
        assert order.extraction.status == ExtractionStatus.COMPLETED
        assert order.duty is None
        assert order.uploaded_by is None
        assert order.status == OrderStatus.REVIEWED


class TestQueries:
    def test_get_by_delivery_id_not_found(
        self, order_repo: OrderRepository, mock_session: MagicMock
    ):
        mock_session.execute.return_value.fetchone.return_value = None

        assert order_repo.get_by_delivery_id("SMmissing") is None
