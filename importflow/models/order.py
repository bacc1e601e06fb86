from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OrderStatus(StrEnum):
    """Order review status (only PENDING_REVIEW is set by intake)"""

    PENDING_REVIEW = "pending-review"  # Created from WhatsApp, awaiting review
    REVIEWED = "reviewed"  # Fields checked by a person
    EXPORTED = "exported"  # Included in a customs document
    COMPLETED = "completed"  # Delivered and paid


class ExtractionStatus(StrEnum):
    """Outcome of reading order fields from screenshots"""

    COMPLETED = "completed"  # Every screenshot was read
    PARTIAL = "partial"  # Some screenshots could not be read
    FAILED = "failed"  # Model error or malformed response
    TIMED_OUT = "timed_out"  # Model did not answer in time


class OrderItem(BaseModel):
    """Line item read from an order screenshot"""

    name: str = Field(default="Unknown Item", description="Product name")
    description: Optional[str] = Field(default=None, description="Short description")
    quantity: int = Field(default=1, ge=0, description="Quantity ordered")
    unit_value: Decimal = Field(
        default=Decimal("0"), description="Price per unit in USD (sale price)"
    )
    total_value: Optional[Decimal] = Field(
        default=None, description="Line total in USD (quantity x unit value)"
    )
    category: str = Field(default="other", description="Product category")
    hs_code: Optional[str] = Field(
        default=None, description="Harmonized System tariff code, if known"
    )

    @model_validator(mode="after")
    def _fill_total_value(self) -> "OrderItem":
        if self.total_value is None:
            self.total_value = self.unit_value * self.quantity
        return self


class ExtractedFields(BaseModel):
    """
    Structured order fields read from one or more screenshots.

    Absent values stay ``None`` so "not found" is never confused with zero.
    """

    status: ExtractionStatus = Field(
        default=ExtractionStatus.COMPLETED, description="Extraction outcome"
    )
    error: Optional[str] = Field(
        default=None, description="Why extraction failed or was partial"
    )
    tracking_number: Optional[str] = Field(
        default=None, description="Carrier tracking number"
    )
    order_number: Optional[str] = Field(
        default=None, description="Merchant order/confirmation number"
    )
    seller: Optional[str] = Field(default=None, description="Store or seller name")
    order_date: Optional[str] = Field(
        default=None, description="Order date as YYYY-MM-DD"
    )
    shipping_carrier: Optional[str] = Field(
        default=None, description="Courier shown on the screenshot"
    )
    items: list[OrderItem] = Field(default_factory=list, description="Line items")
    order_total: Optional[Decimal] = Field(
        default=None, description="Final total after discounts, in USD"
    )

    @property
    def is_complete(self) -> bool:
        return self.status == ExtractionStatus.COMPLETED

    def declared_value(self) -> Optional[Decimal]:
        """Order total, else the sum of item totals, else None."""
        if self.order_total is not None:
            return self.order_total
        if self.items:
            return sum((item.total_value for item in self.items), Decimal("0"))
        return None

    @classmethod
    def failed(
        cls, error: str, status: ExtractionStatus = ExtractionStatus.FAILED
    ) -> "ExtractedFields":
        return cls(status=status, error=error)


class DutyBreakdown(BaseModel):
    """Customs duty and VAT owed on a package"""

    duty: Decimal = Field(description="Customs duty in USD")
    vat: Decimal = Field(description="VAT in USD")
    total_fees: Decimal = Field(description="Duty plus VAT in USD")


class Order(BaseModel):
    """
    Committed order assembled from correlated WhatsApp screenshots.

    Immutable after creation except for ``status``, which review
    workflows change.
    """

    id: str = Field(description="Internal order identifier (UUID)")
    organization_id: str = Field(description="Owning organization")
    package_number: str = Field(description="Sequential package id, e.g. 'Paquete #29'")
    delivery_id: str = Field(
        description="Carrier delivery id of the event that committed the order"
    )
    customer_name: str = Field(description="Consignee name sent by the importer")
    customer_phone: str = Field(description="WhatsApp sender of the screenshots")
    attachment_urls: list[str] = Field(
        default_factory=list, description="Durable storage URLs of the screenshots"
    )
    extraction: ExtractedFields = Field(
        default_factory=ExtractedFields, description="Fields read from screenshots"
    )
    declared_value: Optional[Decimal] = Field(
        default=None, description="Value used for duty calculation"
    )
    duty: Optional[DutyBreakdown] = Field(
        default=None, description="Computed fees; None when the value is unknown"
    )
    status: OrderStatus = Field(
        default=OrderStatus.PENDING_REVIEW, description="Review status"
    )
    uploaded_by: Optional[str] = Field(
        default=None, description="Registered user who sent the screenshots"
    )
    source: str = Field(default="whatsapp", description="Intake channel")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "2f1c7a8e-3b0d-4d2e-9a51-0f3c5b7d9e11",
                "organization_id": "org_123",
                "package_number": "Paquete #29",
                "delivery_id": "SM0123456789abcdef0123456789abcdef",
                "customer_name": "Maria Lopez",
                "customer_phone": "whatsapp:+50377778888",
                "attachment_urls": [
                    "https://storage.googleapis.com/bucket/screenshots/org_123/SM01_0_Maria_Lopez.jpg"
                ],
                "status": "pending-review",
            }
        }
    )

    @property
    def screenshot_count(self) -> int:
        return len(self.attachment_urls)
