"""
ImportFlow data models.

Pydantic models for orders, users and webhook events, plus the in-memory
session dataclasses used by correlation.
"""

from importflow.models.order import (
    DutyBreakdown,
    ExtractedFields,
    ExtractionStatus,
    Order,
    OrderItem,
    OrderStatus,
)
from importflow.models.session import BufferedAttachment, SenderSession
from importflow.models.user import RegisteredUser, UserStatus
from importflow.models.webhook import InboundEvent, MediaRef, WebhookResponse

__all__ = [
    # Order models
    "DutyBreakdown",
    "ExtractedFields",
    "ExtractionStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    # Session models
    "BufferedAttachment",
    "SenderSession",
    # User models
    "RegisteredUser",
    "UserStatus",
    # Webhook models
    "InboundEvent",
    "MediaRef",
    "WebhookResponse",
]
