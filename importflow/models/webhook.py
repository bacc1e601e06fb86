"""
Inbound WhatsApp webhook models.

Twilio posts form-encoded fields (MessageSid, From, Body, NumMedia,
MediaUrl{i}, MediaContentType{i}). ``InboundEvent.from_twilio_form`` maps
them to a carrier-neutral event; nothing downstream reads Twilio field names.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional

from pydantic import BaseModel, Field

DEFAULT_MEDIA_CONTENT_TYPE = "image/jpeg"


class MediaRef(BaseModel):
    """Short-lived, signed media URL announced by the carrier."""

    url: str = Field(description="Carrier media URL (expires quickly)")
    content_type: str = Field(
        default=DEFAULT_MEDIA_CONTENT_TYPE, description="Declared MIME type"
    )


class InboundEvent(BaseModel):
    """One carrier delivery: sender, optional text, zero or more media."""

    delivery_id: str = Field(description="Carrier delivery id used for dedup")
    sender: str = Field(description="Sender address, e.g. 'whatsapp:+50377778888'")
    text: Optional[str] = Field(default=None, description="Trimmed message body")
    media: list[MediaRef] = Field(default_factory=list, description="Media refs")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the webhook received the event",
    )

    @property
    def has_text(self) -> bool:
        return bool(self.text)

    @property
    def has_media(self) -> bool:
        return bool(self.media)

    @property
    def is_command(self) -> bool:
        return bool(self.text) and self.text.startswith("/")

    @classmethod
    def from_twilio_form(
        cls, form: Mapping[str, str], received_at: datetime | None = None
    ) -> "InboundEvent":
        """
        Build an event from Twilio webhook form fields.

        Raises:
            ValueError: If MessageSid or From is missing, or NumMedia is not
                a non-negative integer
        """
        delivery_id = (form.get("MessageSid") or form.get("SmsMessageSid") or "").strip()
        sender = (form.get("From") or "").strip()
        if not delivery_id:
            raise ValueError("MessageSid is required")
        if not sender:
            raise ValueError("From is required")

        raw_count = (form.get("NumMedia") or "0").strip()
        try:
            num_media = int(raw_count)
        except ValueError:
            raise ValueError(f"NumMedia must be an integer, got {raw_count!r}")
        if num_media < 0:
            raise ValueError("NumMedia must not be negative")

        media = []
        for index in range(num_media):
            url = form.get(f"MediaUrl{index}")
            if not url:
                continue
            content_type = form.get(f"MediaContentType{index}") or DEFAULT_MEDIA_CONTENT_TYPE
            media.append(MediaRef(url=url, content_type=content_type))

        text = (form.get("Body") or "").strip() or None

        return cls(
            delivery_id=delivery_id,
            sender=sender,
            text=text,
            media=media,
            received_at=received_at or datetime.now(timezone.utc),
        )


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the carrier."""

    status: str = Field(description="Outcome, e.g. 'committed', 'buffered', 'duplicate'")
    delivery_id: Optional[str] = Field(default=None, description="Echoed delivery id")
    order_id: Optional[str] = Field(default=None, description="Created order, if any")
    package_number: Optional[str] = Field(
        default=None, description="Assigned package number, if any"
    )
