"""
In-memory sender session state used by the correlation engine.

These are plain dataclasses rather than Pydantic models: they never cross
an I/O boundary and are mutated in place under the sender's lock.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class BufferedAttachment:
    """Downloaded screenshot waiting for a customer name."""

    content: bytes
    content_type: str
    received_at: datetime


@dataclass
class SenderSession:
    """Per-sender correlation state."""

    sender: str
    last_activity: datetime
    customer_name: str | None = None
    customer_name_set_at: datetime | None = None
    buffer: list[BufferedAttachment] = field(default_factory=list)
    last_error_notice_at: datetime | None = None
    # Buffered entries pruned by media-only events, reported with the next text
    unreported_drops: int = 0

    def set_customer_name(self, name: str, now: datetime) -> None:
        self.customer_name = name
        self.customer_name_set_at = now

    def touch(self, now: datetime) -> None:
        if now > self.last_activity:
            self.last_activity = now
