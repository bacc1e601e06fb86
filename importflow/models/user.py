from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class UserStatus(StrEnum):
    """Account status"""

    ACTIVE = "active"
    INACTIVE = "inactive"


class RegisteredUser(BaseModel):
    """
    Importer staff member allowed to submit orders over WhatsApp.

    The WhatsApp phone is linked from the dashboard; intake only reads it.
    """

    id: str = Field(description="User identifier (UUID)")
    email: str = Field(description="Login email")
    display_name: Optional[str] = Field(default=None, description="Display name")
    whatsapp_phone: Optional[str] = Field(
        default=None, description="Linked WhatsApp address, e.g. 'whatsapp:+1555...'"
    )
    organization_id: str = Field(description="Organization the user belongs to")
    status: UserStatus = Field(default=UserStatus.ACTIVE, description="Account status")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Account creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )
