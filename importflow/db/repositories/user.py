"""
User repository.

Intake only reads users: it resolves a WhatsApp sender to the registered
staff member and their organization.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, func, select

from importflow.db.repositories.base import BaseRepository
from importflow.db.tables import users
from importflow.models.user import RegisteredUser, UserStatus
from importflow.utils.phone import last_ten_digits


class UserRepository(BaseRepository[RegisteredUser]):
    """Repository for RegisteredUser lookups."""

    @property
    def table(self) -> Table:
        return users

    def _row_to_model(self, row: Any) -> RegisteredUser:
        return RegisteredUser(
            id=str(row.id),
            email=row.email,
            display_name=row.display_name,
            whatsapp_phone=row.whatsapp_phone,
            organization_id=row.organization_id,
            status=UserStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: RegisteredUser) -> dict:
        now = datetime.now(timezone.utc)
        return {
            "id": UUID(model.id) if model.id else uuid4(),
            "email": model.email,
            "display_name": model.display_name,
            "whatsapp_phone": model.whatsapp_phone,
            "organization_id": model.organization_id,
            "status": model.status.value,
            "created_at": model.created_at or now,
            "updated_at": model.updated_at or now,
        }

    def find_by_whatsapp_phone(self, phone: str) -> RegisteredUser | None:
        """
        Find the active user linked to a WhatsApp address.

        Tries an exact match first, then compares the last 10 digits so
        numbers stored with or without country code or formatting still match.

        Args:
            phone: Sender address, e.g. 'whatsapp:+50377778888'

        Returns:
            RegisteredUser or None if no active user is linked
        """
        active = self.table.c.status == UserStatus.ACTIVE.value

        stmt = select(self.table).where(self.table.c.whatsapp_phone == phone, active)
        row = self.session.execute(stmt).fetchone()
        if row is not None:
            return self._row_to_model(row)

        tail = last_ten_digits(phone)
        if tail is None:
            return None

        # Strip formatting in SQL, then compare the trailing digits
        stored_digits = func.regexp_replace(self.table.c.whatsapp_phone, r"\D", "", "g")
        stmt = (
            select(self.table)
            .where(active, func.right(stored_digits, 10) == tail)
            .order_by(self.table.c.created_at)
            .limit(1)
        )
        row = self.session.execute(stmt).fetchone()
        if row is None:
            return None
        return self._row_to_model(row)
