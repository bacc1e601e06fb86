"""
Per-organization package counter.

The counter is advanced with one atomic upsert, so concurrent callers in
separate transactions can never read the same value:

    INSERT INTO package_counters (organization_id, last_value, updated_at)
    VALUES (:org, 1, :now)
    ON CONFLICT (organization_id)
    DO UPDATE SET last_value = package_counters.last_value + 1, updated_at = :now
    RETURNING last_value
"""

from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.orm import Session

from importflow.db.tables import package_counters


class PackageCounterRepository:
    """Atomic increments of ``package_counters``."""

    def __init__(self, session: Session):
        self.session = session

    def increment_statement(self, organization_id: str) -> Insert:
        now = datetime.now(timezone.utc)
        stmt = insert(package_counters).values(
            organization_id=organization_id,
            last_value=1,
            updated_at=now,
        )
        return stmt.on_conflict_do_update(
            index_elements=[package_counters.c.organization_id],
            set_={
                "last_value": package_counters.c.last_value + 1,
                "updated_at": now,
            },
        ).returning(package_counters.c.last_value)

    def increment(self, organization_id: str) -> int:
        """
        Advance the organization's counter and return the new value.

        The row lock taken by the upsert is held until the surrounding
        transaction ends.
        """
        result = self.session.execute(self.increment_statement(organization_id))
        return int(result.scalar_one())
