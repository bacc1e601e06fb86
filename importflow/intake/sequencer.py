"""
Organization-scoped package numbers ("Paquete #29").

Numbers come from the atomic counter upsert in ``package_counters``; two
concurrent callers can never be handed the same value. Gaps are possible
(a rolled-back order burns its number), duplicates are not.
"""

import logging
from typing import Callable

from importflow import config
from importflow.db.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def format_package_number(value: int, prefix: str | None = None) -> str:
    prefix = config.PACKAGE_NUMBER_PREFIX if prefix is None else prefix
    return f"{prefix}{value}"


class PackageSequencer:
    """Issues package numbers per organization."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        prefix: str | None = None,
    ):
        self._uow_factory = uow_factory
        self.prefix = prefix

    def next(self, organization_id: str, uow: UnitOfWork | None = None) -> str:
        """
        Issue the next package number for an organization.

        Args:
            organization_id: Organization the number belongs to
            uow: Open unit of work to join. The increment then commits or
                rolls back together with the caller's writes.

        Returns:
            Package number, e.g. 'Paquete #29'
        """
        if uow is not None:
            value = uow.package_counters.increment(organization_id)
        else:
            with self._uow_factory() as own_uow:
                value = own_uow.package_counters.increment(organization_id)
                own_uow.commit()

        package_number = format_package_number(value, self.prefix)
        logger.debug(f"Issued {package_number} for organization {organization_id}")
        return package_number
