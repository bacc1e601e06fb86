"""
Unit of Work pattern for transaction coordination.

An order and the package counter increment that numbers it are written in
one transaction through a single UnitOfWork.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from importflow.db.connection import DatabaseConnection
from importflow.db.repositories.order import OrderRepository
from importflow.db.repositories.package_counter import PackageCounterRepository
from importflow.db.repositories.user import UserRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class UnitOfWork:
    """
    Unit of Work for managing database transactions.

    Usage:
        with UnitOfWork() as uow:
            number = uow.package_counters.increment(organization_id)
            order = uow.orders.create(order)
            uow.commit()

        # Leaving the block with an exception rolls back.
    """

    def __init__(self):
        self._session: Session | None = None
        self._orders: OrderRepository | None = None
        self._package_counters: PackageCounterRepository | None = None
        self._users: UserRepository | None = None

    def __enter__(self) -> UnitOfWork:
        self._session = DatabaseConnection.get_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        self._close()
        return False  # Don't suppress exceptions

    @property
    def session(self) -> Session:
        """Get current session (raises if not in context)."""
        if self._session is None:
            raise RuntimeError("UnitOfWork must be used within a context manager")
        return self._session

    @property
    def orders(self) -> OrderRepository:
        if self._orders is None:
            self._orders = OrderRepository(self.session)
        return self._orders

    @property
    def package_counters(self) -> PackageCounterRepository:
        if self._package_counters is None:
            self._package_counters = PackageCounterRepository(self.session)
        return self._package_counters

    @property
    def users(self) -> UserRepository:
        if self._users is None:
            self._users = UserRepository(self.session)
        return self._users

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def _close(self):
        if self._session is not None:
            self._session.close()
            self._session = None
            self._orders = None
            self._package_counters = None
            self._users = None
