"""
Repository implementations for the ImportFlow database.

Repositories wrap SQLAlchemy queries and Pydantic model conversions.
"""

from importflow.db.repositories.order import OrderRepository
from importflow.db.repositories.package_counter import PackageCounterRepository
from importflow.db.repositories.user import UserRepository

__all__ = [
    "OrderRepository",
    "PackageCounterRepository",
    "UserRepository",
]
