"""
ImportFlow database module.

Connection management and repositories for orders, users and package
counters. Uses SQLAlchemy Core with the Cloud SQL Python Connector.
"""

from importflow.db.connection import DatabaseConnection
from importflow.db.unit_of_work import UnitOfWork

__all__ = ["DatabaseConnection", "UnitOfWork"]
