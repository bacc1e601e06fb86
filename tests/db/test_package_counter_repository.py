"""
Unit tests for the package counter upsert.
"""

from unittest.mock import MagicMock

from sqlalchemy.dialects import postgresql

from importflow.db.repositories.package_counter import PackageCounterRepository


def test_increment_is_single_atomic_upsert():
    repo = PackageCounterRepository(MagicMock())

    sql = str(repo.increment_statement("org_123").compile(dialect=postgresql.dialect()))

    assert "INSERT INTO package_counters" in sql
    assert "ON CONFLICT (organization_id) DO UPDATE" in sql
    assert "package_counters.last_value + " in sql
    assert "RETURNING package_counters.last_value" in sql


def test_increment_returns_new_value():
    session = MagicMock()
    session.execute.return_value.scalar_one.return_value = 29
    repo = PackageCounterRepository(session)

    assert repo.increment("org_123") == 29
    session.execute.assert_called_once()
