"""
Apply ImportFlow SQL migrations.

Connects through the same DatabaseConnection the service uses: Cloud SQL
Python Connector with IAM auth, or DATABASE_URL for a local Postgres.

Usage:
    python scripts/run_migration.py                 # all migrations
    python scripts/run_migration.py 001_initial_schema.sql
    python scripts/run_migration.py --yes           # skip confirmation
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine

load_dotenv()

from importflow.db import DatabaseConnection  # noqa: E402

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


def list_migrations() -> list[Path]:
    """Migration files in name order, rollback scripts excluded."""
    return [
        m for m in sorted(MIGRATIONS_DIR.glob("*.sql")) if "rollback" not in m.name.lower()
    ]


def resolve_migration(name: str) -> Path:
    path = Path(name)
    if not path.exists():
        path = MIGRATIONS_DIR / name
    if not path.exists():
        print(f"❌ Migration file not found: {name}")
        sys.exit(1)
    return path


def run_migration(migration_file: Path, engine: Engine):
    """Run one migration file in its own transaction."""
    print(f"📝 Running migration: {migration_file.name}")
    sql = migration_file.read_text()

    try:
        with engine.begin() as conn:
            conn.execute(text(sql))
        print(f"✅ Migration {migration_file.name} completed")
    except Exception as e:
        print(f"❌ Migration {migration_file.name} failed: {e}")
        sys.exit(1)


def grant_postgres_access(engine: Engine):
    """
    Grant the postgres user access to the tables.

    With IAM auth the tables are owned by the service account; this makes
    them visible in Cloud SQL Studio. Failure is reported but not fatal.
    """
    statements = [
        "GRANT USAGE ON SCHEMA public TO postgres",
        "GRANT SELECT, INSERT, UPDATE, DELETE ON ALL TABLES IN SCHEMA public TO postgres",
    ]
    try:
        with engine.begin() as conn:
            for statement in statements:
                conn.execute(text(statement))
        print("✅ Postgres user access granted")
    except Exception as e:
        print(f"⚠️  Failed to grant postgres access (non-fatal): {e}")


def main():
    args = [a for a in sys.argv[1:] if a != "--yes"]
    assume_yes = "--yes" in sys.argv[1:]

    print("🚀 ImportFlow Database Migration Tool")
    print("=" * 50)

    if not MIGRATIONS_DIR.exists():
        print(f"❌ Migrations directory not found: {MIGRATIONS_DIR}")
        sys.exit(1)

    migrations = [resolve_migration(a) for a in args] if args else list_migrations()
    if not migrations:
        print("⚠️  No migrations found")
        sys.exit(0)

    print(f"\nFound {len(migrations)} migration(s):")
    for migration in migrations:
        print(f"  - {migration.name}")

    target = "DATABASE_URL" if os.getenv("DATABASE_URL") else os.getenv("INSTANCE_CONNECTION_NAME")
    print(f"\n⚠️  This will apply migrations to: {target}")
    if not assume_yes:
        response = input("\nProceed? (yes/no): ").strip().lower()
        if response not in ["yes", "y"]:
            print("❌ Migration cancelled")
            sys.exit(0)

    try:
        DatabaseConnection.initialize()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)
    engine = DatabaseConnection.get_engine()

    print("\n" + "=" * 50)
    for migration in migrations:
        run_migration(migration, engine)

    if not os.getenv("DATABASE_URL"):
        grant_postgres_access(engine)

    DatabaseConnection.close()
    print("\n" + "=" * 50)
    print("✅ All migrations completed successfully!")


if __name__ == "__main__":
    main()
