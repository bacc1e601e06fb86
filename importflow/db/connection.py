"""
Database connection management for Cloud SQL.

Uses Cloud SQL Python Connector with IAM authentication and SQLAlchemy
connection pooling. A plain ``DATABASE_URL`` (pg8000 driver) is accepted for
local Postgres.
"""

import logging
import os

from google.cloud.sql.connector import Connector
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Process-wide connection pool.

    Usage:
        # At app startup
        DatabaseConnection.initialize()

        session = DatabaseConnection.get_session()

        # At app shutdown
        DatabaseConnection.close()
    """

    _engine: Engine | None = None
    _connector: Connector | None = None
    _session_factory: sessionmaker | None = None
    _initialized: bool = False

    @classmethod
    def initialize(
        cls,
        instance_connection_name: str | None = None,
        db_name: str | None = None,
        db_user: str | None = None,
        database_url: str | None = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ):
        """
        Initialize the connection pool.

        Args:
            instance_connection_name: Cloud SQL instance (project:region:instance)
            db_name: Database name
            db_user: IAM database user (service account email)
            database_url: SQLAlchemy URL used instead of the connector when set
            pool_size: Base connection pool size
            max_overflow: Additional connections allowed beyond pool_size
            pool_timeout: Seconds to wait for a connection
            pool_recycle: Recycle connections after this many seconds

        Raises:
            ValueError: If neither a database URL nor Cloud SQL settings are given
        """
        if cls._initialized:
            return

        database_url = database_url or os.getenv("DATABASE_URL")
        pool_args = dict(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

        if database_url:
            cls._engine = create_engine(database_url, **pool_args)
            logger.info("Database initialized from DATABASE_URL")
        else:
            instance_connection_name = instance_connection_name or os.getenv(
                "INSTANCE_CONNECTION_NAME"
            )
            db_name = db_name or os.getenv("DB_NAME", "importflow")
            db_user = db_user or os.getenv("DB_USER")

            if not instance_connection_name:
                raise ValueError(
                    "INSTANCE_CONNECTION_NAME (or DATABASE_URL) is required. "
                    "Format: project:region:instance"
                )
            if not db_user:
                raise ValueError(
                    "DB_USER is required. Use the service account email for IAM auth."
                )

            cls._connector = Connector()

            def getconn():
                assert cls._connector is not None
                return cls._connector.connect(
                    instance_connection_name,
                    "pg8000",
                    user=db_user,
                    db=db_name,
                    enable_iam_auth=True,
                )

            cls._engine = create_engine("postgresql+pg8000://", creator=getconn, **pool_args)
            logger.info(f"Database initialized for Cloud SQL instance {instance_connection_name}")

        cls._session_factory = sessionmaker(bind=cls._engine)
        cls._initialized = True

    @classmethod
    def get_engine(cls) -> Engine:
        if not cls._initialized or cls._engine is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._engine

    @classmethod
    def get_session(cls) -> Session:
        """
        Get a new database session.

        The caller commits or rolls back and closes it; ``UnitOfWork`` does
        this automatically.
        """
        if not cls._initialized or cls._session_factory is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._session_factory()

    @classmethod
    def close(cls):
        """Dispose of the pool and close the connector."""
        if cls._engine:
            cls._engine.dispose()
            cls._engine = None

        if cls._connector:
            cls._connector.close()
            cls._connector = None

        cls._session_factory = None
        cls._initialized = False

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized
