"""
SQLAlchemy Table definitions for the ImportFlow database.

These Table objects mirror migrations/001_initial_schema.sql.
SQLAlchemy Core (not ORM) keeps the Pydantic models as the only domain types.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

metadata = MetaData()

# =============================================================================
# TABLE: users
# =============================================================================

users = Table(
    "users",
    metadata,
    Column("id", UUID, primary_key=True),
    Column("email", String(255), unique=True, nullable=False),
    Column("display_name", String(255)),
    Column("whatsapp_phone", String(32), index=True),
    Column("organization_id", String(64), nullable=False),
    Column("status", String(20), nullable=False, default="active"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: orders
# =============================================================================

orders = Table(
    "orders",
    metadata,
    Column("id", UUID, primary_key=True),
    Column("organization_id", String(64), nullable=False),
    Column("package_number", String(64), nullable=False),
    # Carrier delivery id of the committing event; backstop for redeliveries
    Column("delivery_id", String(64), nullable=False, unique=True),
    Column("customer_name", String(255), nullable=False),
    Column("customer_phone", String(32), nullable=False),
    Column("attachment_urls", JSONB, nullable=False, default=[]),
    # Extraction result (ExtractedFields); searchable fields are denormalized
    Column("extraction", JSONB, nullable=False),
    Column("extraction_status", String(20), nullable=False),
    Column("tracking_number", String(255)),
    Column("order_number", String(255)),
    Column("seller", String(255)),
    Column("declared_value", Numeric(12, 2)),
    Column("duty", JSONB),
    Column("status", String(50), nullable=False, default="pending-review"),
    Column("uploaded_by", UUID, ForeignKey("users.id", ondelete="SET NULL")),
    Column("source", String(20), nullable=False, default="whatsapp"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint(
        "organization_id", "package_number", name="uq_orders_org_package_number"
    ),
)

# =============================================================================
# TABLE: package_counters
# =============================================================================

package_counters = Table(
    "package_counters",
    metadata,
    Column("organization_id", String(64), primary_key=True),
    Column("last_value", BigInteger, nullable=False, default=0),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
