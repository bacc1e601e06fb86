"""
ImportFlow Intake API - Main FastAPI Application.

Receives WhatsApp webhooks and turns customer names and order screenshots
into pending-review orders.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables before config is imported
load_dotenv()

from importflow.config import DEFAULT_MODEL, STORAGE_BUCKET  # noqa: E402
from importflow.utils.logging import setup_logging  # noqa: E402

# Configure logging early
setup_logging("importflow-intake")

logger = logging.getLogger(__name__)


def _init_database() -> bool:
    """Initialize the database connection if configured."""
    from importflow.db import DatabaseConnection

    if not (os.getenv("INSTANCE_CONNECTION_NAME") or os.getenv("DATABASE_URL")):
        logger.warning("Database not configured (INSTANCE_CONNECTION_NAME not set)")
        return False

    try:
        DatabaseConnection.initialize()
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info(
        "Starting ImportFlow Intake API",
        extra={
            "json_fields": {
                "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
                "model": DEFAULT_MODEL,
                "bucket": STORAGE_BUCKET or None,
            }
        },
    )

    db_initialized = _init_database()

    yield

    if db_initialized:
        from importflow.db import DatabaseConnection

        DatabaseConnection.close()
        logger.info("Database connection closed")

    logger.info("Shutting down ImportFlow Intake API")


OPENAPI_TAGS = [
    {
        "name": "webhooks",
        "description": "Twilio WhatsApp webhook (signed form posts)",
    },
    {
        "name": "system",
        "description": "System health and information endpoints",
    },
]

app = FastAPI(
    title="ImportFlow Intake API",
    description=(
        "WhatsApp intake for package import orders.\n\n"
        "Importers send a customer name and order screenshots; the service "
        "pairs them, reads the order with Gemini, computes customs duty and "
        "files a numbered package for review.\n\n"
        "**Authentication:** webhooks must carry a valid `X-Twilio-Signature`."
    ),
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)


@app.get("/", tags=["system"], operation_id="getServiceInfo")
async def root():
    """Return basic information about the API service."""
    return {
        "service": "ImportFlow Intake API",
        "version": "0.1.0",
        "status": "operational",
    }


@app.get("/health", tags=["system"], operation_id="healthCheck")
async def health_check():
    """Check service health status (used by Cloud Run monitoring)."""
    from importflow.db import DatabaseConnection

    return {
        "status": "healthy",
        "service": "importflow-intake",
        "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
        "database": DatabaseConnection.is_initialized(),
    }


from importflow.api.routes import whatsapp  # noqa: E402

app.include_router(whatsapp.router, tags=["webhooks"])
