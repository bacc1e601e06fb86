"""
Runtime configuration for ImportFlow.

Values are read from the environment once at import time. Call
``dotenv.load_dotenv()`` before importing this module to pick up a local
``.env`` file.
"""

import os


def _get_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Gemini model used for screenshot extraction
DEFAULT_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
EXTRACTION_TIMEOUT_SECONDS = _get_float("EXTRACTION_TIMEOUT_SECONDS", 45.0)

# Twilio (WhatsApp carrier)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER", "whatsapp:+14155238886")
PUBLIC_WEBHOOK_BASE_URL = os.getenv("PUBLIC_WEBHOOK_BASE_URL", "")
ALLOW_UNSIGNED_WEBHOOKS = _get_bool("ALLOW_UNSIGNED_WEBHOOKS")
MEDIA_FETCH_TIMEOUT_SECONDS = _get_float("MEDIA_FETCH_TIMEOUT_SECONDS", 15.0)

# Object storage
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "")

# Correlation
PAIRING_WINDOW_SECONDS = _get_float("PAIRING_WINDOW_SECONDS", 5.0)
# Unset means a customer name has no age limit of its own. It still ends
# when the sender replaces it or when the idle session is swept after
# SESSION_IDLE_TTL_SECONDS without activity.
STICKY_NAME_TTL_SECONDS = _get_float("STICKY_NAME_TTL_SECONDS", None)
SESSION_IDLE_TTL_SECONDS = _get_float("SESSION_IDLE_TTL_SECONDS", 2 * 60 * 60)
SESSION_SWEEP_INTERVAL_SECONDS = _get_float("SESSION_SWEEP_INTERVAL_SECONDS", 60.0)
SESSION_LOCK_TIMEOUT_SECONDS = _get_float("SESSION_LOCK_TIMEOUT_SECONDS", 10.0)
UNKNOWN_SENDER_COOLDOWN_SECONDS = _get_float("UNKNOWN_SENDER_COOLDOWN_SECONDS", 300.0)

# Idempotency
IDEMPOTENCY_TTL_SECONDS = _get_float("IDEMPOTENCY_TTL_SECONDS", 24 * 60 * 60)
IDEMPOTENCY_MAX_ENTRIES = _get_int("IDEMPOTENCY_MAX_ENTRIES", 10_000)

# Package numbering
PACKAGE_NUMBER_PREFIX = os.getenv("PACKAGE_NUMBER_PREFIX", "Paquete #")
