"""WhatsApp address helpers."""

import re

WHATSAPP_PREFIX = "whatsapp:"

_NON_DIGITS = re.compile(r"\D")


def digits_only(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def last_ten_digits(phone: str) -> str | None:
    """Last 10 digits, or None when the number is shorter than that."""
    digits = digits_only(phone)
    if len(digits) < 10:
        return None
    return digits[-10:]


def format_whatsapp_address(phone: str) -> str:
    """
    Normalize a phone number to ``whatsapp:+<digits>``.

    Already-prefixed addresses are returned unchanged.
    """
    if phone.startswith(WHATSAPP_PREFIX):
        return phone
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if not cleaned.startswith("+"):
        cleaned = f"+{cleaned}"
    return f"{WHATSAPP_PREFIX}{cleaned}"
