"""
Twilio webhook signature validation.

Twilio signs the full public URL plus the sorted form parameters with the
account auth token (``X-Twilio-Signature``). Behind Cloud Run's proxy the
request URL seen by the app differs from the public one, so
``PUBLIC_WEBHOOK_BASE_URL`` takes precedence when set.
"""

import logging
from typing import Mapping

from fastapi import Request
from twilio.request_validator import RequestValidator

from importflow import config

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def public_url(request: Request, base_url: str | None = None) -> str:
    """URL the carrier signed for this request."""
    base_url = config.PUBLIC_WEBHOOK_BASE_URL if base_url is None else base_url
    if not base_url:
        return str(request.url)
    url = base_url.rstrip("/") + request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def is_valid_signature(
    request: Request,
    params: Mapping[str, str],
    auth_token: str | None = None,
    allow_unsigned: bool | None = None,
) -> bool:
    """
    Check the carrier signature of a webhook request.

    Without a configured auth token every request is rejected, unless
    unsigned webhooks are explicitly allowed for local development.
    """
    auth_token = config.TWILIO_AUTH_TOKEN if auth_token is None else auth_token
    allow_unsigned = config.ALLOW_UNSIGNED_WEBHOOKS if allow_unsigned is None else allow_unsigned

    if not auth_token:
        if allow_unsigned:
            logger.warning("Accepting unsigned webhook (ALLOW_UNSIGNED_WEBHOOKS is set)")
            return True
        logger.error("TWILIO_AUTH_TOKEN not configured, rejecting webhook")
        return False

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        return False

    validator = RequestValidator(auth_token)
    return validator.validate(public_url(request), dict(params), signature)
