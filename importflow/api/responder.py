"""
Outbound WhatsApp replies through Twilio.

Sends are fire-and-forget: failures are logged and never retried or raised,
so a reply problem never changes the webhook's outcome.
"""

import logging

import requests
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from importflow import config
from importflow.utils.logging import mask_phone
from importflow.utils.phone import format_whatsapp_address

logger = logging.getLogger(__name__)

# WhatsApp rejects bodies longer than this
MAX_BODY_LENGTH = 1600


class Responder:
    """Sends short text replies to senders."""

    def __init__(self, client: Client | None = None, from_number: str | None = None):
        self._client = client
        self.from_number = from_number or config.TWILIO_WHATSAPP_NUMBER

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        return self._client

    def send(self, to: str, body: str) -> str | None:
        """
        Send a reply.

        Args:
            to: Recipient address, e.g. 'whatsapp:+50377778888'
            body: Message text (truncated to the carrier limit)

        Returns:
            Carrier message sid, or None if the send failed
        """
        if len(body) > MAX_BODY_LENGTH:
            body = body[: MAX_BODY_LENGTH - 1] + "…"

        try:
            message = self.client.messages.create(
                from_=format_whatsapp_address(self.from_number),
                to=format_whatsapp_address(to),
                body=body,
            )
        except (TwilioException, requests.RequestException) as e:
            logger.error(
                f"Failed to send reply to {mask_phone(to)}: {e}",
                extra={"json_fields": {"error_type": type(e).__name__}},
            )
            return None

        logger.info(
            f"Reply sent to {mask_phone(to)}",
            extra={"json_fields": {"message_sid": message.sid, "status": message.status}},
        )
        return message.sid
