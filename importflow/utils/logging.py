"""
Logging configuration for Cloud Run.

On Cloud Run (``K_SERVICE`` set) records go to Google Cloud Logging through
google-cloud-logging. Locally they go to stdout, with any
``extra={"json_fields": {...}}`` payload rendered under the message.

Sender phone numbers are personal data; log them through ``mask_phone``.
"""

import json
import logging
import os
import re
import sys

_logging_configured = False

_DIGITS = re.compile(r"\d")


def mask_phone(phone: str | None) -> str:
    """Keep the channel prefix and the last four digits of a phone number."""
    if not phone:
        return "<none>"
    prefix, _, number = phone.rpartition(":")
    digits = _DIGITS.findall(number)
    if len(digits) <= 4:
        masked = number
    else:
        masked = f"***{''.join(digits[-4:])}"
    return f"{prefix}:{masked}" if prefix else masked


class LocalFormatter(logging.Formatter):
    """Formatter that appends json_fields from the extra dict."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            fields_str = json.dumps(json_fields, indent=2, default=str)
            message = f"{message}\n{fields_str}"

        return message


def setup_logging(service_name: str = "importflow-intake"):
    """
    Configure root logging once per process.

    Args:
        service_name: Service name shown in local log lines and Cloud Logging
    """
    global _logging_configured

    if _logging_configured:
        return

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, level)
    else:
        _setup_local_logging(service_name, level)

    _logging_configured = True


def _setup_cloud_logging(service_name: str, level: int):
    """Route the root logger to Cloud Logging."""
    try:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging(log_level=level)

        logging.info("Cloud Logging configured for service: %s", service_name)
    except Exception as e:
        _setup_local_logging(service_name, level)
        logging.warning("Cloud Logging unavailable, using stdout: %s", e)


def _setup_local_logging(service_name: str, level: int):
    """Log to stdout for local development."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter(
            f"%(asctime)s - {service_name} - %(name)s - %(levelname)s - %(message)s"
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
