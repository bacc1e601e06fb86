"""ImportFlow WhatsApp order intake service."""
