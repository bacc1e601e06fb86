"""Exceptions raised by the WhatsApp intake pipeline."""


class IntakeError(Exception):
    """Base class for intake failures."""


class MediaFetchError(IntakeError):
    """A carrier media URL could not be downloaded."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to download media {url}: {reason}")
        self.url = url
        self.reason = reason


class SessionLockTimeout(IntakeError):
    """The sender's session lock could not be acquired in time."""

    def __init__(self, sender: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for sender session lock")
        self.sender = sender
        self.timeout = timeout


class PersistenceError(IntakeError):
    """
    The order could not be durably committed.

    The webhook answers with a server error so the carrier redelivers.
    """


class StorageUploadError(PersistenceError):
    """A screenshot could not be written to object storage."""
