"""
Error taxonomy for the intake pipeline.

Every error carries ``retriable``; the intake worker settles a delivery
(ack, requeue or dead-letter) from that flag alone.
"""

from __future__ import annotations

from typing import Optional


class MailpulseError(Exception):
    """Base class for pipeline errors."""

    retriable: bool = False

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({type(self.cause).__name__}: {self.cause})"
        return self.message


class MalformedEventError(MailpulseError):
    """Payload could not be decoded into an InboundEvent. Redelivery cannot help."""

    retriable = False


class ClassificationError(MailpulseError):
    """The classifier failed for this event."""

    retriable = True


class StoreUnavailableError(MailpulseError):
    """A round-trip to the shared store failed."""

    retriable = True
