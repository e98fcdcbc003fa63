from __future__ import annotations

from typing import Optional


class Signal2NoiseError(Exception):
    """Base class for every error raised by the capture/extraction pipeline."""


class MissingInput(Signal2NoiseError):
    """A required field (user id, transcript) was empty. Caller bug, never sent over the wire."""


class TransportError(Signal2NoiseError):
    """Endpoint unreachable, non-2xx status, unparsable body or timeout."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SchemaViolation(Signal2NoiseError):
    """Backend answered with JSON that does not match the response schema."""

    def __init__(self, message: str, payload: object = None):
        super().__init__(message)
        self.payload = payload


class CaptureError(Signal2NoiseError):
    """Microphone, permission or recognition failure."""


class CaptureBusy(Signal2NoiseError):
    """The capture device is leased to another conversation."""


class InvalidTransition(Signal2NoiseError):
    """Operation not allowed in the conversation's current state."""


# Failures that end the current turn; the conversation catches these and resets.
TURN_ERRORS = (MissingInput, TransportError, SchemaViolation, CaptureError)
