"""
Domain errors raised by the generation services.
API routes translate these into HTTP responses.
"""
from typing import Optional


class GenerationError(Exception):
    """Base class for generation domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientCredits(GenerationError):
    """User balance does not cover the job cost. Not retryable."""

    def __init__(self, required: int, available: int):
        super().__init__(f"Insufficient credits. Required: {required}, Available: {available}")
        self.required = required
        self.available = available


class InvalidRequest(GenerationError):
    """Parameters rejected locally or by the provider. Surfaced verbatim."""


class ProviderUnavailable(GenerationError):
    """Provider could not be reached. Safe to retry the whole submission."""


class PollingTransportError(GenerationError):
    """Status poll failed at the transport level. Recorded on the job as failed."""


class MigrationFailed(GenerationError):
    """Copy of a provider result into durable storage failed."""

    def __init__(self, message: str, source_url: Optional[str] = None):
        super().__init__(message)
        self.source_url = source_url


class NotFound(GenerationError):
    """Job or asset does not exist."""


class Unauthorized(GenerationError):
    """Caller does not own the job or asset."""
