"""
Base class for asynchronous generation providers.
All providers must implement this interface so the generation service can
submit and poll work without knowing which backend runs it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


# Provider status vocabulary
PROVIDER_QUEUED = "queued"
PROVIDER_PROCESSING = "processing"
PROVIDER_COMPLETED = "completed"
PROVIDER_FAILED = "failed"


@dataclass
class ProviderSubmission:
    """Polling handles returned when the provider accepts a request."""
    request_id: str
    status_url: str
    response_url: str
    cancel_url: Optional[str] = None

    def to_handles(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "status_url": self.status_url,
            "response_url": self.response_url,
            "cancel_url": self.cancel_url,
        }


@dataclass
class ProviderStatus:
    """One poll result. result is only set when completed, error only when failed."""
    status: str
    progress: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    queue_position: Optional[int] = None


class GenerationProvider(ABC):
    """
    Abstract base class for async generation providers.

    Implementations hold no per-job state; everything needed to resume polling
    is in the ProviderSubmission handles, which callers persist.
    """

    name: str = "provider"

    @abstractmethod
    async def submit(self, model_id: str, payload: Dict[str, Any]) -> ProviderSubmission:
        """
        Queue a request for a model.

        Raises:
            InvalidRequest: Provider rejected the parameters (not retried)
            ProviderUnavailable: Provider could not be reached
        """
        pass

    @abstractmethod
    async def poll(self, status_url: str, response_url: str) -> ProviderStatus:
        """
        Get the current status of a request; fetches the result when completed.
        Safe to call repeatedly and concurrently for the same handles.

        Raises:
            PollingTransportError: Transport failure or unexpected response
        """
        pass

    @abstractmethod
    async def cancel(self, cancel_url: str) -> bool:
        """Ask the provider to stop a request. Advisory only."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if provider credentials are present."""
        pass
