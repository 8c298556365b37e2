"""
Generation provider factory.
Returns the process-wide provider instance so polls share one HTTP connection pool.
"""
import logging
from typing import Optional

from app.ai.base import GenerationProvider
from app.ai.fal_provider import FalQueueProvider

logger = logging.getLogger(__name__)

_provider: Optional[GenerationProvider] = None


def get_generation_provider() -> GenerationProvider:
    """
    Get the configured generation provider (singleton).

    An unconfigured provider is still returned; submissions then fail with
    ProviderUnavailable instead of breaking application startup.
    """
    global _provider
    if _provider is None:
        _provider = FalQueueProvider()
        if not _provider.is_configured():
            logger.warning("Fal.ai provider not configured. Set FAL_KEY environment variable.")
        else:
            logger.info("Using Fal.ai queue provider")
    return _provider


async def close_generation_provider() -> None:
    """Close the shared HTTP client on shutdown."""
    global _provider
    if isinstance(_provider, FalQueueProvider):
        await _provider.aclose()
    _provider = None
