"""
Generation provider abstraction module.
Provides a unified interface for asynchronous generation backends.
"""
from app.ai.factory import get_generation_provider
from app.ai.base import GenerationProvider, ProviderStatus, ProviderSubmission

__all__ = ["get_generation_provider", "GenerationProvider", "ProviderStatus", "ProviderSubmission"]
