"""
Business logic services.
"""
from app.services.credit_service import CreditService
from app.services.job_store import JobStore
from app.services.asset_service import AssetService
from app.services.generation_service import GenerationService

__all__ = [
    "CreditService",
    "JobStore",
    "AssetService",
    "GenerationService",
]
