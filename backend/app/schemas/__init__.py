"""
Pydantic schemas for API request/response validation.
"""
from app.schemas.generation import (
    GenerationCreate,
    GenerationSubmitResponse,
    GenerationStatusResponse,
    GenerationJobResponse,
)
from app.schemas.asset import (
    AssetResponse,
    AssetListResponse,
)

__all__ = [
    "GenerationCreate",
    "GenerationSubmitResponse",
    "GenerationStatusResponse",
    "GenerationJobResponse",
    "AssetResponse",
    "AssetListResponse",
]
