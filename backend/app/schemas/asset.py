"""
Pydantic schemas for asset endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AssetResponse(BaseModel):
    """Schema for asset response."""
    id: str
    owner_id: str
    type: str
    storage_url: str
    filename: str
    source_job_id: Optional[str] = None
    prompt: Optional[str] = None
    provider_model: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("asset_metadata", "metadata"),
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssetListResponse(BaseModel):
    """One page of assets plus the total matching count."""
    items: List[AssetResponse]
    total: int
    limit: int
    offset: int
