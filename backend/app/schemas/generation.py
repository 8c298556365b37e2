"""
Pydantic schemas for generation endpoints.

Each job kind has its own parameter model; the generation service validates
the opaque parameter payload against it before pricing or submitting.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.generation_job import JobKind, JobStatus


class _Parameters(BaseModel):
    """Base for kind parameters. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")

    @property
    def quantity(self) -> int:
        return getattr(self, "num_images", None) or 1


class ImageParameters(_Parameters):
    prompt: str = Field(..., min_length=1, max_length=2000)
    width: int = Field(1024, ge=256, le=4096)
    height: int = Field(1024, ge=256, le=4096)
    negative_prompt: Optional[str] = Field(None, max_length=1000)
    quality: Optional[Literal["low", "medium", "high"]] = None  # GPT Image tiers
    style: Optional[str] = None  # Recraft V3 style
    num_images: int = Field(1, ge=1, le=4)
    seed: Optional[int] = None


class VideoParameters(_Parameters):
    prompt: str = Field(..., min_length=1, max_length=1000)
    image_url: Optional[str] = None
    duration: Literal[5, 10] = 5
    aspect_ratio: Optional[Literal["16:9", "9:16", "1:1"]] = None
    negative_prompt: Optional[str] = Field(None, max_length=1000)
    source_asset_id: Optional[str] = None

    @property
    def generation_type(self) -> str:
        return "image-to-video" if self.image_url else "text-to-video"


class AudioParameters(_Parameters):
    text: str = Field(..., min_length=1, max_length=5000)
    voice: str = "Rachel"
    stability: Optional[float] = Field(None, ge=0, le=1)


class AgingParameters(_Parameters):
    sub_mode: Literal["single", "multi"]
    age_group: Literal["baby", "toddler", "preschool", "gradeschooler", "teen", "adult", "mid_age", "senior"]
    gender: Literal["male", "female"]
    prompt: Optional[str] = Field(None, max_length=1000)
    num_images: int = Field(1, ge=1, le=4)
    seed: Optional[int] = None
    output_format: Literal["jpeg", "png"] = "jpeg"
    id_image_urls: Optional[List[str]] = None
    mother_image_urls: Optional[List[str]] = None
    father_image_urls: Optional[List[str]] = None
    father_weight: Optional[float] = Field(None, ge=0, le=1)
    source_asset_id: Optional[str] = None
    mother_asset_id: Optional[str] = None
    father_asset_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_inputs(self):
        if self.sub_mode == "single":
            if not self.id_image_urls:
                raise ValueError("At least one image is required for single person aging")
        else:
            if not self.mother_image_urls:
                raise ValueError("Mother image is required for baby prediction")
            if not self.father_image_urls:
                raise ValueError("Father image is required for baby prediction")
        return self


class UpscaleParameters(_Parameters):
    image_url: str
    scale: int = Field(2, ge=2, le=4)
    prompt: Optional[str] = Field(None, max_length=1000)
    source_asset_id: Optional[str] = None


class VariationParameters(_Parameters):
    image_url: str
    prompt: Optional[str] = Field(None, max_length=2000)
    num_images: int = Field(1, ge=1, le=4)
    seed: Optional[int] = None
    source_asset_id: Optional[str] = None


class EditParameters(_Parameters):
    image_url: str
    prompt: str = Field(..., min_length=1, max_length=2000)
    mask_url: Optional[str] = None
    strength: Optional[float] = Field(None, ge=0, le=1)
    seed: Optional[int] = None
    source_asset_id: Optional[str] = None


# Request / response schemas

class GenerationCreate(BaseModel):
    """Schema for submitting a generation job."""
    kind: JobKind
    model: Optional[str] = Field(None, description="Provider model id; defaults per kind")
    parameters: Dict[str, Any] = Field(default_factory=dict)


class GenerationSubmitResponse(BaseModel):
    """Schema returned after a submission is accepted."""
    job_id: str
    external_id: Optional[str] = None
    kind: JobKind
    model: str
    status: JobStatus
    credits_charged: int


class GenerationStatusResponse(BaseModel):
    """Schema for a status poll."""
    job_id: str
    kind: JobKind
    status: JobStatus
    progress: int
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class GenerationJobResponse(BaseModel):
    """Schema for job listings."""
    id: str
    kind: str
    status: str
    provider_model: str
    progress: int
    credits_reserved: int
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
