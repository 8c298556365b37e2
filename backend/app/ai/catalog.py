"""
Generation model catalog and credit pricing.

Cost policy, applied in this order:
1. Quality tier override (replaces the base cost when the model defines tiers)
2. Style multiplier (e.g. Recraft vector illustrations cost double)
3. Multiply by quantity (number of images/variations requested)
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.models.generation_job import JobKind


@dataclass(frozen=True)
class ModelConfig:
    """One provider model/pipeline and its credit cost (1 credit = $0.01)."""
    id: str
    name: str
    kind: JobKind
    credits: int
    description: str = ""
    quality_tiers: Dict[str, int] = field(default_factory=dict)
    style_multipliers: Dict[str, int] = field(default_factory=dict)
    capabilities: Tuple[str, ...] = ()
    sub_mode: Optional[str] = None  # Aging: "single" or "multi"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "credits": self.credits,
            "description": self.description,
            "quality_tiers": dict(self.quality_tiers),
            "style_multipliers": dict(self.style_multipliers),
            "capabilities": list(self.capabilities),
            "sub_mode": self.sub_mode,
        }


GPT_IMAGE_QUALITY_TIERS = {"low": 2, "medium": 5, "high": 13}

IMAGE_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/flux/dev", "FLUX.1 [dev]", JobKind.IMAGE, 3,
                "Good balance of quality and speed"),
    ModelConfig("fal-ai/flux-pro/v1.1", "FLUX1.1 [pro]", JobKind.IMAGE, 5,
                "Best quality, great text rendering"),
    ModelConfig("fal-ai/flux/schnell", "FLUX.1 [schnell]", JobKind.IMAGE, 1,
                "Fastest, lowest cost"),
    ModelConfig("fal-ai/stable-diffusion-v3-medium", "Stable Diffusion 3 Medium", JobKind.IMAGE, 2),
    ModelConfig("fal-ai/nano-banana-pro", "Nano Banana Pro", JobKind.IMAGE, 4,
                "Strong prompt adherence"),
    ModelConfig("fal-ai/recraft/v3/text-to-image", "Recraft V3", JobKind.IMAGE, 4,
                "Design styles; vector illustration costs double",
                style_multipliers={"vector_illustration": 2}),
    ModelConfig("fal-ai/gpt-image-1.5", "GPT Image 1.5", JobKind.IMAGE, 5,
                "Priced by quality tier",
                quality_tiers=GPT_IMAGE_QUALITY_TIERS),
]

VIDEO_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/kling-video/v1.5/pro/image-to-video", "Kling 1.5 Pro", JobKind.VIDEO, 20,
                "Best quality image-to-video, 5-10s clips", capabilities=("image-to-video",)),
    ModelConfig("fal-ai/kling-video/v1/standard/image-to-video", "Kling 1.0 Standard", JobKind.VIDEO, 8,
                capabilities=("image-to-video",)),
    ModelConfig("fal-ai/kling-video/v2.6/pro/text-to-video", "Kling 2.6 Pro", JobKind.VIDEO, 25,
                capabilities=("text-to-video",)),
    ModelConfig("fal-ai/minimax/video-01/image-to-video", "MiniMax Video-01", JobKind.VIDEO, 12,
                capabilities=("image-to-video",)),
    ModelConfig("fal-ai/luma-dream-machine/image-to-video", "Luma Dream Machine", JobKind.VIDEO, 15,
                "Cinematic style", capabilities=("image-to-video",)),
]

AUDIO_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/elevenlabs/tts/multilingual-v2", "ElevenLabs Multilingual v2", JobKind.AUDIO, 3,
                "High quality multilingual TTS with word timestamps"),
    ModelConfig("fal-ai/elevenlabs/tts/turbo-v2.5", "ElevenLabs Turbo v2.5", JobKind.AUDIO, 2),
]

AGING_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/ai-baby-and-aging-generator/single", "Age Transform", JobKind.AGING, 4,
                "Age progression or regression from one person", sub_mode="single"),
    ModelConfig("fal-ai/ai-baby-and-aging-generator/multi", "Baby Prediction", JobKind.AGING, 4,
                "Predict a child from two parent photos", sub_mode="multi"),
]

UPSCALE_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/clarity-upscaler", "Clarity Upscaler", JobKind.UPSCALE, 3,
                "Faithful detail enhancement"),
    ModelConfig("fal-ai/creative-upscaler", "Creative Upscaler", JobKind.UPSCALE, 4,
                "Adds plausible detail while upscaling"),
]

VARIATION_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/flux/dev/redux", "FLUX Redux [dev]", JobKind.VARIATION, 3,
                "Faster variations, good quality"),
    ModelConfig("fal-ai/flux-pro/v1.1/redux", "FLUX1.1 Redux [pro]", JobKind.VARIATION, 5),
]

EDIT_MODELS: List[ModelConfig] = [
    ModelConfig("fal-ai/flux/dev/image-to-image", "FLUX Image-to-Image", JobKind.EDIT, 3),
    ModelConfig("fal-ai/flux-pro/v1/fill", "FLUX.1 Fill [pro]", JobKind.EDIT, 6,
                "Best quality inpainting and outpainting"),
    ModelConfig("fal-ai/nano-banana-pro/edit", "Nano Banana Pro Edit", JobKind.EDIT, 4),
]

MODELS_BY_KIND: Dict[JobKind, List[ModelConfig]] = {
    JobKind.IMAGE: IMAGE_MODELS,
    JobKind.VIDEO: VIDEO_MODELS,
    JobKind.AUDIO: AUDIO_MODELS,
    JobKind.AGING: AGING_MODELS,
    JobKind.UPSCALE: UPSCALE_MODELS,
    JobKind.VARIATION: VARIATION_MODELS,
    JobKind.EDIT: EDIT_MODELS,
}


def get_model(kind: JobKind, model_id: str) -> Optional[ModelConfig]:
    """Look up a model for a kind; None if it is not offered for that kind."""
    for model in MODELS_BY_KIND[kind]:
        if model.id == model_id:
            return model
    return None


def get_default_model(
    kind: JobKind,
    sub_mode: Optional[str] = None,
    capability: Optional[str] = None,
) -> ModelConfig:
    """
    First catalog entry for a kind.

    Aging picks by sub-mode; video picks the first model supporting the
    requested capability (text-to-video or image-to-video).
    """
    models = MODELS_BY_KIND[kind]
    if sub_mode is not None:
        for model in models:
            if model.sub_mode == sub_mode:
                return model
    if capability is not None:
        for model in models:
            if capability in model.capabilities:
                return model
    return models[0]


def compute_cost(
    model: ModelConfig,
    quantity: int = 1,
    quality: Optional[str] = None,
    style: Optional[str] = None,
) -> int:
    """
    Credits for one submission.

    Tier/style adjustments apply to the per-item cost first, then the
    result is multiplied by quantity.
    """
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")

    unit_cost = model.credits
    if quality and quality in model.quality_tiers:
        unit_cost = model.quality_tiers[quality]
    if style and style in model.style_multipliers:
        unit_cost = unit_cost * model.style_multipliers[style]

    return unit_cost * quantity


def list_models() -> Dict[str, List[dict]]:
    """Catalog grouped by kind, for the models endpoint."""
    return {
        kind.value: [model.to_dict() for model in models]
        for kind, models in MODELS_BY_KIND.items()
    }
