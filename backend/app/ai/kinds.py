"""
Per-kind generation variants.

The generation service runs one state machine for every kind. What differs
between kinds lives here: the parameter schema, how parameters map onto the
provider payload, which asset type the results become, which input fields are
carried into asset metadata as provenance, and how the provider result is
turned into downloadable items.
"""
import posixpath
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from urllib.parse import urlparse

from pydantic import BaseModel

from app.ai.catalog import ModelConfig
from app.models.asset import AssetType
from app.models.generation_job import JobKind
from app.schemas.generation import (
    AgingParameters,
    AudioParameters,
    EditParameters,
    ImageParameters,
    UpscaleParameters,
    VariationParameters,
    VideoParameters,
)


@dataclass
class ResultItem:
    """One downloadable output of a finished provider request."""
    url: str
    content_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


DEFAULT_EXTENSIONS = {
    AssetType.IMAGE: "png",
    AssetType.VIDEO: "mp4",
    AssetType.AUDIO: "mp3",
    AssetType.MODEL_3D: "glb",
}

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "model/gltf-binary": "glb",
}


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# Payload builders

def _image_payload(params: ImageParameters, model: ModelConfig) -> Dict[str, Any]:
    payload = {
        "prompt": params.prompt,
        "image_size": {"width": params.width, "height": params.height},
        "num_images": params.num_images,
        "negative_prompt": params.negative_prompt,
        "seed": params.seed,
    }
    if model.quality_tiers:
        payload["quality"] = params.quality or "medium"
    if model.style_multipliers or "recraft" in model.id:
        payload["style"] = params.style or "realistic_image"
    return _drop_none(payload)


def _video_payload(params: VideoParameters, model: ModelConfig) -> Dict[str, Any]:
    return _drop_none({
        "prompt": params.prompt,
        "image_url": params.image_url,
        "duration": str(params.duration),
        "aspect_ratio": params.aspect_ratio,
        "negative_prompt": params.negative_prompt,
    })


def _audio_payload(params: AudioParameters, model: ModelConfig) -> Dict[str, Any]:
    return _drop_none({
        "text": params.text,
        "voice": params.voice,
        "stability": params.stability,
        "timestamps": True,
    })


def _aging_payload(params: AgingParameters, model: ModelConfig) -> Dict[str, Any]:
    payload = {
        "age_group": params.age_group,
        "gender": params.gender,
        "prompt": params.prompt,
        "num_images": params.num_images,
        "seed": params.seed,
        "output_format": params.output_format,
    }
    if params.sub_mode == "single":
        payload["id_image_urls"] = params.id_image_urls
    else:
        payload["mother_image_urls"] = params.mother_image_urls
        payload["father_image_urls"] = params.father_image_urls
        payload["father_weight"] = params.father_weight
    return _drop_none(payload)


def _upscale_payload(params: UpscaleParameters, model: ModelConfig) -> Dict[str, Any]:
    return _drop_none({
        "image_url": params.image_url,
        "upscale_factor": params.scale,
        "prompt": params.prompt,
    })


def _variation_payload(params: VariationParameters, model: ModelConfig) -> Dict[str, Any]:
    return _drop_none({
        "image_url": params.image_url,
        "prompt": params.prompt,
        "num_images": params.num_images,
        "seed": params.seed,
    })


def _edit_payload(params: EditParameters, model: ModelConfig) -> Dict[str, Any]:
    return _drop_none({
        "image_url": params.image_url,
        "prompt": params.prompt,
        "mask_url": params.mask_url,
        "strength": params.strength,
        "seed": params.seed,
    })


# Result extractors

def extract_images(result: Dict[str, Any]) -> List[ResultItem]:
    """
    Image-like results.

    Most models return {"images": [{url, width, height}]}; some return a
    single {"image": {...}}.
    """
    images = result.get("images")
    if not images and isinstance(result.get("image"), dict):
        images = [result["image"]]

    items = []
    for image in images or []:
        if not isinstance(image, dict) or not image.get("url"):
            continue
        items.append(ResultItem(
            url=image["url"],
            content_type=image.get("content_type"),
            metadata=_drop_none({
                "width": image.get("width"),
                "height": image.get("height"),
                "seed": result.get("seed"),
            }),
        ))
    return items


def extract_video(result: Dict[str, Any]) -> List[ResultItem]:
    video = result.get("video")
    if not isinstance(video, dict) or not video.get("url"):
        return []
    return [ResultItem(
        url=video["url"],
        content_type=video.get("content_type"),
        metadata=_drop_none({
            "file_size": video.get("file_size"),
            "seed": result.get("seed"),
        }),
    )]


def extract_audio(result: Dict[str, Any]) -> List[ResultItem]:
    audio = result.get("audio")
    url = audio.get("url") if isinstance(audio, dict) else result.get("audio_url")
    if not url:
        return []
    content_type = audio.get("content_type") if isinstance(audio, dict) else None
    return [ResultItem(
        url=url,
        content_type=content_type,
        metadata=_drop_none({
            "duration": result.get("duration"),
            "word_timestamps": result.get("timestamps"),
        }),
    )]


@dataclass(frozen=True)
class KindSpec:
    """Everything kind-specific the generation service needs."""
    kind: JobKind
    asset_type: AssetType
    parameters_model: Type[BaseModel]
    build_payload: Callable[[Any, ModelConfig], Dict[str, Any]]
    extract_results: Callable[[Dict[str, Any]], List[ResultItem]]
    provenance_fields: Tuple[str, ...] = ()
    prompt_field: Optional[str] = "prompt"

    def prompt_for(self, params: Dict[str, Any]) -> Optional[str]:
        if self.prompt_field is None:
            return None
        return params.get(self.prompt_field)

    def provenance(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {name: params[name] for name in self.provenance_fields if params.get(name) is not None}


KIND_SPECS: Dict[JobKind, KindSpec] = {
    JobKind.IMAGE: KindSpec(
        JobKind.IMAGE, AssetType.IMAGE, ImageParameters, _image_payload, extract_images,
        provenance_fields=("quality", "style"),
    ),
    JobKind.VIDEO: KindSpec(
        JobKind.VIDEO, AssetType.VIDEO, VideoParameters, _video_payload, extract_video,
        provenance_fields=("source_asset_id", "duration", "image_url"),
    ),
    JobKind.AUDIO: KindSpec(
        JobKind.AUDIO, AssetType.AUDIO, AudioParameters, _audio_payload, extract_audio,
        provenance_fields=("voice",),
        prompt_field="text",
    ),
    JobKind.AGING: KindSpec(
        JobKind.AGING, AssetType.IMAGE, AgingParameters, _aging_payload, extract_images,
        provenance_fields=(
            "sub_mode", "age_group", "gender", "source_asset_id",
            "mother_asset_id", "father_asset_id", "father_weight",
        ),
    ),
    JobKind.UPSCALE: KindSpec(
        JobKind.UPSCALE, AssetType.IMAGE, UpscaleParameters, _upscale_payload, extract_images,
        provenance_fields=("source_asset_id", "scale"),
    ),
    JobKind.VARIATION: KindSpec(
        JobKind.VARIATION, AssetType.IMAGE, VariationParameters, _variation_payload, extract_images,
        provenance_fields=("source_asset_id",),
    ),
    JobKind.EDIT: KindSpec(
        JobKind.EDIT, AssetType.IMAGE, EditParameters, _edit_payload, extract_images,
        provenance_fields=("source_asset_id", "mask_url"),
    ),
}


def get_kind_spec(kind: JobKind) -> KindSpec:
    return KIND_SPECS[JobKind(kind)]


def guess_extension(url: str, content_type: Optional[str], asset_type: AssetType) -> str:
    """File extension for a migrated result: content type, then URL path, then a per-type default."""
    if content_type:
        ext = CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if ext:
            return ext
    suffix = posixpath.splitext(urlparse(url).path)[1].lstrip(".").lower()
    if suffix and suffix.isalnum() and len(suffix) <= 5:
        return suffix
    return DEFAULT_EXTENSIONS[asset_type]
