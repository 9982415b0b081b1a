"""
Curated quality scores and image-input requirements for catalog models.
"""

import re
from typing import Any, Mapping

DEFAULT_QUALITY_SCORE = 50

MODEL_QUALITY_SCORES = {
    # Image generation
    "fal-ai/flux/schnell": 95,
    "fal-ai/flux/dev": 98,
    "fal-ai/flux-pro": 100,
    "fal-ai/flux-realism": 92,
    "fal-ai/flux-kontext": 96,
    "fal-ai/stable-diffusion-v3-medium": 85,
    "fal-ai/sdxl": 80,
    "fal-ai/recraft-v3": 88,
    # Video generation
    "fal-ai/runway-gen3/turbo/image-to-video": 90,
    "fal-ai/luma-dream-machine": 85,
    "fal-ai/kling-video/v1/standard/image-to-video": 80,
    # Upscaling
    "fal-ai/clarity-upscaler": 92,
    "fal-ai/real-esrgan": 85,
    # Audio
    "fal-ai/stable-audio": 88,
    # 3D
    "fal-ai/triposr": 85,
}

IMAGE_REQUIRED_ID_MARKERS = ("image-to-image", "img2img", "upscaler", "upscaling", "super-resolution")
IMAGE_REQUIRED_TITLE_PATTERN = re.compile(r"\b(edit|modify|enhance|restore|colorize|inpaint|outpaint)\b", re.I)


def get_quality_score(endpoint_id: str) -> int:
    """Curated quality score for an endpoint, or the mid-range default."""
    return MODEL_QUALITY_SCORES.get(endpoint_id, DEFAULT_QUALITY_SCORE)


def requires_image_input(model: Mapping[str, Any]) -> bool:
    """
    Whether a model cannot run without an input image.

    Args:
        model: Catalog item or record dump with ``id``, ``title`` and ``category``

    Returns:
        True for image-to-image, upscaling and editing models
    """
    category = (model.get("category") or "").lower()
    endpoint_id = (model.get("id") or "").lower()
    title = model.get("title") or ""

    if category == "image-to-image":
        return True

    if any(marker in endpoint_id for marker in IMAGE_REQUIRED_ID_MARKERS):
        return True

    return bool(IMAGE_REQUIRED_TITLE_PATTERN.search(title))
