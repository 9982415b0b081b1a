import copy
import json
from typing import Any, List, Optional
from unittest.mock import patch

import pytest

from falforge.config import Settings
from falforge.catalog.models import ModelRecord


class FakeResponse:
    """Stand-in for ``aiohttp.ClientResponse`` used as an async context manager."""

    def __init__(self, status: int = 200, payload: Any = None, reason: str = "OK", text: Optional[str] = None):
        self.status = status
        self.reason = reason
        self._payload = payload
        self._text = text

    async def json(self, content_type=None):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def text(self):
        if self._text is not None:
            return self._text
        return json.dumps(self._payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stand-in for ``aiohttp.ClientSession`` replaying queued responses in order."""

    def __init__(self):
        self.responses: List[Any] = []
        self.calls: List[dict] = []

    def queue(self, *responses: Any) -> "FakeSession":
        self.responses.extend(responses)
        return self

    def _request(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def http():
    """Patch aiohttp.ClientSession so every session replays the same response queue."""
    session = FakeSession()
    with patch("aiohttp.ClientSession", return_value=session):
        yield session


@pytest.fixture
def test_settings():
    """Settings with fast retries and polling and a dummy FAL key."""
    return Settings(
        openai_api_key="",
        fal_key="test-fal-key",
        max_retries=1,
        retry_delay_seconds=0.0,
        queue_poll_interval=0.0,
        queue_max_polls=5,
        request_timeout_seconds=5,
        execution_mode="submit",
    )


FLUX_SCHNELL_SPEC = {
    "openapi": "3.0.4",
    "info": {
        "title": "Queue OpenAPI for fal-ai/flux/schnell",
        "version": "1.0.0",
        "x-fal-metadata": {"endpointId": "fal-ai/flux/schnell", "category": "text-to-image"},
    },
    "servers": [{"url": "https://queue.fal.run"}],
    "paths": {
        "/fal-ai/flux/schnell/requests/{request_id}/status": {
            "get": {"responses": {"200": {"content": {"application/json": {
                "schema": {"$ref": "#/components/schemas/QueueStatus"}
            }}}}}
        },
        "/fal-ai/flux/schnell": {
            "post": {
                "requestBody": {"required": True, "content": {"application/json": {
                    "schema": {"$ref": "#/components/schemas/SchnellTextToImageInput"}
                }}},
                "responses": {"200": {"content": {"application/json": {
                    "schema": {"$ref": "#/components/schemas/QueueStatus"}
                }}}},
            }
        },
    },
    "components": {
        "schemas": {
            "QueueStatus": {
                "type": "object",
                "properties": {
                    "status": {"type": "string", "enum": ["IN_QUEUE", "IN_PROGRESS", "COMPLETED"]},
                    "request_id": {"type": "string"},
                },
                "required": ["status", "request_id"],
            },
            "SchnellTextToImageInput": {
                "type": "object",
                "title": "TextToImageInput",
                "properties": {
                    "prompt": {"type": "string", "description": "The prompt to generate an image from."},
                    "image_size": {
                        "anyOf": [
                            {"$ref": "#/components/schemas/ImageSize"},
                            {"type": "string", "enum": ["square_hd", "square", "landscape_4_3", "landscape_16_9"]},
                        ],
                        "default": "landscape_4_3",
                        "description": "The size of the generated image.",
                    },
                    "num_inference_steps": {"type": "integer", "minimum": 1, "maximum": 12, "default": 4},
                    "seed": {"type": "integer", "description": "Random seed."},
                    "num_images": {"type": "integer", "minimum": 1, "maximum": 4, "default": 1},
                    "enable_safety_checker": {"type": "boolean", "default": True},
                },
                "required": ["prompt"],
            },
            "ImageSize": {
                "type": "object",
                "properties": {
                    "width": {"type": "integer", "maximum": 14142, "default": 512},
                    "height": {"type": "integer", "maximum": 14142, "default": 512},
                },
            },
            "SchnellTextToImageOutput": {
                "type": "object",
                "properties": {"images": {"type": "array", "items": {"$ref": "#/components/schemas/Image"}}},
            },
            "Image": {
                "type": "object",
                "properties": {"url": {"type": "string"}, "width": {"type": "integer"}},
            },
        }
    },
}


@pytest.fixture
def flux_spec():
    return copy.deepcopy(FLUX_SCHNELL_SPEC)


def catalog_item(endpoint_id: str, title: str, category: str = "text-to-image",
                 description: str = "", **extra) -> dict:
    item = {
        "id": endpoint_id,
        "title": title,
        "category": category,
        "tags": [],
        "shortDescription": description,
        "thumbnailUrl": f"https://fal.media/{endpoint_id}.jpg",
        "modelUrl": f"https://fal.ai/models/{endpoint_id}",
        "licenseType": "commercial",
        "highlighted": False,
        "deprecated": False,
        "kind": "inference",
    }
    item.update(extra)
    return item


def catalog_payload(*items: dict) -> list:
    return [{"result": {"data": {"json": {"items": list(items)}}}}]


@pytest.fixture
def catalog_items():
    return [
        catalog_item("fal-ai/flux/dev", "FLUX.1 [dev]", description="Image generation of a mountain or any scene"),
        catalog_item("fal-ai/flux/schnell", "FLUX.1 [schnell]", description="Fast image generation"),
        catalog_item("fal-ai/some-new-model", "Some New Model", description="Image generation of a mountain or any scene"),
        catalog_item("fal-ai/flux/dev/image-to-image", "FLUX.1 [dev] Image-to-Image",
                     category="image-to-image", description="Transform an existing image"),
        catalog_item("fal-ai/clarity-upscaler", "Clarity Upscaler", category="upscaling",
                     description="Upscale images"),
        catalog_item("fal-ai/luma-dream-machine", "Luma Dream Machine", category="text-to-video",
                     description="Video generation"),
    ]


@pytest.fixture
def catalog_models(catalog_items):
    return [ModelRecord.model_validate(item) for item in catalog_items]
