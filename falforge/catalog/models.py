"""
Data models for the Model Catalog component.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from falforge.catalog.curation import get_quality_score, requires_image_input

DEFAULT_QUEUE_URL = "https://queue.fal.run"


class ModelRecord(BaseModel):
    """A model entry from the FAL catalog, annotated with curation data."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", protected_namespaces=())

    id: str
    title: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    description: str = Field(default="", alias="shortDescription")
    quality_score: int = 0
    requires_image: bool = False
    deprecated: bool = False
    highlighted: bool = False
    model_url: Optional[str] = Field(default=None, alias="modelUrl")
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    license_type: Optional[str] = Field(default=None, alias="licenseType")
    kind: Optional[str] = None
    pricing: Optional[Any] = Field(default=None, alias="pricingInfoOverride")

    @model_validator(mode="before")
    @classmethod
    def annotate(cls, data: Any) -> Any:
        """Fill in the curated quality score and image requirement."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for key in ("title", "category", "shortDescription", "description"):
            if data.get(key) is None:
                data.pop(key, None)
        if data.get("tags") is None:
            data.pop("tags", None)

        if not data.get("quality_score"):
            data["quality_score"] = get_quality_score(data.get("id", ""))
        if "requires_image" not in data:
            data["requires_image"] = requires_image_input(data)
        return data

    @property
    def url(self) -> str:
        """Public model page, or the direct run URL when the catalog has none."""
        return self.model_url or f"https://fal.run/{self.id}"

    def summary(self) -> Dict[str, Any]:
        """Compact view used by tool outputs and the CLI."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "url": self.url,
            "highlighted": self.highlighted,
            "quality_score": self.quality_score,
            "requires_image": self.requires_image,
        }


class OpenAPISpecDocument(BaseModel):
    """OpenAPI document describing one endpoint's queue interface."""
    model_config = ConfigDict(extra="allow")

    openapi: str = ""
    info: Dict[str, Any] = Field(default_factory=dict)
    servers: List[Dict[str, Any]] = Field(default_factory=list)
    paths: Dict[str, Any] = Field(default_factory=dict)
    components: Dict[str, Any] = Field(default_factory=dict)

    @property
    def base_url(self) -> str:
        for server in self.servers:
            if isinstance(server, dict) and server.get("url"):
                return str(server["url"]).rstrip("/")
        return DEFAULT_QUEUE_URL

    @property
    def schemas(self) -> Dict[str, Any]:
        schemas = self.components.get("schemas")
        return schemas if isinstance(schemas, dict) else {}

    @property
    def metadata(self) -> Dict[str, Any]:
        metadata = self.info.get("x-fal-metadata")
        return metadata if isinstance(metadata, dict) else {}

    @property
    def endpoint_id(self) -> Optional[str]:
        return self.metadata.get("endpointId")

    @property
    def category(self) -> Optional[str]:
        return self.metadata.get("category")

    def find_submit_path(self) -> Optional[str]:
        """First path accepting a POST that is not a queue status path."""
        for path, operations in self.paths.items():
            if "/requests/" in path:
                continue
            if isinstance(operations, dict) and "post" in operations:
                return path
        return None

    def request_schema_name(self, path: Optional[str] = None) -> Optional[str]:
        """
        Component schema name of the JSON request body of a POST path.

        Args:
            path: Path to inspect, defaults to the submit path

        Returns:
            Schema name, or None when the body is missing or inline
        """
        path = path or self.find_submit_path()
        if not path:
            return None

        operation = (self.paths.get(path) or {}).get("post") or {}
        content = (operation.get("requestBody") or {}).get("content") or {}
        schema = (content.get("application/json") or {}).get("schema") or {}

        ref = schema.get("$ref")
        if isinstance(ref, str):
            return ref.split("/")[-1]
        return None
