"""
Model Catalog client.

Searches the FAL model catalog and fetches per-endpoint OpenAPI documents.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from falforge.config import Settings, settings as default_settings
from falforge.catalog.models import ModelRecord, OpenAPISpecDocument
from falforge.utils.error_handling import CatalogError, async_retry

logger = logging.getLogger(__name__)


def build_search_input(
    query: str,
    category_filters: Optional[List[str]] = None,
    limit: int = 20,
) -> Dict[str, Any]:
    """Build the batched query envelope the catalog endpoint expects."""
    return {
        "0": {
            "json": {
                "keywords": query,
                "categories": list(category_filters or []),
                "tags": [],
                "type": [],
                "deprecated": False,
                "pendingEnterprise": False,
                "sort": "relevant",
                "page": 1,
                "limit": limit,
                "favorites": False,
                "useCache": True,
            }
        }
    }


def parse_search_response(payload: Any) -> List[ModelRecord]:
    """
    Extract model records from a batched catalog response.

    Items that fail to parse are skipped.
    """
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        return []

    records = []
    for entry in payload:
        try:
            items = entry["result"]["data"]["json"]["items"]
        except (KeyError, TypeError):
            continue

        for item in items or []:
            try:
                records.append(ModelRecord.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Skipping malformed catalog item: {e}")

    return records


def _is_transient(error: Exception) -> bool:
    return not isinstance(error, CatalogError) or error.retryable


class ModelCatalogClient:
    """
    Search the FAL model catalog and fetch OpenAPI documents for its endpoints.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the catalog client.

        Args:
            settings: Settings to use, defaults to the global settings
        """
        self.settings = settings or default_settings
        self.catalog_url = self.settings.fal_catalog_url
        self.openapi_url = self.settings.fal_openapi_url
        self.timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        self.logger = logging.getLogger(__name__)

        self._models: List[ModelRecord] = []
        self._initialized = False

        # Bind retry policy from settings
        self.search = async_retry(
            max_tries=max(1, self.settings.max_retries),
            exceptions=(aiohttp.ClientError, CatalogError),
            delay=self.settings.retry_delay_seconds,
            backoff=self.settings.retry_backoff,
            logger_obj=self.logger,
            should_retry=_is_transient,
        )(self._search)

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def _search(
        self,
        query: str,
        category_filters: Optional[List[str]] = None,
        limit: int = 20,
    ) -> List[ModelRecord]:
        """
        Search the remote catalog.

        Args:
            query: Free-text keywords
            category_filters: Catalog categories to restrict to
            limit: Maximum number of items to request

        Returns:
            Matching model records in catalog relevance order

        Raises:
            CatalogError: If the catalog answers with a non-2xx status
        """
        envelope = build_search_input(query, category_filters, limit)
        url = f"{self.catalog_url}?batch=1&input={quote(json.dumps(envelope))}"

        self.logger.info(f"Searching catalog for '{query}' (categories={category_filters or []}, limit={limit})")

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    raise CatalogError(
                        f"Catalog search failed: {response.status} {response.reason or ''}".strip(),
                        status=response.status,
                    )
                payload = await response.json(content_type=None)

        records = parse_search_response(payload)
        self.logger.info(f"Catalog returned {len(records)} models for '{query}'")
        return records

    async def initialize(self) -> None:
        """Load the full catalog once for local lookups."""
        if self._initialized:
            return

        self._models = await self.search("", limit=self.settings.catalog_preload_limit)
        self._initialized = True
        self.logger.info(f"Loaded {len(self._models)} FAL models")

    def all_models(self) -> List[ModelRecord]:
        return list(self._models)

    def search_loaded(self, query: str, category: Optional[str] = None) -> List[ModelRecord]:
        """
        Substring search over the loaded catalog.

        Highlighted models come first, then models sorted by title.
        """
        models = self._models

        if category:
            models = [model for model in models if model.category == category]

        if query:
            needle = query.lower()
            models = [
                model for model in models
                if needle in f"{model.title} {model.description} {model.category} {' '.join(model.tags)}".lower()
            ]

        return sorted(models, key=lambda model: (not model.highlighted, model.title))

    def get_models_by_category(self, category: str) -> List[ModelRecord]:
        return [model for model in self._models if model.category == category]

    def get_model(self, endpoint_id: str) -> Optional[ModelRecord]:
        for model in self._models:
            if model.id == endpoint_id:
                return model
        return None

    async def fetch_spec(self, endpoint_id: str) -> Optional[OpenAPISpecDocument]:
        """
        Fetch the OpenAPI document for an endpoint.

        Args:
            endpoint_id: Endpoint identifier, e.g. ``fal-ai/flux/dev``

        Returns:
            The parsed document, or None if it could not be fetched or parsed
        """
        url = f"{self.openapi_url}?endpoint_id={quote(endpoint_id, safe='')}"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        self.logger.error(f"Failed to fetch OpenAPI spec for {endpoint_id}: {response.status}")
                        return None
                    payload = await response.json(content_type=None)
        except Exception as e:
            self.logger.error(f"Error fetching OpenAPI spec for {endpoint_id}: {e}")
            return None

        if not isinstance(payload, dict):
            self.logger.error(f"OpenAPI spec for {endpoint_id} is not a JSON object")
            return None

        try:
            return OpenAPISpecDocument.model_validate(payload)
        except ValidationError as e:
            self.logger.error(f"Invalid OpenAPI spec for {endpoint_id}: {e}")
            return None

    async def get_model_with_spec(self, endpoint_id: str) -> Optional[Tuple[ModelRecord, OpenAPISpecDocument]]:
        """Loaded catalog record together with its OpenAPI document."""
        model = self.get_model(endpoint_id)
        if model is None:
            return None

        spec = await self.fetch_spec(endpoint_id)
        if spec is None:
            return None

        return model, spec
