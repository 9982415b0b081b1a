"""
Model Ranker: catalog search, heuristic shortlist, then model selection.
"""

import logging
from typing import List, Optional

from falforge.catalog.client import ModelCatalogClient
from falforge.catalog.models import ModelRecord
from falforge.ranking.heuristics import detect_intent, is_image_editing_request, score_models, shortlist
from falforge.ranking.selector import LLMModelSelector


class ModelRanker:
    """
    Rank catalog models for a user request.

    Scoring of the whole candidate set finishes before the selector runs, and
    the selector's order is returned as-is.
    """

    def __init__(
        self,
        catalog: ModelCatalogClient,
        selector: Optional[LLMModelSelector] = None,
        search_limit: Optional[int] = None,
    ):
        """
        Initialize the Model Ranker.

        Args:
            catalog: Client used to search the catalog
            selector: Second-stage selector, defaults to the LLM selector
            search_limit: Number of catalog results to score, defaults to settings
        """
        self.catalog = catalog
        self.selector = selector or LLMModelSelector()
        self.search_limit = search_limit or catalog.settings.catalog_search_limit
        self.logger = logging.getLogger(__name__)

    async def rank(
        self,
        user_query: str,
        has_image_input: Optional[bool] = None,
        limit: int = 3,
    ) -> List[ModelRecord]:
        """
        Rank catalog models for a request.

        Args:
            user_query: Natural-language request
            has_image_input: Whether an image was supplied; detected from the text when None
            limit: Maximum number of models to return

        Returns:
            Models ordered best first
        """
        intent = detect_intent(user_query, has_image_input)

        try:
            models = await self.catalog.search(user_query, intent.categories, self.search_limit)
        except Exception as e:
            self.logger.error(f"Error searching FAL models for '{user_query}': {e}")
            return []

        candidates = shortlist(score_models(models, intent, user_query), limit)

        skipped = [c.model for c in candidates if c.model.requires_image and not intent.has_image_input]
        for model in skipped:
            self.logger.info(f"Excluding image-only model {model.id} ({model.title}): no image provided")

        selected = (await self.selector.select(user_query, candidates, intent.has_image_input, limit))[:limit]

        if not selected and not intent.has_image_input and is_image_editing_request(user_query):
            self.logger.warning("Request looks like image editing but no image was provided")

        scores = {c.model.id: c.score for c in candidates}
        self.logger.info(
            f"Selected {len(selected)} models for '{user_query}' (image input: {intent.has_image_input})"
        )
        for position, model in enumerate(selected, start=1):
            self.logger.info(
                f"{position}. {model.id} (quality {model.quality_score}, score {scores.get(model.id, 0.0):.1f})"
            )

        return selected
