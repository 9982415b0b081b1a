"""
Second ranking stage: pick the final models from the heuristic shortlist.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from falforge.catalog.models import ModelRecord
from falforge.config import settings
from falforge.ranking.heuristics import quality_order
from falforge.ranking.models import ModelSelection, ScoredModel
from falforge.utils.openai_client import get_json_completion

SELECTION_SYSTEM_MESSAGE = """You are an AI model selection expert. Given a user's request and available models, select the best models in order of preference.

IMPORTANT SELECTION CRITERIA:
1. QUALITY: Higher quality scores indicate better, more reliable models
2. RELEVANCE: How well the model matches the user's specific needs
3. SPECIALIZATION: Models specialized for the task are preferred
4. CONTEXT: Consider if user wants speed vs quality, artistic vs photorealistic, etc.
5. IMAGE REQUIREMENTS: NEVER select models that require images when the user hasn't provided one

For image generation:
- Flux models (especially flux/dev, flux-pro, and flux-kontext) are generally the highest quality
- Choose flux/schnell for speed, flux/dev for balance, flux-pro for maximum quality
- Use flux-kontext for complex prompts with detailed descriptions and context
- Consider recraft-v3 for artistic/design work

Respond with a JSON object: {"selected_models": ["<model id>", ...], "reasoning": "<brief explanation>"}"""


class QualityFallbackSelector:
    """Select by descending curated quality, skipping image-only models when no image was given."""

    async def select(
        self,
        query: str,
        candidates: List[ScoredModel],
        has_image_input: bool,
        limit: int,
    ) -> List[ModelRecord]:
        return quality_order(candidates, has_image_input, limit)


class LLMModelSelector:
    """
    Let an LLM choose among shortlisted models.

    The LLM's order is kept as returned. Unknown identifiers, and image-only
    models when no image was supplied, are dropped from its answer. When the
    call fails or leaves nothing usable, the quality fallback is used.
    """

    def __init__(
        self,
        completion_fn: Optional[Callable[..., Awaitable[Dict[str, Any]]]] = None,
        model: Optional[str] = None,
        fallback: Optional[QualityFallbackSelector] = None,
    ):
        self.completion_fn = completion_fn
        self.model = model or settings.openai_selector_model
        self.fallback = fallback or QualityFallbackSelector()
        self.logger = logging.getLogger(__name__)

    def build_prompt(self, query: str, candidates: List[ScoredModel], has_image_input: bool, limit: int) -> str:
        descriptions = "\n".join(
            f"{c.model.id}: {c.model.title} - {c.model.description} "
            f"(Category: {c.model.category}, Quality Score: {c.model.quality_score}, "
            f"Relevance Score: {c.score:.1f}{', Requires Image Input' if c.model.requires_image else ''})"
            for c in candidates
        )

        prompt = (
            f'User request: "{query}"\n'
            f"User has provided an image: {'YES' if has_image_input else 'NO'}\n\n"
            f"Available models:\n{descriptions}\n\n"
            f"Select the best {limit} models for this request, prioritizing quality and relevance."
        )
        if not has_image_input:
            prompt += " DO NOT select any models that require image input."
        return prompt

    async def select(
        self,
        query: str,
        candidates: List[ScoredModel],
        has_image_input: bool,
        limit: int,
    ) -> List[ModelRecord]:
        """
        Choose up to ``limit`` models from the shortlist.

        Args:
            query: The user query
            candidates: Heuristic shortlist, best first
            has_image_input: Whether the user supplied an image
            limit: Maximum number of models to return

        Returns:
            Selected models in the LLM's order of preference
        """
        if not candidates:
            return []

        completion_fn = self.completion_fn or get_json_completion

        try:
            response = await completion_fn(
                prompt=self.build_prompt(query, candidates, has_image_input, limit),
                system_message=SELECTION_SYSTEM_MESSAGE,
                temperature=0.1,
                model=self.model,
            )
            selection = ModelSelection.model_validate(response)
        except Exception as e:
            self.logger.error(f"Error in LLM model selection, falling back to quality order: {e}")
            return await self.fallback.select(query, candidates, has_image_input, limit)

        self.logger.info(f"LLM selection reasoning: {selection.reasoning}")

        by_id = {candidate.model.id: candidate.model for candidate in candidates}
        selected: List[ModelRecord] = []

        for endpoint_id in selection.selected_models:
            model = by_id.get(endpoint_id)
            if model is None:
                self.logger.warning(f"LLM selected unknown model {endpoint_id}, ignoring")
                continue
            if model.requires_image and not has_image_input:
                self.logger.warning(f"LLM selected image-only model {endpoint_id} without image input, ignoring")
                continue
            if model not in selected:
                selected.append(model)

        if not selected:
            self.logger.warning("LLM selection returned no usable models, falling back to quality order")
            return await self.fallback.select(query, candidates, has_image_input, limit)

        return selected[:limit]
