"""
Model Ranker component.

Select the catalog models best suited to a user request, in two stages: a
heuristic shortlist followed by LLM selection with a quality-order fallback.
"""

from falforge.ranking.models import ModelSelection, QueryIntent, ScoredModel
from falforge.ranking.selector import LLMModelSelector, QualityFallbackSelector
from falforge.ranking.ranker import ModelRanker

__all__ = [
    "ModelRanker",
    "LLMModelSelector",
    "QualityFallbackSelector",
    "QueryIntent",
    "ScoredModel",
    "ModelSelection",
]
