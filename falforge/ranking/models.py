"""
Data models for the Model Ranker component.
"""

from typing import List

from pydantic import BaseModel, Field

from falforge.catalog.models import ModelRecord


class QueryIntent(BaseModel):
    """Signals detected in a user query."""
    categories: List[str] = Field(default_factory=list)
    has_image_input: bool = False
    wants_high_quality: bool = False
    wants_fast: bool = False
    wants_photorealistic: bool = False
    wants_artistic: bool = False
    has_complex_prompt: bool = False


class ScoredModel(BaseModel):
    """A candidate model with its heuristic relevance score."""
    model: ModelRecord
    score: float = 0.0
    category_match: bool = False


class ModelSelection(BaseModel):
    """Structured answer of the LLM selection stage."""
    selected_models: List[str] = Field(default_factory=list)
    reasoning: str = ""
