"""
Heuristic scoring of catalog models against a user query.

Everything in this module is pure and synchronous so the first ranking stage
can be tested without a catalog or an LLM.
"""

import re
from typing import Dict, Iterable, List, Optional

from falforge.catalog.curation import requires_image_input
from falforge.catalog.models import ModelRecord
from falforge.ranking.models import QueryIntent, ScoredModel

CATEGORY_TERMS: Dict[str, List[str]] = {
    "image": ["text-to-image", "image-to-image"],
    "video": ["text-to-video", "image-to-video"],
    "audio": ["text-to-audio"],
    "upscale": ["upscaling"],
    "enhance": ["enhancement"],
    "edit": ["image-to-image"],
    "modify": ["image-to-image"],
    "improve": ["image-to-image", "upscaling"],
}

IMAGE_INPUT_PATTERNS = [
    re.compile(r"\b(image_url|img|jpg|png|jpeg|gif|bmp|webp|upload|attach|from.*image|edit.*image|modify.*image|change.*image)\b", re.I),
    re.compile(r"https?://.*\.(jpg|jpeg|png|gif|bmp|webp)", re.I),
    re.compile(r"\b(this image|the image|my image|uploaded image|attached image|given image|provided image|base64)\b", re.I),
    re.compile(r"\b(using.*image|with.*image|take.*image|from.*photo)\b", re.I),
]

HIGH_QUALITY_PATTERN = re.compile(r"\b(best|highest|premium|quality|professional|detailed)\b", re.I)
FAST_PATTERN = re.compile(r"\b(fast|quick|rapid|speed|instant)\b", re.I)
PHOTOREAL_PATTERN = re.compile(r"\b(photorealistic|realistic|photo|photograph)\b", re.I)
ARTISTIC_PATTERN = re.compile(r"\b(artistic|art|creative|stylized|illustration)\b", re.I)
COMPLEX_PATTERN = re.compile(r"\b(complex|detailed|intricate|elaborate|specific)\b", re.I)

COMPLEX_PROMPT_LENGTH = 100
MIN_RELEVANCE_SCORE = 5
HIGH_QUALITY_THRESHOLD = 90
SHORTLIST_QUALITY_THRESHOLD = 80
MAX_SHORTLIST = 10
IMAGE_REQUIRED_PENALTY = 1000


def detect_image_input(query: str) -> bool:
    """Whether the query signals that an image was supplied."""
    return any(pattern.search(query) for pattern in IMAGE_INPUT_PATTERNS)


def detect_categories(query: str) -> List[str]:
    """Catalog categories hinted at by the query, without duplicates."""
    lowered = query.lower()
    categories: List[str] = []
    for term, mapped in CATEGORY_TERMS.items():
        if term in lowered:
            categories.extend(c for c in mapped if c not in categories)
    return categories


def detect_intent(query: str, has_image_input: Optional[bool] = None) -> QueryIntent:
    """
    Detect categories and preference flags in a query.

    Args:
        query: The user query
        has_image_input: Known image-input state; detected from the text when None

    Returns:
        QueryIntent for the query
    """
    if has_image_input is None:
        has_image_input = detect_image_input(query)

    return QueryIntent(
        categories=detect_categories(query),
        has_image_input=has_image_input,
        wants_high_quality=bool(HIGH_QUALITY_PATTERN.search(query)),
        wants_fast=bool(FAST_PATTERN.search(query)),
        wants_photorealistic=bool(PHOTOREAL_PATTERN.search(query)),
        wants_artistic=bool(ARTISTIC_PATTERN.search(query)),
        has_complex_prompt=len(query) > COMPLEX_PROMPT_LENGTH or bool(COMPLEX_PATTERN.search(query)),
    )


def query_keywords(query: str) -> List[str]:
    return [word for word in query.lower().split() if len(word) > 2]


def score_model(model: ModelRecord, intent: QueryIntent, query: str) -> ScoredModel:
    """
    Score one model against the query.

    Args:
        model: Candidate model
        intent: Detected query intent
        query: The raw user query

    Returns:
        ScoredModel with the relevance score and category-match flag
    """
    searchable = f"{model.title} {model.description} {model.category}".lower()
    endpoint_id = model.id.lower()

    score = float(sum(1 for word in query_keywords(query) if word in searchable))
    score += model.quality_score * 0.1

    if intent.wants_high_quality and model.quality_score >= HIGH_QUALITY_THRESHOLD:
        score += 20
    if intent.wants_fast and ("schnell" in endpoint_id or "turbo" in endpoint_id):
        score += 15
    if intent.wants_photorealistic and ("flux" in endpoint_id or "realism" in endpoint_id):
        score += 15
    if intent.wants_artistic and ("recraft" in endpoint_id or "artistic" in endpoint_id):
        score += 15
    if intent.has_complex_prompt and "kontext" in endpoint_id:
        score += 25

    category_match = model.category in intent.categories
    if category_match:
        score += 10

    if not model.deprecated:
        score += 5

    if model.requires_image and not intent.has_image_input:
        score -= IMAGE_REQUIRED_PENALTY

    return ScoredModel(model=model, score=score, category_match=category_match)


def shortlist(scored: Iterable[ScoredModel], limit: int) -> List[ScoredModel]:
    """
    Keep promising candidates, best first.

    A candidate stays when its score clears the relevance threshold, its
    category was detected in the query, or its curated quality is high. The
    list is capped at three times the requested count, and never above ten.
    """
    kept = [
        candidate for candidate in scored
        if candidate.score > MIN_RELEVANCE_SCORE
        or candidate.category_match
        or candidate.model.quality_score >= SHORTLIST_QUALITY_THRESHOLD
    ]
    kept.sort(key=lambda candidate: candidate.score, reverse=True)
    return kept[:min(MAX_SHORTLIST, limit * 3)]


def score_models(models: Iterable[ModelRecord], intent: QueryIntent, query: str) -> List[ScoredModel]:
    return [score_model(model, intent, query) for model in models]


def quality_order(candidates: Iterable[ScoredModel], has_image_input: bool, limit: int) -> List[ModelRecord]:
    """
    Descending curated-quality order, used when no LLM selection is available.

    Image-requiring models are left out when no image was supplied.
    """
    models = [
        candidate.model for candidate in candidates
        if has_image_input or not candidate.model.requires_image
    ]
    models.sort(key=lambda model: model.quality_score, reverse=True)
    return models[:limit]


EDIT_VERB_PATTERN = re.compile(r"\b(edit|modify|enhance|upscale|improve|fix|restore|colorize|remove|add.*to|change.*in)\b", re.I)
IMAGE_NOUN_PATTERN = re.compile(r"\b(image|photo|picture|pic)\b", re.I)


def is_image_editing_request(query: str) -> bool:
    """Whether the query asks to change an existing picture."""
    return bool(EDIT_VERB_PATTERN.search(query) and IMAGE_NOUN_PATTERN.search(query))
