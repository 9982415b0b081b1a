from unittest.mock import AsyncMock, MagicMock

import pytest

from falforge.ranking.heuristics import (
    IMAGE_REQUIRED_PENALTY,
    detect_categories,
    detect_image_input,
    detect_intent,
    is_image_editing_request,
    quality_order,
    score_model,
    score_models,
    shortlist,
)
from falforge.ranking.models import QueryIntent
from falforge.ranking.ranker import ModelRanker
from falforge.ranking.selector import LLMModelSelector, QualityFallbackSelector


def by_id(models, endpoint_id):
    return next(model for model in models if model.id == endpoint_id)


@pytest.fixture
def mock_catalog(test_settings, catalog_models):
    catalog = MagicMock()
    catalog.settings = test_settings
    catalog.search = AsyncMock(return_value=catalog_models)
    return catalog


def test_detect_image_input():
    assert detect_image_input("edit this image to add a hat")
    assert detect_image_input("upscale https://example.com/cat.png please")
    assert detect_image_input("make my photo look old using the uploaded image")
    assert not detect_image_input("a cat wearing a hat")


def test_detect_categories():
    assert detect_categories("generate an image of a sunset") == ["text-to-image", "image-to-image"]
    assert detect_categories("upscale and improve my picture") == ["upscaling", "image-to-image"]
    assert detect_categories("a song about rain") == []


def test_detect_intent_flags():
    intent = detect_intent("a fast, photorealistic photo of a dog")

    assert intent.wants_fast
    assert intent.wants_photorealistic
    assert not intent.wants_high_quality
    assert not intent.has_complex_prompt

    assert detect_intent("x" * 101).has_complex_prompt
    assert detect_intent("an intricate castle").has_complex_prompt


def test_detect_intent_image_override():
    assert detect_intent("edit this image", has_image_input=False).has_image_input is False
    assert detect_intent("a cat", has_image_input=True).has_image_input is True


def test_curated_model_outscores_uncurated(catalog_models):
    """Same keyword overlap, the curated model wins on quality."""
    query = "generate an image of a mountain at sunset"
    intent = detect_intent(query)

    dev = score_model(by_id(catalog_models, "fal-ai/flux/dev"), intent, query)
    new = score_model(by_id(catalog_models, "fal-ai/some-new-model"), intent, query)

    assert dev.score > new.score
    assert dev.category_match and new.category_match


def test_image_only_model_is_penalized(catalog_models):
    query = "generate an image of a mountain"
    intent = detect_intent(query)

    scored = score_model(by_id(catalog_models, "fal-ai/flux/dev/image-to-image"), intent, query)

    assert scored.score < 0
    assert scored.score < -IMAGE_REQUIRED_PENALTY + 100


def test_preference_bonuses(catalog_models):
    schnell = by_id(catalog_models, "fal-ai/flux/schnell")
    query = "a cat"

    plain = score_model(schnell, QueryIntent(), query).score
    fast = score_model(schnell, QueryIntent(wants_fast=True), query).score
    realistic = score_model(schnell, QueryIntent(wants_photorealistic=True), query).score
    premium = score_model(schnell, QueryIntent(wants_high_quality=True), query).score

    assert fast == plain + 15
    assert realistic == plain + 15
    assert premium == plain + 20


def test_shortlist_caps_and_orders(catalog_models):
    intent = QueryIntent(categories=["text-to-image"])
    scored = score_models(catalog_models, intent, "image")

    kept = shortlist(scored, limit=1)

    assert len(kept) == 3
    assert [c.score for c in kept] == sorted((c.score for c in kept), reverse=True)
    assert len(shortlist(scored * 5, limit=20)) == 10


def test_quality_order_excludes_image_only(catalog_models):
    scored = score_models(catalog_models, QueryIntent(), "image")

    without_image = quality_order(scored, has_image_input=False, limit=10)
    with_image = quality_order(scored, has_image_input=True, limit=10)

    assert all(not model.requires_image for model in without_image)
    assert without_image[0].id == "fal-ai/flux/dev"
    assert any(model.requires_image for model in with_image)
    assert [m.quality_score for m in without_image] == sorted((m.quality_score for m in without_image), reverse=True)


def test_is_image_editing_request():
    assert is_image_editing_request("enhance this photo")
    assert is_image_editing_request("remove the background from the picture")
    assert not is_image_editing_request("draw a photo of a cat")


@pytest.mark.asyncio
async def test_llm_selector_keeps_llm_order(catalog_models):
    candidates = score_models(catalog_models, QueryIntent(), "image")
    completion = AsyncMock(return_value={
        "selected_models": ["fal-ai/flux/schnell", "fal-ai/flux/dev"],
        "reasoning": "fast first",
    })
    selector = LLMModelSelector(completion_fn=completion, model="test-model")

    selected = await selector.select("a fast image", candidates, has_image_input=False, limit=3)

    assert [m.id for m in selected] == ["fal-ai/flux/schnell", "fal-ai/flux/dev"]
    kwargs = completion.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0.1
    assert "User has provided an image: NO" in kwargs["prompt"]
    assert "DO NOT select any models that require image input." in kwargs["prompt"]


@pytest.mark.asyncio
async def test_llm_selector_drops_unknown_and_image_only(catalog_models):
    candidates = score_models(catalog_models, QueryIntent(), "image")
    completion = AsyncMock(return_value={
        "selected_models": ["fal-ai/made-up", "fal-ai/flux/dev/image-to-image", "fal-ai/flux/dev", "fal-ai/flux/dev"],
        "reasoning": "",
    })
    selector = LLMModelSelector(completion_fn=completion)

    selected = await selector.select("an image", candidates, has_image_input=False, limit=3)

    assert [m.id for m in selected] == ["fal-ai/flux/dev"]


@pytest.mark.asyncio
async def test_llm_selector_allows_image_models_with_image(catalog_models):
    candidates = score_models(catalog_models, QueryIntent(has_image_input=True), "image")
    completion = AsyncMock(return_value={"selected_models": ["fal-ai/flux/dev/image-to-image"]})
    selector = LLMModelSelector(completion_fn=completion)

    selected = await selector.select("edit this image", candidates, has_image_input=True, limit=3)

    assert [m.id for m in selected] == ["fal-ai/flux/dev/image-to-image"]


@pytest.mark.asyncio
@pytest.mark.parametrize("completion", [
    AsyncMock(side_effect=RuntimeError("LLM down")),
    AsyncMock(return_value={"selected_models": "not a list"}),
    AsyncMock(return_value={"selected_models": ["fal-ai/made-up"]}),
])
async def test_llm_selector_falls_back_to_quality(catalog_models, completion):
    candidates = score_models(catalog_models, QueryIntent(), "image")
    selector = LLMModelSelector(completion_fn=completion)

    selected = await selector.select("an image", candidates, has_image_input=False, limit=2)

    assert [m.id for m in selected] == ["fal-ai/flux/dev", "fal-ai/flux/schnell"]


@pytest.mark.asyncio
async def test_llm_selector_empty_candidates():
    completion = AsyncMock()
    selector = LLMModelSelector(completion_fn=completion)

    assert await selector.select("anything", [], has_image_input=False, limit=3) == []
    completion.assert_not_called()


@pytest.mark.asyncio
async def test_rank_prefers_curated_model(mock_catalog):
    """Without an LLM the quality order decides."""
    ranker = ModelRanker(mock_catalog, selector=QualityFallbackSelector(), search_limit=20)

    selected = await ranker.rank("generate an image of a mountain at sunset", limit=3)

    ids = [model.id for model in selected]
    assert ids[:2] == ["fal-ai/flux/dev", "fal-ai/flux/schnell"]
    assert "fal-ai/flux/dev/image-to-image" not in ids
    mock_catalog.search.assert_awaited_once_with(
        "generate an image of a mountain at sunset", ["text-to-image", "image-to-image"], 20
    )


@pytest.mark.asyncio
async def test_rank_never_returns_image_only_models_without_image(mock_catalog):
    completion = AsyncMock(return_value={"selected_models": ["fal-ai/flux/dev/image-to-image", "fal-ai/clarity-upscaler"]})
    ranker = ModelRanker(mock_catalog, selector=LLMModelSelector(completion_fn=completion), search_limit=20)

    selected = await ranker.rank("make an image", has_image_input=False, limit=3)

    assert selected
    assert all(not model.requires_image for model in selected)


@pytest.mark.asyncio
async def test_rank_respects_limit(mock_catalog):
    completion = AsyncMock(return_value={"selected_models": ["fal-ai/flux/dev", "fal-ai/flux/schnell", "fal-ai/some-new-model"]})
    ranker = ModelRanker(mock_catalog, selector=LLMModelSelector(completion_fn=completion), search_limit=20)

    selected = await ranker.rank("an image of a cat", limit=2)

    assert [m.id for m in selected] == ["fal-ai/flux/dev", "fal-ai/flux/schnell"]


@pytest.mark.asyncio
async def test_rank_catalog_failure_returns_empty(mock_catalog):
    mock_catalog.search.side_effect = RuntimeError("catalog down")
    selector = MagicMock()
    selector.select = AsyncMock()
    ranker = ModelRanker(mock_catalog, selector=selector, search_limit=20)

    assert await ranker.rank("an image of a cat") == []
    selector.select.assert_not_called()


@pytest.mark.asyncio
async def test_rank_warns_on_editing_without_image(mock_catalog, caplog):
    mock_catalog.search.return_value = []
    ranker = ModelRanker(mock_catalog, selector=QualityFallbackSelector(), search_limit=20)

    assert await ranker.rank("enhance the photo", has_image_input=False) == []
    assert "image editing" in caplog.text
