import httpx
import pytest

from myai.services.cache.cache_backend import InMemoryCacheBackend
from myai.services.model_registry_service import ModelRegistryService
from myai.services.model_selection.model_evaluation import RecommendationRequest
from myai.services.model_selection.model_recommendation_service import ModelRecommendationService
from myai.services.pricing_cache_service import PricingCacheService


@pytest.fixture
def recommendation_service(gateway, clock) -> ModelRecommendationService:
    pricing = PricingCacheService(gateway, InMemoryCacheBackend(), clock=clock)
    return ModelRecommendationService(ModelRegistryService(gateway, pricing, clock=clock))


def _ids(candidates) -> list[str]:
    return [candidate.model.id for candidate in candidates]


@pytest.mark.asyncio
async def test_vision_requirement_keeps_only_vision_models(recommendation_service):
    result = await recommendation_service.recommend_model(RecommendationRequest(needs_vision=True))

    assert result.success
    assert set(_ids(result.recommended)) == {"openai/gpt-4-turbo", "anthropic/claude-3-opus"}
    assert all(candidate.capabilities.supports_vision for candidate in result.recommended)
    assert result.alternatives == []
    assert result.total == 2


@pytest.mark.asyncio
async def test_results_are_ordered_by_score(recommendation_service):
    result = await recommendation_service.recommend_model(RecommendationRequest())

    scores = [candidate.score for candidate in result.recommended + result.alternatives]
    assert scores == sorted(scores, reverse=True)
    assert len(result.recommended) == 3
    assert result.total == 4
    # 200k context plus the vision bonus outranks everything else
    assert result.recommended[0].model.id == "anthropic/claude-3-opus"


@pytest.mark.asyncio
async def test_function_calling_and_context_requirements(recommendation_service):
    result = await recommendation_service.recommend_model(
        RecommendationRequest(needs_function_calling=True, max_tokens=100000)
    )

    assert _ids(result.recommended) == ["openai/gpt-4-turbo"]


@pytest.mark.asyncio
async def test_budget_excludes_expensive_models_but_keeps_unpriced_ones(recommendation_service):
    result = await recommendation_service.recommend_model(RecommendationRequest(budget=0.001))

    assert set(_ids(result.recommended)) == {"openai/gpt-3.5-turbo", "mistralai/codestral"}


@pytest.mark.asyncio
async def test_preferred_providers_narrow_candidates(recommendation_service):
    result = await recommendation_service.recommend_model(RecommendationRequest(preferred_providers=["anthropic"]))

    assert _ids(result.recommended) == ["anthropic/claude-3-opus"]


@pytest.mark.asyncio
async def test_unmatched_preferred_providers_are_ignored(recommendation_service):
    result = await recommendation_service.recommend_model(RecommendationRequest(preferred_providers=["acme"]))

    assert result.total == 4


@pytest.mark.asyncio
async def test_catalog_failure_is_reported_not_raised(recommendation_service, upstream):
    upstream.queue("GET", "/models", *[httpx.Response(503, json={}) for _ in range(3)])

    result = await recommendation_service.recommend_model(RecommendationRequest())

    assert not result.success
    assert result.error
    assert result.recommended == []
