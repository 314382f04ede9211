import httpx
import pytest

from myai.models.model.models import ModelPricing
from myai.services.cache.cache_backend import CacheBackend, InMemoryCacheBackend, NullCacheBackend, create_cache_backend
from myai.services.gateway.model_catalog import parse_pricing
from myai.services.pricing_cache_service import PricingCacheService


class BrokenCacheBackend(CacheBackend):
    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value):
        raise ConnectionError("cache down")


def _pricing_service(gateway, clock, backend=None) -> PricingCacheService:
    return PricingCacheService(gateway, backend or InMemoryCacheBackend(), ttl_seconds=3600, clock=clock)


def test_parse_pricing_converts_per_token_rates_to_per_thousand():
    pricing = parse_pricing({"prompt": "0.000002", "completion": "0.000004", "request": "0", "image": "0.001"})

    assert pricing.prompt_per_thousand == pytest.approx(0.002)
    assert pricing.completion_per_thousand == pytest.approx(0.004)
    assert pricing.request is None
    assert pricing.image == pytest.approx(0.001)


@pytest.mark.parametrize("raw", [None, {}, {"prompt": "-1", "completion": "-1"}, {"prompt": "n/a"}])
def test_parse_pricing_without_usable_rates(raw):
    assert parse_pricing(raw) is None


def test_create_cache_backend():
    assert isinstance(create_cache_backend(True), InMemoryCacheBackend)
    assert isinstance(create_cache_backend(False), NullCacheBackend)


@pytest.mark.asyncio
async def test_pricing_is_fetched_once_within_ttl(gateway, upstream, clock):
    service = _pricing_service(gateway, clock)

    first = await service.get_model_pricing("openai/gpt-3.5-turbo")
    clock.advance(minutes=59)
    second = await service.get_model_pricing("openai/gpt-3.5-turbo")

    assert first == second
    assert len(upstream.calls("GET", "/models/openai/gpt-3.5-turbo")) == 1


@pytest.mark.asyncio
async def test_pricing_is_refetched_after_ttl(gateway, upstream, clock):
    service = _pricing_service(gateway, clock)

    await service.get_model_pricing("openai/gpt-3.5-turbo")
    clock.advance(hours=1)
    await service.get_model_pricing("openai/gpt-3.5-turbo")

    assert len(upstream.calls("GET", "/models/openai/gpt-3.5-turbo")) == 2


@pytest.mark.asyncio
async def test_disabled_cache_fetches_every_time(gateway, upstream, clock):
    service = _pricing_service(gateway, clock, NullCacheBackend())

    await service.get_model_pricing("openai/gpt-3.5-turbo")
    await service.get_model_pricing("openai/gpt-3.5-turbo")

    assert len(upstream.calls("GET", "/models/openai/gpt-3.5-turbo")) == 2


@pytest.mark.asyncio
async def test_failing_cache_backend_is_treated_as_miss(gateway, clock):
    service = _pricing_service(gateway, clock, BrokenCacheBackend())

    pricing = await service.get_model_pricing("openai/gpt-3.5-turbo")

    assert pricing.prompt_per_thousand == pytest.approx(0.0005)


@pytest.mark.asyncio
async def test_primed_pricing_skips_upstream(gateway, upstream, clock):
    service = _pricing_service(gateway, clock)
    service.prime(await gateway.get_models())

    await service.get_model_pricing("anthropic/claude-3-opus")

    assert upstream.calls("GET", "/models/anthropic/claude-3-opus") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("model_id", ["", "   ", "nobody/nothing", "mistralai/codestral"])
async def test_missing_pricing_yields_zero_cost(gateway, clock, model_id):
    service = _pricing_service(gateway, clock)

    assert await service.get_model_pricing(model_id) is None
    assert await service.calculate_cost(model_id, 1000, 1000) == 0.0
    breakdown = await service.calculate_cost_breakdown(model_id, 1000, 1000)
    assert not breakdown.pricing_available


@pytest.mark.asyncio
async def test_upstream_failure_yields_zero_cost(gateway, upstream, clock):
    upstream.queue(
        "GET",
        "/models/openai/gpt-4-turbo",
        *[httpx.Response(503, json={"error": {"message": "down"}}) for _ in range(3)],
    )
    service = _pricing_service(gateway, clock)

    assert await service.calculate_cost("openai/gpt-4-turbo", 500, 500) == 0.0


@pytest.mark.asyncio
async def test_cost_uses_per_thousand_rates(gateway, clock):
    service = _pricing_service(gateway, clock)

    breakdown = await service.calculate_cost_breakdown("openai/gpt-4-turbo", 2000, 500)

    # 0.01 per 1000 prompt tokens, 0.03 per 1000 completion tokens
    assert breakdown.input_cost == pytest.approx(0.02)
    assert breakdown.output_cost == pytest.approx(0.015)
    assert breakdown.total == pytest.approx(0.035)
    assert breakdown.pricing_available


@pytest.mark.asyncio
async def test_cost_is_monotonic_and_never_negative(gateway, clock):
    service = _pricing_service(gateway, clock)

    costs = [await service.calculate_cost("openai/gpt-3.5-turbo", tokens, tokens) for tokens in (0, 10, 100, 1000)]

    assert costs == sorted(costs)
    assert costs[0] == 0.0
    assert await service.calculate_cost("openai/gpt-3.5-turbo", -50, -50) == 0.0


def test_average_rate():
    pricing = ModelPricing(prompt_per_thousand=0.002, completion_per_thousand=0.004)

    assert pricing.average_per_thousand == pytest.approx(0.003)
