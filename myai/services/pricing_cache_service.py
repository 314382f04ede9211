import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from myai.models.model.models import ModelDescription, ModelPricing
from myai.services.cache.cache_backend import CacheBackend
from myai.services.gateway.gateway_base import GatewayClient
from utils import non_negative


logger = logging.getLogger(__name__)

PRICING_CACHE_TTL_SECONDS = 3600  # 1 hour

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PricingCacheEntry:
    pricing: ModelPricing
    fetched_at: datetime


@dataclass(frozen=True)
class CostBreakdown:
    input_cost: float
    output_cost: float
    total: float
    pricing_available: bool  # False means the cost is zero because no pricing was found

    @classmethod
    def unavailable(cls) -> "CostBreakdown":
        return cls(input_cost=0.0, output_cost=0.0, total=0.0, pricing_available=False)


class PricingCacheService:
    """Time-boxed cache of per-model pricing, consumed by cost calculation"""

    def __init__(
        self,
        gateway: GatewayClient,
        cache_backend: CacheBackend,
        ttl_seconds: float = PRICING_CACHE_TTL_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self._gateway = gateway
        self._cache = cache_backend
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    @staticmethod
    def _cache_key(model_id: str) -> str:
        return f"pricing_{model_id}"

    def _read_cache(self, model_id: str) -> PricingCacheEntry | None:
        try:
            entry = self._cache.get(self._cache_key(model_id))
        except Exception as e:
            logger.warning("Pricing cache read failed, treating as miss model=%s: %s", model_id, e)
            return None

        if not isinstance(entry, PricingCacheEntry):
            return None

        # Stale entries are treated as absent
        if self._clock() - entry.fetched_at >= self._ttl:
            return None
        return entry

    def _write_cache(self, model_id: str, pricing: ModelPricing) -> None:
        entry = PricingCacheEntry(pricing=pricing, fetched_at=self._clock())
        try:
            self._cache.set(self._cache_key(model_id), entry)
        except Exception as e:
            logger.warning("Pricing cache write failed model=%s: %s", model_id, e)

    def prime(self, models: list[ModelDescription]) -> None:
        """Store pricing carried by a catalog refresh"""
        for model in models:
            if model.pricing is not None:
                self._write_cache(model.id, model.pricing)

    async def get_model_pricing(self, model_id: str) -> ModelPricing | None:
        """
        Return fresh cached pricing, or fetch it from the upstream model info.
        Returns None on any failure so cost calculation can degrade to zero.
        """
        if not model_id or not model_id.strip():
            logger.warning("Invalid model ID provided for pricing: %r", model_id)
            return None

        cached = self._read_cache(model_id)
        if cached is not None:
            return cached.pricing

        try:
            model_info = await self._gateway.get_model_info(model_id)
        except Exception as e:
            logger.warning("Failed to get pricing for model=%s: %s", model_id, e)
            return None

        if model_info.pricing is None:
            logger.warning("Model carries no pricing information model=%s", model_id)
            return None

        self._write_cache(model_id, model_info.pricing)
        return model_info.pricing

    async def calculate_cost_breakdown(self, model_id: str, input_tokens: int, output_tokens: int = 0) -> CostBreakdown:
        if not model_id:
            logger.warning("Model ID is required for cost calculation")
            return CostBreakdown.unavailable()

        pricing = await self.get_model_pricing(model_id)
        if pricing is None:
            logger.warning("No pricing information available, cost recorded as zero model=%s", model_id)
            return CostBreakdown.unavailable()

        input_cost = (non_negative(input_tokens) / 1000) * max(0.0, pricing.prompt_per_thousand)
        output_cost = (non_negative(output_tokens) / 1000) * max(0.0, pricing.completion_per_thousand)
        return CostBreakdown(
            input_cost=input_cost,
            output_cost=output_cost,
            total=input_cost + output_cost,
            pricing_available=True,
        )

    async def calculate_cost(self, model_id: str, input_tokens: int, output_tokens: int = 0) -> float:
        """Cost in USD; 0 when the model is empty or has no pricing. Never negative, never raises."""
        breakdown = await self.calculate_cost_breakdown(model_id, input_tokens, output_tokens)
        return breakdown.total
