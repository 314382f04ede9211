import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from myai.core.errors import NotFoundError
from myai.models.model.models import ModelCapabilities, ModelDescription
from myai.services.gateway.gateway_base import GatewayClient
from myai.services.pricing_cache_service import Clock, PricingCacheService, utc_now


logger = logging.getLogger(__name__)

MODEL_CATALOG_TTL_SECONDS = 3600

# Fallback capabilities for well-known models, used when the catalog is unavailable
MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    "openai/gpt-4": ModelCapabilities(max_tokens=8192, supports_vision=False, supports_function_calling=True),
    "openai/gpt-4-turbo": ModelCapabilities(max_tokens=128000, supports_vision=True, supports_function_calling=True),
    "openai/gpt-3.5-turbo": ModelCapabilities(max_tokens=4096, supports_vision=False, supports_function_calling=True),
    "anthropic/claude-3-opus": ModelCapabilities(max_tokens=200000, supports_vision=True, supports_function_calling=False),
    "anthropic/claude-3-sonnet": ModelCapabilities(max_tokens=200000, supports_vision=True, supports_function_calling=False),
    "google/gemini-pro": ModelCapabilities(max_tokens=32768, supports_vision=False, supports_function_calling=True),
    "google/gemini-pro-vision": ModelCapabilities(max_tokens=32768, supports_vision=True, supports_function_calling=True),
}

DEFAULT_CAPABILITIES = ModelCapabilities(max_tokens=4096, supports_vision=False, supports_function_calling=False)

MODEL_CATEGORIES = ["chat", "code", "image", "embedding", "reasoning", "creative", "other"]

# Checked in order, first match wins. Each rule: (category, id/name keywords, description keywords)
_CATEGORY_RULES: list[tuple[str, list[str], list[str]]] = [
    ("code", ["code", "codestral"], ["code"]),
    ("image", ["vision", "dall-e", "midjourney", "stable-diffusion"], ["image", "vision"]),
    ("embedding", ["embedding", "embed"], ["embedding", "vector"]),
    ("reasoning", ["o1", "reasoning"], ["reasoning", "thinking"]),
    ("creative", ["creative", "storytelling"], ["creative", "story"]),
    ("chat", ["chat", "gpt", "claude", "gemini"], ["chat", "conversation"]),
]


def merge_capabilities(static: ModelCapabilities, description: ModelDescription | None) -> ModelCapabilities:
    """
    Static defaults, overridden by catalog data when it is available.
    A known context length replaces the static ceiling; declared vision or
    function support switches the flag on and never switches it off.
    """
    if description is None:
        return static

    return replace(
        static,
        max_tokens=description.context_length if description.context_length > 0 else static.max_tokens,
        supports_vision=static.supports_vision or description.declares_vision,
        supports_function_calling=static.supports_function_calling or description.declares_function_calling,
    )


def categorize_model(model: ModelDescription) -> str:
    model_id = model.id.lower()
    model_name = model.name.lower()
    description = model.description.lower()

    for category, id_keywords, description_keywords in _CATEGORY_RULES:
        # Only the code rule looks at the display name
        names = [model_id, model_name] if category == "code" else [model_id]
        if any(keyword in name for keyword in id_keywords for name in names):
            return category
        if any(keyword in description for keyword in description_keywords):
            return category

    return "other"


class ModelRegistryService:
    """Model catalog cache plus the static capability table"""

    def __init__(
        self,
        gateway: GatewayClient,
        pricing_service: PricingCacheService,
        ttl_seconds: float = MODEL_CATALOG_TTL_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self._gateway = gateway
        self._pricing_service = pricing_service
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._cache: tuple[list[ModelDescription], datetime] | None = None

    def _invalidate_cache_if_needed(self) -> None:
        """Invalidate the cache if it has expired"""
        if self._cache is None:
            return

        _, cache_timestamp = self._cache
        if self._clock() - cache_timestamp >= self._ttl:
            self._cache = None

    async def get_all_models(self, provider: str | None = None) -> list[ModelDescription]:
        """
        Get all available models, using cache if available and valid.
        Raises UpstreamError when the catalog cannot be fetched.
        """
        self._invalidate_cache_if_needed()
        if self._cache is not None:
            models, _ = self._cache
        else:
            models = await self._gateway.get_models()
            self._cache = (models, self._clock())
            self._pricing_service.prime(models)

        if provider is not None:
            models = [m for m in models if m.provider == provider]

        return models

    async def get_model_by_id(self, model_id: str) -> ModelDescription | None:
        models = await self.get_all_models()
        return next((m for m in models if m.id == model_id), None)

    async def get_model_info(self, model_id: str) -> ModelDescription:
        """Catalog entry for the model, falling back to the upstream per-model endpoint"""
        try:
            model = await self.get_model_by_id(model_id)
        except Exception as e:
            logger.warning("Model catalog unavailable, querying model info directly model=%s: %s", model_id, e)
            model = None

        if model is not None:
            return model
        return await self._gateway.get_model_info(model_id)

    def get_model_capabilities(self, model_id: str, description: ModelDescription | None = None) -> ModelCapabilities:
        """Static capabilities (or a conservative default) merged with catalog data when given"""
        static = MODEL_CAPABILITIES.get(model_id, DEFAULT_CAPABILITIES)
        return merge_capabilities(static, description)

    async def get_capabilities_for(self, model_id: str) -> ModelCapabilities:
        try:
            description = await self.get_model_by_id(model_id)
        except Exception as e:
            logger.warning("Model catalog unavailable, using static capabilities model=%s: %s", model_id, e)
            description = None
        return self.get_model_capabilities(model_id, description)

    async def validate_model(self, model_id: str) -> bool:
        if not model_id:
            return False

        try:
            return await self.get_model_by_id(model_id) is not None
        except Exception as e:
            logger.warning("Model catalog unavailable, validating against static table model=%s: %s", model_id, e)
            return model_id in MODEL_CAPABILITIES

    async def require_known_model(self, model_id: str) -> None:
        """Reject unknown models before any upstream cost is incurred"""
        if not await self.validate_model(model_id):
            raise NotFoundError(f"Model '{model_id}' is not available. Choose a model from the catalog.")

    async def get_categorized_models(self) -> dict[str, list[dict[str, Any]]]:
        models = await self.get_all_models()

        categorized: dict[str, list[dict[str, Any]]] = {category: [] for category in MODEL_CATEGORIES}
        for model in models:
            categorized[categorize_model(model)].append({
                "id": model.id,
                "name": model.name,
                "description": model.description,
                "context_length": model.context_length,
                "pricing": model.pricing,
                "top_provider": model.top_provider,
                "per_request_limits": model.per_request_limits,
                "capabilities": self.get_model_capabilities(model.id, model),
            })

        # Cheapest first within each category; missing pricing sorts as free
        for entries in categorized.values():
            entries.sort(key=lambda entry: entry["pricing"].prompt_per_thousand if entry["pricing"] else 0.0)

        return categorized
