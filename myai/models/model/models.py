from dataclasses import dataclass, field
from typing import Any

from myai.models.model.responses import (
    ModelCapabilitiesResponse,
    ModelDescriptionResponse,
    ModelPricingResponse,
)


@dataclass(frozen=True)
class ModelPricing:
    """Pricing information for a model, in USD per 1000 tokens"""
    prompt_per_thousand: float  # Input tokens
    completion_per_thousand: float  # Output tokens

    # Optional additional costs
    request: float | None = None  # Cost per request
    image: float | None = None  # Cost per image

    @property
    def average_per_thousand(self) -> float:
        return (self.prompt_per_thousand + self.completion_per_thousand) / 2

    def to_response(self) -> ModelPricingResponse:
        return ModelPricingResponse(
            prompt_per_thousand=self.prompt_per_thousand,
            completion_per_thousand=self.completion_per_thousand,
            request=self.request,
            image=self.image,
        )


@dataclass(frozen=True)
class ModelCapabilities:
    max_tokens: int
    supports_vision: bool
    supports_function_calling: bool

    def to_response(self) -> ModelCapabilitiesResponse:
        return ModelCapabilitiesResponse(
            max_tokens=self.max_tokens,
            supports_vision=self.supports_vision,
            supports_function_calling=self.supports_function_calling,
        )


@dataclass(frozen=True)
class ModelDescription:
    """Complete description of an upstream model, as returned by the catalog"""
    id: str  # Full model ID (e.g. "openai/gpt-4")
    name: str  # Human-readable name
    provider: str  # Provider name (e.g. "openai", "anthropic")
    description: str
    context_length: int  # Maximum context length in tokens, 0 when unknown
    input_modalities: list[str] = field(default_factory=lambda: ["text"])
    supported_parameters: list[str] = field(default_factory=list)
    pricing: ModelPricing | None = None  # None when the catalog carries no pricing
    top_provider: dict[str, Any] = field(default_factory=dict)
    per_request_limits: dict[str, Any] | None = None

    @property
    def declares_vision(self) -> bool:
        return "image" in self.input_modalities

    @property
    def declares_function_calling(self) -> bool:
        return "tools" in self.supported_parameters or "functions" in self.supported_parameters

    def to_response(self, capabilities: ModelCapabilities) -> ModelDescriptionResponse:
        return ModelDescriptionResponse(
            id=self.id,
            name=self.name,
            provider=self.provider,
            description=self.description,
            context_length=self.context_length,
            pricing=self.pricing.to_response() if self.pricing else None,
            capabilities=capabilities.to_response(),
        )
