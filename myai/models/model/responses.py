from typing import Any

from pydantic import BaseModel


class ModelPricingResponse(BaseModel):
    prompt_per_thousand: float
    completion_per_thousand: float
    request: float | None = None
    image: float | None = None


class ModelCapabilitiesResponse(BaseModel):
    max_tokens: int
    supports_vision: bool
    supports_function_calling: bool


class ModelDescriptionResponse(BaseModel):
    id: str
    name: str
    provider: str
    description: str
    context_length: int
    pricing: ModelPricingResponse | None
    capabilities: ModelCapabilitiesResponse


class ModelsListResponse(BaseModel):
    models: list[ModelDescriptionResponse]


class CategorizedModelResponse(BaseModel):
    id: str
    name: str
    description: str
    context_length: int
    pricing: ModelPricingResponse | None
    top_provider: dict[str, Any]
    per_request_limits: dict[str, Any] | None
    capabilities: ModelCapabilitiesResponse


class CategorizedModelsResponse(BaseModel):
    categories: dict[str, list[CategorizedModelResponse]]


class ModelValidationResponse(BaseModel):
    model_id: str
    valid: bool


class ScoredModelResponse(BaseModel):
    model: ModelDescriptionResponse
    score: float


class ModelRecommendationResponse(BaseModel):
    success: bool
    recommended: list[ScoredModelResponse] = []
    alternatives: list[ScoredModelResponse] = []
    total: int = 0
    error: str | None = None


class CostResponse(BaseModel):
    model_id: str
    input_tokens: int
    output_tokens: int
    input_cost: float
    output_cost: float
    total: float
    pricing_available: bool


class ModelPricingLookupResponse(BaseModel):
    model_id: str
    pricing: ModelPricingResponse | None  # None when the model has no usable pricing
