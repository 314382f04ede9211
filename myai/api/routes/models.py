from fastapi import APIRouter, status
from fastapi.params import Query

from myai.api.dependencies import (
    AuthContextDep,
    PricingServiceDep,
    RecommendationServiceDep,
    RegistryDep,
)
from myai.models.model.requests import CostRequest, RecommendModelRequest
from myai.models.model.responses import (
    CategorizedModelResponse,
    CategorizedModelsResponse,
    CostResponse,
    ModelDescriptionResponse,
    ModelPricingLookupResponse,
    ModelRecommendationResponse,
    ModelsListResponse,
    ModelValidationResponse,
    ScoredModelResponse,
)
from myai.services.model_selection.model_evaluation import RecommendationRequest, ScoredCandidate

router = APIRouter(
    prefix="/models",
    tags=["models"],
)


def _scored_response(candidate: ScoredCandidate) -> ScoredModelResponse:
    return ScoredModelResponse(
        model=candidate.model.to_response(candidate.capabilities),
        score=candidate.score,
    )


@router.get("", response_model=ModelsListResponse, status_code=status.HTTP_200_OK)
async def list_models(
    context: AuthContextDep,
    registry: RegistryDep,
    provider: str | None = Query(None, description="Filter models by provider"),
) -> ModelsListResponse:
    """
    List the upstream model catalog with pricing and merged capabilities.

    The catalog is cached and refreshed after expiration.
    """
    models = await registry.get_all_models(provider=provider)
    return ModelsListResponse(
        models=[model.to_response(registry.get_model_capabilities(model.id, model)) for model in models]
    )


@router.get("/categorized", response_model=CategorizedModelsResponse)
async def list_categorized_models(context: AuthContextDep, registry: RegistryDep) -> CategorizedModelsResponse:
    categorized = await registry.get_categorized_models()
    return CategorizedModelsResponse(
        categories={
            category: [
                CategorizedModelResponse(
                    id=entry["id"],
                    name=entry["name"],
                    description=entry["description"],
                    context_length=entry["context_length"],
                    pricing=entry["pricing"].to_response() if entry["pricing"] else None,
                    top_provider=entry["top_provider"],
                    per_request_limits=entry["per_request_limits"],
                    capabilities=entry["capabilities"].to_response(),
                )
                for entry in entries
            ]
            for category, entries in categorized.items()
        }
    )


@router.post("/recommend", response_model=ModelRecommendationResponse)
async def recommend_model(
    request_body: RecommendModelRequest,
    context: AuthContextDep,
    recommendation_service: RecommendationServiceDep,
) -> ModelRecommendationResponse:
    recommendation = await recommendation_service.recommend_model(
        RecommendationRequest(
            budget=request_body.budget,
            needs_vision=request_body.needs_vision,
            needs_function_calling=request_body.needs_function_calling,
            max_tokens=request_body.max_tokens,
            preferred_providers=request_body.preferred_providers,
        )
    )
    return ModelRecommendationResponse(
        success=recommendation.success,
        recommended=[_scored_response(candidate) for candidate in recommendation.recommended],
        alternatives=[_scored_response(candidate) for candidate in recommendation.alternatives],
        total=recommendation.total,
        error=recommendation.error,
    )


@router.post("/cost", response_model=CostResponse)
async def calculate_cost(
    request_body: CostRequest,
    context: AuthContextDep,
    pricing_service: PricingServiceDep,
) -> CostResponse:
    breakdown = await pricing_service.calculate_cost_breakdown(
        request_body.model_id,
        request_body.input_tokens,
        request_body.output_tokens,
    )
    return CostResponse(
        model_id=request_body.model_id,
        input_tokens=request_body.input_tokens,
        output_tokens=request_body.output_tokens,
        input_cost=breakdown.input_cost,
        output_cost=breakdown.output_cost,
        total=breakdown.total,
        pricing_available=breakdown.pricing_available,
    )


# Model ids contain '/', so the suffixed routes are registered before the catch-all one
@router.get("/{model_id:path}/validate", response_model=ModelValidationResponse)
async def validate_model(model_id: str, context: AuthContextDep, registry: RegistryDep) -> ModelValidationResponse:
    return ModelValidationResponse(model_id=model_id, valid=await registry.validate_model(model_id))


@router.get("/{model_id:path}/pricing", response_model=ModelPricingLookupResponse)
async def get_model_pricing(
    model_id: str,
    context: AuthContextDep,
    pricing_service: PricingServiceDep,
) -> ModelPricingLookupResponse:
    pricing = await pricing_service.get_model_pricing(model_id)
    return ModelPricingLookupResponse(
        model_id=model_id,
        pricing=pricing.to_response() if pricing else None,
    )


@router.get("/{model_id:path}", response_model=ModelDescriptionResponse)
async def get_model(model_id: str, context: AuthContextDep, registry: RegistryDep) -> ModelDescriptionResponse:
    """Raises 404 when the model is unknown to the upstream catalog"""
    model = await registry.get_model_info(model_id)
    return model.to_response(registry.get_model_capabilities(model.id, model))
