import logging

from myai.models.model.models import ModelCapabilities, ModelDescription
from myai.services.model_registry_service import ModelRegistryService
from myai.services.model_selection.model_evaluation import (
    ModelRecommendation,
    RecommendationRequest,
    ScoredCandidate,
)


logger = logging.getLogger(__name__)

RECOMMENDED_COUNT = 3
ALTERNATIVES_COUNT = 5

VISION_BONUS = 10.0
FUNCTION_CALLING_BONUS = 5.0


class ModelRecommendationService:
    """Filters and scores catalog models against caller requirements"""

    def __init__(self, registry: ModelRegistryService) -> None:
        self._registry = registry

    async def recommend_model(self, requirements: RecommendationRequest) -> ModelRecommendation:
        try:
            models = await self._registry.get_all_models()
        except Exception as e:
            logger.error("Model recommendation failed, catalog unavailable: %s", e)
            return ModelRecommendation.failed(str(e))

        candidates: list[tuple[ModelDescription, ModelCapabilities]] = []
        for model in models:
            capabilities = self._registry.get_model_capabilities(model.id, model)
            if self._meets_requirements(model, capabilities, requirements):
                candidates.append((model, capabilities))

        candidates = self._apply_provider_preference(candidates, requirements.preferred_providers)

        scored = [
            ScoredCandidate(model=model, capabilities=capabilities, score=self.score_model(model, capabilities, requirements))
            for model, capabilities in candidates
        ]
        # sorted() is stable, so equal scores keep catalog order
        scored = sorted(scored, key=lambda candidate: candidate.score, reverse=True)

        logger.info(
            "Model recommendation computed catalog=%d candidates=%d requirements=%s",
            len(models),
            len(scored),
            requirements,
        )

        return ModelRecommendation(
            success=True,
            recommended=scored[:RECOMMENDED_COUNT],
            alternatives=scored[RECOMMENDED_COUNT:RECOMMENDED_COUNT + ALTERNATIVES_COUNT],
            total=len(scored),
        )

    def _meets_requirements(
        self,
        model: ModelDescription,
        capabilities: ModelCapabilities,
        requirements: RecommendationRequest,
    ) -> bool:
        if requirements.needs_vision and not capabilities.supports_vision:
            return False
        if requirements.needs_function_calling and not capabilities.supports_function_calling:
            return False
        if requirements.max_tokens and capabilities.max_tokens < requirements.max_tokens:
            return False

        # Models without pricing cannot be judged against a budget and are kept
        if requirements.budget and model.pricing is not None:
            if model.pricing.prompt_per_thousand > requirements.budget:
                return False

        return True

    def _apply_provider_preference(
        self,
        candidates: list[tuple[ModelDescription, ModelCapabilities]],
        preferred_providers: list[str],
    ) -> list[tuple[ModelDescription, ModelCapabilities]]:
        """Narrow to preferred providers, unless none of the candidates match"""
        if not preferred_providers:
            return candidates

        preferred = [
            (model, capabilities)
            for model, capabilities in candidates
            if any(model.id.startswith(provider) for provider in preferred_providers)
        ]
        return preferred if preferred else candidates

    def score_model(
        self,
        model: ModelDescription,
        capabilities: ModelCapabilities,
        requirements: RecommendationRequest,
    ) -> float:
        score = capabilities.max_tokens / 1000
        if capabilities.supports_vision:
            score += VISION_BONUS
        if capabilities.supports_function_calling:
            score += FUNCTION_CALLING_BONUS

        # Budget headroom bonus
        if requirements.budget and model.pricing is not None:
            score += max(0.0, (requirements.budget - model.pricing.average_per_thousand) * 1000)

        return score
