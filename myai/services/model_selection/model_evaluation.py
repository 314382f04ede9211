from dataclasses import dataclass, field

from myai.models.model.models import ModelCapabilities, ModelDescription


@dataclass(frozen=True)
class RecommendationRequest:
    """Caller requirements for a model recommendation"""
    budget: float | None = None  # Maximum USD per 1000 prompt tokens
    needs_vision: bool = False
    needs_function_calling: bool = False
    max_tokens: int | None = None  # Minimum context window the model must support
    preferred_providers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScoredCandidate:
    model: ModelDescription
    capabilities: ModelCapabilities
    score: float


@dataclass(frozen=True)
class ModelRecommendation:
    success: bool
    recommended: list[ScoredCandidate] = field(default_factory=list)
    alternatives: list[ScoredCandidate] = field(default_factory=list)
    total: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "ModelRecommendation":
        return cls(success=False, error=error)
