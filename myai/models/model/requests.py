from pydantic import BaseModel, Field


class RecommendModelRequest(BaseModel):
    budget: float | None = Field(None, gt=0, description="Maximum price per 1000 prompt tokens (USD)")
    needs_vision: bool = False
    needs_function_calling: bool = False
    max_tokens: int | None = Field(None, gt=0, description="Minimum context window the model must support")
    preferred_providers: list[str] = Field(default_factory=list, description="Provider prefixes, e.g. 'openai'")


class CostRequest(BaseModel):
    model_id: str = Field(..., min_length=1)
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(0, ge=0)
