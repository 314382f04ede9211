from typing import Any

from pydantic import BaseModel


class UsageResponse(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(BaseModel):
    model: str
    content: str
    finish_reason: str | None
    usage: UsageResponse
    raw: dict[str, Any]


class TextCompletionResponse(BaseModel):
    model: str
    text: str
    finish_reason: str | None
    usage: UsageResponse


class EmbeddingResponse(BaseModel):
    model: str
    embeddings: list[list[float]]
    usage: UsageResponse
