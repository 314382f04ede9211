from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatMessageRequest(BaseModel):
    role: Literal["system", "user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")


class ChatCompletionRequest(BaseModel):
    messages: list[ChatMessageRequest] = Field(..., min_length=1, description="Conversation to complete")
    model: str | None = Field(None, description="Model identifier; defaults to the configured chat model")
    temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(2048, ge=1, description="Maximum tokens to generate")
    top_p: float = Field(1.0, ge=0.0, le=1.0)
    frequency_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    functions: list[dict[str, Any]] | None = None
    function_call: str | dict[str, Any] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    stop: str | list[str] | None = None


class TextCompletionRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="Prompt to complete")
    model: str | None = Field(None, description="Model identifier; defaults to the configured completion model")
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(2048, ge=1)
    top_p: float = Field(1.0, ge=0.0, le=1.0)
    frequency_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(0.0, ge=-2.0, le=2.0)


class EmbeddingRequest(BaseModel):
    input: str | list[str] = Field(..., description="Text or list of texts to embed")
    model: str | None = Field(None, description="Model identifier; defaults to the configured embedding model")
