import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal

from myai.models.model.models import ModelDescription
from utils import non_negative


logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


@dataclass
class GatewayMessage:
    role: Role
    content: str

    @staticmethod
    def system(content: str) -> "GatewayMessage":
        return GatewayMessage(role="system", content=content)

    @staticmethod
    def user(content: str) -> "GatewayMessage":
        return GatewayMessage(role="user", content=content)

    @staticmethod
    def assistant(content: str) -> "GatewayMessage":
        return GatewayMessage(role="assistant", content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """A chat completion call. `model` falls back to the configured default chat model."""
    messages: list[GatewayMessage]
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    functions: list[dict[str, Any]] | None = None
    function_call: str | dict[str, Any] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    stop: str | list[str] | None = None
    user: str | None = None


@dataclass
class TextCompletionParams:
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stop: str | list[str] | None = None
    user: str | None = None


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> "TokenUsage":
        prompt = non_negative(prompt_tokens)
        completion = non_negative(completion_tokens)
        total = non_negative(total_tokens) if total_tokens is not None else prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class ChatResponse:
    model: str
    content: str
    finish_reason: str | None
    usage: TokenUsage
    raw: dict[str, Any] = field(default_factory=dict)  # Upstream body as received


@dataclass(frozen=True)
class TextCompletionResponse:
    model: str
    text: str
    finish_reason: str | None
    usage: TokenUsage
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmbeddingResponse:
    model: str
    embeddings: list[list[float]]  # One vector per input item, in input order
    usage: TokenUsage


@dataclass
class StreamedChunk:
    """Represents a chunk of a streamed chat completion"""
    content: str
    finish_reason: str | None = None
    usage: TokenUsage | None = None


class ChatCompletionStream(ABC):
    """Incrementally readable completion. Consume it to the end or call `aclose()`."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[StreamedChunk]:
        pass

    @abstractmethod
    async def aclose(self) -> None:
        pass

    async def __aenter__(self) -> "ChatCompletionStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class GatewayClient(ABC):
    """Abstract base class for upstream aggregator clients"""

    @abstractmethod
    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        pass

    @abstractmethod
    async def stream_chat_completion(self, request: ChatRequest) -> ChatCompletionStream:
        pass

    @abstractmethod
    async def create_embedding(self, input: str | list[str], model: str | None = None) -> EmbeddingResponse:
        pass

    @abstractmethod
    async def text_completion(self, prompt: str, params: TextCompletionParams | None = None) -> TextCompletionResponse:
        pass

    @abstractmethod
    async def get_models(self) -> list[ModelDescription]:
        pass

    @abstractmethod
    async def get_model_info(self, model_id: str) -> ModelDescription:
        pass

    async def health_check(self) -> dict[str, Any]:
        """Probe the catalog endpoint; never raises"""
        try:
            models = await self.get_models()
        except Exception as e:
            logger.error("Upstream health check failed: %s", e)
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "models_available": len(models)}
