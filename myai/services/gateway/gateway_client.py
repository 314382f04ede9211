import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import httpx
import openai
from openai import AsyncOpenAI, AsyncStream
from openai.types.chat import ChatCompletionChunk

from myai.core.errors import NotFoundError, UpstreamError, ValidationError
from myai.models.model.models import ModelDescription
from myai.services.gateway.gateway_base import (
    ChatCompletionStream,
    ChatRequest,
    ChatResponse,
    EmbeddingResponse,
    GatewayClient,
    GatewayMessage,
    StreamedChunk,
    TextCompletionParams,
    TextCompletionResponse,
    TokenUsage,
)
from myai.services.gateway.model_catalog import parse_model_description
from myai.services.gateway.retry_policy import RetryPolicy
from myai.settings import Settings


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _usage_from(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    return TokenUsage.from_counts(
        getattr(usage, "prompt_tokens", None),
        getattr(usage, "completion_tokens", None),
        getattr(usage, "total_tokens", None),
    )


def _translate_error(operation: str, error: Exception) -> UpstreamError | None:
    """Map SDK and transport exceptions onto UpstreamError; None for anything else"""
    if isinstance(error, openai.APIStatusError):
        return UpstreamError(f"{operation} failed", status_code=error.status_code, body=_response_body(error.response))
    if isinstance(error, openai.APIConnectionError):  # Includes timeouts
        return UpstreamError(f"{operation} failed: {error}")
    if isinstance(error, httpx.HTTPStatusError):
        return UpstreamError(f"{operation} failed", status_code=error.response.status_code, body=_response_body(error.response))
    if isinstance(error, httpx.TransportError):  # Includes timeouts
        return UpstreamError(f"{operation} failed: {error!r}")
    return None


class OpenRouterChatCompletionStream(ChatCompletionStream):
    """Wraps the SDK stream; closing it releases the underlying HTTP connection"""

    def __init__(self, stream: AsyncStream[ChatCompletionChunk], model: str) -> None:
        self._stream = stream
        self._model = model
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[StreamedChunk]:
        started = time.perf_counter()
        usage: TokenUsage | None = None
        try:
            async for chunk in self._stream:
                chunk_usage = _usage_from(chunk.usage) if getattr(chunk, "usage", None) else None
                usage = chunk_usage or usage

                if not chunk.choices:
                    if chunk_usage is not None:
                        yield StreamedChunk(content="", usage=chunk_usage)
                    continue

                choice = chunk.choices[0]
                content = choice.delta.content if choice.delta and choice.delta.content else ""
                yield StreamedChunk(content=content, finish_reason=choice.finish_reason, usage=chunk_usage)
        except Exception as e:
            translated = _translate_error("Streaming chat completion", e)
            if translated is None:
                raise
            logger.error("Streaming chat completion interrupted model=%s: %s", self._model, translated)
            raise translated from e
        finally:
            await self.aclose()

        logger.info(
            "Streaming chat completion finished model=%s usage=%s duration_ms=%.0f",
            self._model,
            usage.to_dict() if usage else None,
            _elapsed_ms(started),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stream.close()


class OpenRouterGatewayClient(GatewayClient):
    """Gateway to the OpenRouter aggregator API"""

    def __init__(
        self,
        settings: Settings,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.openrouter_base_url.rstrip("/")
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.openrouter_max_retries,
            base_delay=settings.openrouter_retry_delay_seconds,
        )
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=settings.openrouter_timeout_seconds)
        self._openai = AsyncOpenAI(
            base_url=self._base_url,
            api_key=settings.openrouter_api_key,
            http_client=self._http_client,
            timeout=settings.openrouter_timeout_seconds,
            max_retries=0,  # Retries are owned by RetryPolicy
            default_headers=self._attribution_headers(),
        )

    def _attribution_headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": self._settings.openrouter_app_url,
            "X-Title": self._settings.openrouter_app_title,
        }

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openrouter_api_key}",
            "Content-Type": "application/json",
            **self._attribution_headers(),
        }

    async def _call(self, operation: str, model: str | None, call: Callable[[], Awaitable[T]]) -> T:
        """Run one upstream operation through the retry policy, translating failures to UpstreamError"""

        async def attempt() -> T:
            try:
                return await call()
            except Exception as e:
                translated = _translate_error(operation, e)
                if translated is None:
                    raise
                raise translated from e

        started = time.perf_counter()
        try:
            return await self._retry_policy.run(attempt, description=f"{operation} model={model}")
        except UpstreamError as e:
            logger.error(
                "%s failed model=%s status=%s duration_ms=%.0f: %s",
                operation,
                model,
                e.status_code,
                _elapsed_ms(started),
                e,
            )
            raise

    async def _get_json(self, path: str) -> Any:
        response = await self._http_client.get(f"{self._base_url}{path}", headers=self._headers())
        response.raise_for_status()
        return response.json()

    def _validate_messages(self, messages: list[GatewayMessage]) -> None:
        if not messages:
            raise ValidationError("Messages array is required and cannot be empty")

    def _build_chat_params(self, request: ChatRequest, model: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": model,
            "messages": [message.to_dict() for message in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
        }

        # Optional parameters are only sent when set
        optional = {
            "functions": request.functions,
            "function_call": request.function_call,
            "tools": request.tools,
            "tool_choice": request.tool_choice,
            "stop": request.stop,
            "user": request.user,
        }
        params.update({key: value for key, value in optional.items() if value is not None})
        return params

    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        self._validate_messages(request.messages)
        model = request.model or self._settings.default_chat_model
        params = self._build_chat_params(request, model)

        logger.debug(
            "Chat completion request model=%s messages=%d temperature=%s max_tokens=%s",
            model,
            len(request.messages),
            request.temperature,
            request.max_tokens,
        )

        started = time.perf_counter()
        completion = await self._call(
            "Chat completion",
            model,
            lambda: self._openai.chat.completions.create(**params),
        )

        raw = completion.model_dump(exclude_unset=True)
        if not completion.choices:
            raise UpstreamError("Chat completion returned no choices", body=raw)

        choice = completion.choices[0]
        usage = _usage_from(completion.usage)
        logger.info(
            "Chat completion succeeded model=%s prompt_tokens=%d completion_tokens=%d total_tokens=%d finish_reason=%s duration_ms=%.0f",
            model,
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.total_tokens,
            choice.finish_reason,
            _elapsed_ms(started),
        )

        return ChatResponse(
            model=completion.model or model,
            content=choice.message.content or "",
            finish_reason=choice.finish_reason,
            usage=usage,
            raw=raw,
        )

    async def stream_chat_completion(self, request: ChatRequest) -> ChatCompletionStream:
        self._validate_messages(request.messages)
        model = request.model or self._settings.default_chat_model
        params = self._build_chat_params(request, model)

        # Only opening the stream is retried; once chunks flow a failure surfaces to the consumer
        stream = await self._call(
            "Streaming chat completion",
            model,
            lambda: self._openai.chat.completions.create(
                **params,
                stream=True,
                stream_options={"include_usage": True},
            ),
        )
        logger.info("Streaming chat completion opened model=%s messages=%d", model, len(request.messages))
        return OpenRouterChatCompletionStream(stream, model)

    def _validate_embedding_input(self, input: str | list[str]) -> None:
        if isinstance(input, str):
            if not input:
                raise ValidationError("Input text is required for embedding")
            return

        if not input:
            raise ValidationError("Input text is required for embedding")
        if not all(isinstance(item, str) and item for item in input):
            raise ValidationError("Every embedding input item must be a non-empty string")

    async def create_embedding(self, input: str | list[str], model: str | None = None) -> EmbeddingResponse:
        self._validate_embedding_input(input)
        model = model or self._settings.default_embedding_model
        expected_count = 1 if isinstance(input, str) else len(input)

        started = time.perf_counter()
        response = await self._call(
            "Embedding",
            model,
            lambda: self._openai.embeddings.create(model=model, input=input, encoding_format="float"),
        )

        ordered = sorted(response.data, key=lambda item: item.index)
        embeddings = [list(item.embedding) for item in ordered]
        if len(embeddings) != expected_count:
            raise UpstreamError(
                f"Embedding returned {len(embeddings)} vectors for {expected_count} inputs",
                body=response.model_dump(exclude_unset=True),
            )

        usage = _usage_from(response.usage)
        logger.info(
            "Embedding succeeded model=%s inputs=%d total_tokens=%d duration_ms=%.0f",
            model,
            expected_count,
            usage.total_tokens,
            _elapsed_ms(started),
        )
        return EmbeddingResponse(model=response.model or model, embeddings=embeddings, usage=usage)

    async def text_completion(self, prompt: str, params: TextCompletionParams | None = None) -> TextCompletionResponse:
        if not prompt:
            raise ValidationError("Prompt is required for text completion")

        params = params or TextCompletionParams()
        model = params.model or self._settings.default_completion_model
        request_params: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "top_p": params.top_p,
            "frequency_penalty": params.frequency_penalty,
            "presence_penalty": params.presence_penalty,
        }
        if params.stop is not None:
            request_params["stop"] = params.stop
        if params.user is not None:
            request_params["user"] = params.user

        started = time.perf_counter()
        completion = await self._call(
            "Text completion",
            model,
            lambda: self._openai.completions.create(**request_params),
        )

        raw = completion.model_dump(exclude_unset=True)
        if not completion.choices:
            raise UpstreamError("Text completion returned no choices", body=raw)

        choice = completion.choices[0]
        usage = _usage_from(completion.usage)
        logger.info(
            "Text completion succeeded model=%s prompt_tokens=%d completion_tokens=%d total_tokens=%d finish_reason=%s duration_ms=%.0f",
            model,
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.total_tokens,
            choice.finish_reason,
            _elapsed_ms(started),
        )

        return TextCompletionResponse(
            model=completion.model or model,
            text=choice.text or "",
            finish_reason=choice.finish_reason,
            usage=usage,
            raw=raw,
        )

    async def get_models(self) -> list[ModelDescription]:
        started = time.perf_counter()
        data = await self._call("Model catalog fetch", None, lambda: self._get_json("/models"))

        models = [parse_model_description(record) for record in data.get("data", []) if record.get("id")]
        logger.info("Model catalog fetched models=%d duration_ms=%.0f", len(models), _elapsed_ms(started))
        return models

    async def get_model_info(self, model_id: str) -> ModelDescription:
        if not model_id or not model_id.strip():
            raise ValidationError("Model ID is required")

        try:
            data = await self._call("Model info fetch", model_id, lambda: self._get_json(f"/models/{model_id}"))
        except UpstreamError as e:
            if e.status_code == 404:
                raise NotFoundError(f"Model '{model_id}' not found") from e
            raise

        record = data.get("data", data) if isinstance(data, dict) else None
        if not isinstance(record, dict):
            raise NotFoundError(f"Model '{model_id}' not found")

        logger.debug("Model info fetched model=%s", model_id)
        return parse_model_description({**record, "id": record.get("id") or model_id})

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
