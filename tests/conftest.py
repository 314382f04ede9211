import json
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from myai.api.dependencies import ServiceContainer, build_services
from myai.services.gateway.gateway_client import OpenRouterGatewayClient
from myai.services.gateway.retry_policy import RetryPolicy
from myai.settings import Settings


BASE_URL = "https://openrouter.test/api/v1"
API_PREFIX = "/api/v1"
TEST_API_KEY = "test-api-key"

CATALOG: list[dict[str, Any]] = [
    {
        "id": "openai/gpt-3.5-turbo",
        "name": "OpenAI: GPT-3.5 Turbo",
        "description": "Fast, inexpensive chat model",
        "context_length": 16385,
        "architecture": {"modality": "text->text", "input_modalities": ["text"]},
        "pricing": {"prompt": "0.0000005", "completion": "0.0000015", "request": "0", "image": "0"},
        "supported_parameters": ["tools", "tool_choice", "temperature"],
        "top_provider": {"context_length": 16385, "is_moderated": True},
        "per_request_limits": None,
    },
    {
        "id": "openai/gpt-4-turbo",
        "name": "OpenAI: GPT-4 Turbo",
        "description": "Large multimodal chat model",
        "context_length": 128000,
        "architecture": {"modality": "text+image->text"},
        "pricing": {"prompt": "0.00001", "completion": "0.00003"},
        "supported_parameters": ["tools", "temperature"],
        "top_provider": {},
        "per_request_limits": None,
    },
    {
        "id": "anthropic/claude-3-opus",
        "name": "Anthropic: Claude 3 Opus",
        "description": "Most capable model for complex tasks",
        "context_length": 200000,
        "architecture": {"input_modalities": ["text", "image"]},
        "pricing": {"prompt": "0.000015", "completion": "0.000075"},
        "supported_parameters": ["temperature"],
        "top_provider": {},
        "per_request_limits": None,
    },
    {
        "id": "mistralai/codestral",
        "name": "Mistral: Codestral",
        "description": "Model for programming tasks",
        "context_length": 32000,
        "architecture": {"input_modalities": ["text"]},
        "pricing": {"prompt": "-1", "completion": "-1"},
        "supported_parameters": [],
        "top_provider": {},
        "per_request_limits": None,
    },
]

Responder = httpx.Response | Callable[[httpx.Request], httpx.Response]


def chat_completion_body(
    content: str = "Hello!",
    model: str = "openai/gpt-3.5-turbo",
    prompt_tokens: int = 20,
    completion_tokens: int = 1,
    total_tokens: int | None = None,
) -> dict[str, Any]:
    return {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": total_tokens if total_tokens is not None else prompt_tokens + completion_tokens,
        },
    }


def stream_body(pieces: list[str], model: str = "openai/gpt-3.5-turbo") -> bytes:
    """SSE body for a streamed chat completion, ending with a usage-only chunk"""
    events = []
    for index, piece in enumerate(pieces):
        events.append({
            "id": "gen-1",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": model,
            "choices": [{
                "index": 0,
                "delta": {"role": "assistant", "content": piece},
                "finish_reason": "stop" if index == len(pieces) - 1 else None,
            }],
        })
    events.append({
        "id": "gen-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": model,
        "choices": [],
        "usage": {"prompt_tokens": 5, "completion_tokens": len(pieces), "total_tokens": 5 + len(pieces)},
    })

    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


class FakeUpstream:
    """Scriptable stand-in for the aggregator, mounted through httpx.MockTransport"""

    def __init__(self) -> None:
        self.catalog = [dict(record) for record in CATALOG]
        self.requests: list[httpx.Request] = []
        self._queued: dict[tuple[str, str], deque[Responder]] = defaultdict(deque)

    def queue(self, method: str, path: str, *responders: Responder) -> None:
        self._queued[(method, path)].extend(responders)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    def json_body(self, method: str, path: str, index: int = -1) -> dict[str, Any]:
        return json.loads(self.calls(method, path)[index].content)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix(API_PREFIX)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)

        queued = self._queued.get((request.method, path))
        if queued:
            responder = queued.popleft()
            return responder(request) if callable(responder) else responder

        if request.method == "GET" and path == "/models":
            return httpx.Response(200, json={"data": self.catalog})
        if request.method == "GET" and path.startswith("/models/"):
            model_id = path.removeprefix("/models/")
            record = next((m for m in self.catalog if m["id"] == model_id), None)
            if record is None:
                return httpx.Response(404, json={"error": {"message": "Model not found"}})
            return httpx.Response(200, json={"data": record})
        if request.method == "POST" and path == "/chat/completions":
            return httpx.Response(200, json=chat_completion_body())

        return httpx.Response(500, json={"error": {"message": f"Unexpected request {request.method} {path}"}})


class FakeClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        api_key=TEST_API_KEY,
        db_path=str(tmp_path / "myai.db"),
        openrouter_api_key="sk-or-test",
        openrouter_base_url=BASE_URL,
        openrouter_max_retries=3,
        openrouter_retry_delay_seconds=1.0,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(settings: Settings, http_client: httpx.AsyncClient, sleep: RecordingSleep) -> OpenRouterGatewayClient:
    return OpenRouterGatewayClient(
        settings,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep),
        http_client=http_client,
    )


@pytest.fixture
def services(settings: Settings, http_client: httpx.AsyncClient, sleep: RecordingSleep) -> ServiceContainer:
    services = build_services(settings, http_client=http_client, sleep=sleep)
    services.database.setup()
    return services
