import json

import httpx
import pytest

from myai.core.errors import UpstreamError
from myai.events.completion_events import completion_started
from myai.services.completion_stream_service import CompletionStreamService
from myai.services.gateway.gateway_base import ChatCompletionStream, ChatRequest, GatewayMessage, StreamedChunk

from conftest import stream_body


def _request() -> ChatRequest:
    return ChatRequest(messages=[GatewayMessage.user("Say hello")])


@pytest.mark.asyncio
async def test_stream_emits_started_chunks_and_finished(gateway, upstream, settings):
    upstream.queue(
        "POST",
        "/chat/completions",
        httpx.Response(200, content=stream_body(["Hel", "lo"]), headers={"content-type": "text/event-stream"}),
    )
    service = CompletionStreamService(gateway, settings.default_chat_model)

    events = [event async for event in service.stream_completion(_request())]

    assert [event.event_type for event in events] == [
        "completion.started",
        "completion.chunk",
        "completion.chunk",
        "completion.finished",
    ]
    assert events[0].content == {"model": settings.default_chat_model}
    assert "".join(event.content["content"] for event in events[1:3]) == "Hello"
    assert events[-1].content == {
        "finish_reason": "stop",
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }
    assert len({event.metadata["completion_id"] for event in events}) == 1


@pytest.mark.asyncio
async def test_failure_opening_the_stream_propagates(gateway, upstream, settings):
    upstream.queue("POST", "/chat/completions", httpx.Response(402, json={"error": {"message": "no credits"}}))
    service = CompletionStreamService(gateway, settings.default_chat_model)

    with pytest.raises(UpstreamError) as exc_info:
        async for _ in service.stream_completion(_request()):
            pass

    assert exc_info.value.status_code == 402


def test_sse_formatting():
    event = completion_started("c-1", "openai/gpt-4")
    lines = event.format_sse().split("\n")

    assert lines[0] == "event: completion.started"
    payload = json.loads(lines[1].removeprefix("data: "))
    assert payload["type"] == "completion.started"
    assert payload["metadata"] == {"completion_id": "c-1"}
    assert event.format_sse().endswith("\n\n")


class _RecordingGateway:
    """Hands out the streams of the wrapped gateway and keeps the last one"""

    def __init__(self, gateway) -> None:
        self._gateway = gateway
        self.stream = None

    async def stream_chat_completion(self, request: ChatRequest):
        self.stream = await self._gateway.stream_chat_completion(request)
        return self.stream


class _BrokenStream(ChatCompletionStream):
    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield StreamedChunk(content="Hel")
        raise RuntimeError("malformed chunk")

    async def aclose(self) -> None:
        self.closed = True


class _BrokenGateway:
    def __init__(self) -> None:
        self.stream = _BrokenStream()

    async def stream_chat_completion(self, request: ChatRequest) -> ChatCompletionStream:
        return self.stream


@pytest.mark.asyncio
async def test_closing_after_started_event_closes_upstream_stream(gateway, upstream, settings):
    upstream.queue(
        "POST",
        "/chat/completions",
        httpx.Response(200, content=stream_body(["Hel", "lo"]), headers={"content-type": "text/event-stream"}),
    )
    recording = _RecordingGateway(gateway)
    service = CompletionStreamService(recording, settings.default_chat_model)

    events = service.stream_completion(_request())
    first = await anext(events)
    await events.aclose()

    assert first.event_type == "completion.started"
    assert recording.stream.closed


@pytest.mark.asyncio
async def test_unexpected_error_mid_stream_emits_failed_event_and_reraises(settings):
    broken = _BrokenGateway()
    service = CompletionStreamService(broken, settings.default_chat_model)
    received = []

    with pytest.raises(RuntimeError, match="malformed chunk"):
        async for event in service.stream_completion(_request()):
            received.append(event)

    assert [event.event_type for event in received] == [
        "completion.started",
        "completion.chunk",
        "completion.failed",
    ]
    assert received[-1].content == {"error": "malformed chunk", "status_code": None}
    assert broken.stream.closed
