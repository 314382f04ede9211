from typing import Any
from uuid import uuid4

from myai.events.sse_event import SseEvent
from myai.services.gateway.gateway_base import StreamedChunk, TokenUsage


completion_started_event_type = "completion.started"
completion_chunk_event_type = "completion.chunk"
completion_finished_event_type = "completion.finished"
completion_failed_event_type = "completion.failed"


def _completion_event(event_type: str, completion_id: str, content: dict[str, Any]) -> SseEvent:
    return SseEvent(
        event_type=event_type,
        content=content,
        metadata={"completion_id": completion_id},
        event_id=str(uuid4()),
    )


def completion_started(completion_id: str, model: str) -> SseEvent:
    return _completion_event(completion_started_event_type, completion_id, {"model": model})


def completion_chunk(completion_id: str, chunk: StreamedChunk) -> SseEvent:
    return _completion_event(
        completion_chunk_event_type,
        completion_id,
        {"content": chunk.content, "finish_reason": chunk.finish_reason},
    )


def completion_finished(completion_id: str, finish_reason: str | None, usage: TokenUsage | None) -> SseEvent:
    """Last event of a successful stream; `usage` is null when the upstream did not report it"""
    return _completion_event(
        completion_finished_event_type,
        completion_id,
        {"finish_reason": finish_reason, "usage": usage.to_dict() if usage is not None else None},
    )


def completion_failed(completion_id: str, error: str, status_code: int | None) -> SseEvent:
    return _completion_event(
        completion_failed_event_type,
        completion_id,
        {"error": error, "status_code": status_code},
    )
