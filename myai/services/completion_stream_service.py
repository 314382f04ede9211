import logging
from typing import AsyncGenerator
from uuid import uuid4

from myai.core.errors import UpstreamError
from myai.events.completion_events import (
    completion_chunk,
    completion_failed,
    completion_finished,
    completion_started,
)
from myai.events.sse_event import SseEvent
from myai.services.gateway.gateway_base import ChatRequest, GatewayClient, TokenUsage


logger = logging.getLogger(__name__)


class CompletionStreamService:
    """Relays a streamed chat completion as SSE events"""

    def __init__(self, gateway: GatewayClient, default_model: str) -> None:
        self._gateway = gateway
        self._default_model = default_model

    async def stream_completion(self, request: ChatRequest) -> AsyncGenerator[SseEvent, None]:
        """Errors raised before the first chunk propagate; later ones become a `completion.failed` event.

        Closing the generator early closes the upstream stream.
        """
        completion_id = str(uuid4())
        stream = await self._gateway.stream_chat_completion(request)

        finish_reason: str | None = None
        usage: TokenUsage | None = None
        async with stream:
            yield completion_started(completion_id, request.model or self._default_model)

            try:
                async for chunk in stream:
                    if chunk.finish_reason is not None:
                        finish_reason = chunk.finish_reason
                    if chunk.usage is not None:
                        usage = chunk.usage
                    if chunk.content:
                        yield completion_chunk(completion_id, chunk)
            except UpstreamError as e:
                logger.error("Completion stream failed id=%s: %s", completion_id, e)
                yield completion_failed(completion_id, str(e), e.status_code)
                return
            except Exception as e:
                logger.exception("Unexpected error in completion stream id=%s", completion_id)
                yield completion_failed(completion_id, str(e), None)
                raise

        yield completion_finished(completion_id, finish_reason, usage)
