from typing import AsyncGenerator

from fastapi import APIRouter, status
from fastapi.responses import StreamingResponse

from myai.api.dependencies import AuthContextDep, CompletionStreamServiceDep, GatewayDep
from myai.models.completion.requests import ChatCompletionRequest, TextCompletionRequest
from myai.models.completion.responses import (
    ChatCompletionResponse,
    TextCompletionResponse,
    UsageResponse,
)
from myai.request_context import RequestContext
from myai.services.gateway.gateway_base import (
    ChatRequest,
    GatewayMessage,
    TextCompletionParams,
    TokenUsage,
)

router = APIRouter(
    prefix="/completions",
    tags=["completions"],
)


def _usage_response(usage: TokenUsage) -> UsageResponse:
    return UsageResponse(**usage.to_dict())


def _build_chat_request(request_body: ChatCompletionRequest, context: RequestContext) -> ChatRequest:
    return ChatRequest(
        messages=[GatewayMessage(role=msg.role, content=msg.content) for msg in request_body.messages],
        model=request_body.model,
        temperature=request_body.temperature,
        max_tokens=request_body.max_tokens,
        top_p=request_body.top_p,
        frequency_penalty=request_body.frequency_penalty,
        presence_penalty=request_body.presence_penalty,
        functions=request_body.functions,
        function_call=request_body.function_call,
        tools=request_body.tools,
        tool_choice=request_body.tool_choice,
        stop=request_body.stop,
        user=context.user_id,
    )


@router.post("/chat", response_model=ChatCompletionResponse, status_code=status.HTTP_200_OK)
async def create_chat_completion(
    request_body: ChatCompletionRequest,
    context: AuthContextDep,
    gateway: GatewayDep,
) -> ChatCompletionResponse:
    """
    Get a chat completion without saving it to any conversation history.
    """
    response = await gateway.chat_completion(_build_chat_request(request_body, context))
    return ChatCompletionResponse(
        model=response.model,
        content=response.content,
        finish_reason=response.finish_reason,
        usage=_usage_response(response.usage),
        raw=response.raw,
    )


@router.post("/chat/stream", status_code=status.HTTP_200_OK)
async def create_chat_completion_stream(
    request_body: ChatCompletionRequest,
    context: AuthContextDep,
    stream_service: CompletionStreamServiceDep,
) -> StreamingResponse:
    """
    Stream a chat completion as Server-Sent Events without saving it to any conversation history.
    """
    events = stream_service.stream_completion(_build_chat_request(request_body, context))
    # Pull the first event here so that errors raised opening the stream map to an HTTP status
    first_event = await anext(events)

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            yield first_event.format_sse()
            async for event in events:
                yield event.format_sse()
        finally:
            await events.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering in nginx
        },
    )


@router.post("/text", response_model=TextCompletionResponse)
async def create_text_completion(
    request_body: TextCompletionRequest,
    context: AuthContextDep,
    gateway: GatewayDep,
) -> TextCompletionResponse:
    response = await gateway.text_completion(
        request_body.prompt,
        TextCompletionParams(
            model=request_body.model,
            temperature=request_body.temperature,
            max_tokens=request_body.max_tokens,
            top_p=request_body.top_p,
            frequency_penalty=request_body.frequency_penalty,
            presence_penalty=request_body.presence_penalty,
        ),
    )
    return TextCompletionResponse(
        model=response.model,
        text=response.text,
        finish_reason=response.finish_reason,
        usage=_usage_response(response.usage),
    )
