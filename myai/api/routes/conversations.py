from fastapi import APIRouter, status

from myai.api.dependencies import AuthContextDep, ChatServiceDep
from myai.models.chat.requests import CreateConversationRequest, SendMessageRequest
from myai.models.chat.responses import (
    ConversationListResponse,
    ConversationResponse,
    SendMessageResponse,
    StoredMessageResponse,
)

router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
)


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    request_body: CreateConversationRequest,
    context: AuthContextDep,
    chat_service: ChatServiceDep,
) -> ConversationResponse:
    return (await chat_service.create_conversation(context.user_id, request_body)).to_response()


@router.get("", response_model=ConversationListResponse)
async def list_conversations(context: AuthContextDep, chat_service: ChatServiceDep) -> ConversationListResponse:
    conversations = await chat_service.list_conversations(context.user_id)
    return ConversationListResponse(conversations=[c.to_response() for c in conversations])


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    context: AuthContextDep,
    chat_service: ChatServiceDep,
) -> ConversationResponse:
    return (await chat_service.get_conversation(conversation_id, context.user_id)).to_response()


@router.get("/{conversation_id}/messages", response_model=list[StoredMessageResponse])
async def get_messages(
    conversation_id: str,
    context: AuthContextDep,
    chat_service: ChatServiceDep,
) -> list[StoredMessageResponse]:
    messages = await chat_service.get_messages(conversation_id, context.user_id)
    return [message.to_response() for message in messages]


@router.post("/{conversation_id}/messages", response_model=SendMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    request_body: SendMessageRequest,
    context: AuthContextDep,
    chat_service: ChatServiceDep,
) -> SendMessageResponse:
    """
    Send a user message and get the assistant reply.

    When generation fails, the stored reply is a placeholder carrying the error and `warning` is set.
    """
    result = await chat_service.send_message(conversation_id, context.user_id, request_body.content)
    return SendMessageResponse(
        user_message=result.user_message.to_response(),
        assistant_message=result.assistant_message.to_response(),
        warning=result.warning,
    )
