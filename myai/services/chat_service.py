import logging
import time
from dataclasses import dataclass
from uuid import uuid4

from myai.core.errors import NotFoundError, UpstreamError, ValidationError
from myai.db.conversation_repo import ConversationRepo
from myai.db.user_repo import UserRepo
from myai.models.chat.models import (
    Conversation,
    ConversationSettings,
    ConversationStatus,
    ExchangeStatus,
    StoredMessage,
)
from myai.models.chat.requests import CreateConversationRequest
from myai.services.gateway.gateway_base import ChatRequest, ChatResponse, GatewayClient, GatewayMessage
from myai.services.model_registry_service import ModelRegistryService
from myai.services.pricing_cache_service import Clock, CostBreakdown, PricingCacheService, utc_now
from prompts.chat_prompts import FAILED_REPLY_PLACEHOLDER, system_prompt_for
from utils import not_none


logger = logging.getLogger(__name__)

MAX_HISTORY_LENGTH = 20


@dataclass
class ChatCompletionResult:
    status: ExchangeStatus
    response: ChatResponse
    cost: CostBreakdown
    response_time_ms: float


@dataclass
class SendMessageResult:
    status: ExchangeStatus
    user_message: StoredMessage
    assistant_message: StoredMessage
    warning: str | None = None


def split_model_id(model_id: str) -> tuple[str, str]:
    """'openai/gpt-4' -> ('openai', 'gpt-4'); ids without a provider keep an empty provider"""
    if "/" not in model_id:
        return "", model_id
    provider, name = model_id.split("/", 1)
    return provider, name


class ChatService:
    """Assembles conversation context, runs completions and keeps usage accounting"""

    def __init__(
        self,
        gateway: GatewayClient,
        registry: ModelRegistryService,
        pricing: PricingCacheService,
        conversation_repo: ConversationRepo,
        user_repo: UserRepo,
        default_model: str,
        max_history_length: int = MAX_HISTORY_LENGTH,
        clock: Clock = utc_now,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._pricing = pricing
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._default_model = default_model
        self._max_history_length = max_history_length
        self._clock = clock

    async def create_conversation(self, user_id: str, request: CreateConversationRequest) -> Conversation:
        model_id = request.model or self._default_model
        await self._registry.require_known_model(model_id)

        provider, name = split_model_id(model_id)
        now = self._clock()
        conversation = Conversation(
            id=str(uuid4()),
            user_id=user_id,
            title=request.title,
            type=request.type,
            status=ConversationStatus.ACTIVE,
            model_provider=provider,
            model_name=name,
            system_prompt=request.system_prompt or system_prompt_for(request.type),
            created_at=now,
            updated_at=now,
            settings=ConversationSettings(
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                top_p=request.top_p,
                frequency_penalty=request.frequency_penalty,
                presence_penalty=request.presence_penalty,
            ),
        )

        logger.info("Conversation created id=%s user=%s model=%s", conversation.id, user_id, model_id)
        return self._conversation_repo.create_conversation(conversation)

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = self._conversation_repo.get_conversation(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError(f"Conversation '{conversation_id}' not found")
        return conversation

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        return self._conversation_repo.list_conversations(user_id)

    async def get_messages(self, conversation_id: str, user_id: str) -> list[StoredMessage]:
        conversation = await self.get_conversation(conversation_id, user_id)
        return self._conversation_repo.get_messages(conversation.id)

    def build_context(self, conversation: Conversation, new_user_message: str) -> list[GatewayMessage]:
        """[system prompt] + recent user/assistant turns, oldest first + the new user message

        Must run before the new message is persisted, otherwise it would appear twice.
        """
        messages: list[GatewayMessage] = []
        if conversation.system_prompt:
            messages.append(GatewayMessage.system(conversation.system_prompt))

        history = self._conversation_repo.get_recent_messages(conversation.id, self._max_history_length)
        for message in history:
            if message.role == "user":
                messages.append(GatewayMessage.user(message.content))
            else:
                messages.append(GatewayMessage.assistant(message.content))

        messages.append(GatewayMessage.user(new_user_message))
        return messages

    async def get_chat_completion(self, conversation: Conversation, new_user_message: str) -> ChatCompletionResult:
        """Run one exchange and account for its usage. Upstream errors propagate."""
        self._validate_message(new_user_message)
        await self._registry.require_known_model(conversation.model_id)

        context = self.build_context(conversation, new_user_message)
        return await self._complete(conversation, context)

    async def send_message(self, conversation_id: str, user_id: str, content: str) -> SendMessageResult:
        """Persist a user turn and the assistant reply, or a placeholder when the upstream call fails"""
        self._validate_message(content)
        conversation = await self.get_conversation(conversation_id, user_id)
        await self._registry.require_known_model(conversation.model_id)

        context = self.build_context(conversation, content)
        user_message = self._conversation_repo.add_message(StoredMessage(
            id=str(uuid4()),
            conversation_id=conversation.id,
            role="user",
            content=content,
            created_at=self._clock(),
        ))

        try:
            result = await self._complete(conversation, context)
        except UpstreamError as e:
            assistant_message = self._conversation_repo.add_message(StoredMessage(
                id=str(uuid4()),
                conversation_id=conversation.id,
                role="assistant",
                content=FAILED_REPLY_PLACEHOLDER,
                created_at=self._clock(),
                error=str(e),
            ))
            return SendMessageResult(
                status=ExchangeStatus.FAILED,
                user_message=user_message,
                assistant_message=assistant_message,
                warning="AI response generation failed",
            )

        usage = result.response.usage
        assistant_message = self._conversation_repo.add_message(StoredMessage(
            id=str(uuid4()),
            conversation_id=conversation.id,
            role="assistant",
            content=result.response.content,
            created_at=self._clock(),
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            cost=result.cost.total,
            response_time_ms=result.response_time_ms,
        ))
        return SendMessageResult(
            status=result.status,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    async def _complete(self, conversation: Conversation, context: list[GatewayMessage]) -> ChatCompletionResult:
        settings = conversation.settings
        request = ChatRequest(
            messages=context,
            model=conversation.model_id,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            top_p=settings.top_p,
            frequency_penalty=settings.frequency_penalty,
            presence_penalty=settings.presence_penalty,
        )

        logger.debug("Exchange state=%s conversation=%s", ExchangeStatus.IN_FLIGHT.value, conversation.id)
        started = time.perf_counter()
        try:
            response = await self._gateway.chat_completion(request)
        except UpstreamError as e:
            logger.error(
                "Chat completion failed conversation=%s model=%s state=%s: %s",
                conversation.id,
                conversation.model_id,
                ExchangeStatus.FAILED.value,
                e,
            )
            raise
        response_time_ms = (time.perf_counter() - started) * 1000

        cost = await self._pricing.calculate_cost_breakdown(
            conversation.model_id,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )
        self._apply_accounting(conversation, response, cost, response_time_ms)

        return ChatCompletionResult(
            status=ExchangeStatus.COMPLETED,
            response=response,
            cost=cost,
            response_time_ms=response_time_ms,
        )

    def _apply_accounting(
        self,
        conversation: Conversation,
        response: ChatResponse,
        cost: CostBreakdown,
        response_time_ms: float,
    ) -> None:
        now = self._clock()
        tokens = response.usage.total_tokens

        self._conversation_repo.apply_usage(
            conversation_id=conversation.id,
            tokens=tokens,
            cost=cost.total,
            response_time_ms=response_time_ms,
            at=now,
        )

        user = not_none(self._user_repo.get_user_by_id(conversation.user_id), f"User {conversation.user_id}")
        usage = user.usage.record(tokens=tokens, requests=1, now=now)
        self._user_repo.save_usage(user.id, usage)

        logger.info(
            "Exchange accounted conversation=%s model=%s tokens=%d cost=%.6f pricing_available=%s",
            conversation.id,
            conversation.model_id,
            tokens,
            cost.total,
            cost.pricing_available,
        )

    @staticmethod
    def _validate_message(content: str) -> None:
        if not content or not content.strip():
            raise ValidationError("Message content is required")
