from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from myai.models.chat.responses import (
    ConversationResponse,
    ConversationSettingsResponse,
    ConversationStatsResponse,
    StoredMessageResponse,
)


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class ExchangeStatus(str, Enum):
    """Lifecycle of a single user turn"""
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ConversationSettings:
    """Generation parameters submitted with every turn"""
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def to_response(self) -> ConversationSettingsResponse:
        return ConversationSettingsResponse(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )


@dataclass
class ConversationStats:
    message_count: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    last_message_at: datetime | None = None
    avg_response_time_ms: float = 0.0

    def to_response(self) -> ConversationStatsResponse:
        return ConversationStatsResponse(
            message_count=self.message_count,
            total_tokens=self.total_tokens,
            total_cost=self.total_cost,
            last_message_at=self.last_message_at,
            avg_response_time_ms=self.avg_response_time_ms,
        )


@dataclass
class Conversation:
    id: str
    user_id: str
    title: str
    type: str
    status: ConversationStatus
    model_provider: str
    model_name: str
    system_prompt: str | None
    created_at: datetime
    updated_at: datetime
    settings: ConversationSettings = field(default_factory=ConversationSettings)
    stats: ConversationStats = field(default_factory=ConversationStats)

    @property
    def model_id(self) -> str:
        """Upstream model identifier, 'provider/name'"""
        if self.model_provider and self.model_name:
            return f"{self.model_provider}/{self.model_name}"
        return self.model_name

    def to_response(self) -> ConversationResponse:
        return ConversationResponse(
            id=self.id,
            title=self.title,
            type=self.type,
            status=self.status.value,
            model_id=self.model_id,
            system_prompt=self.system_prompt,
            settings=self.settings.to_response(),
            stats=self.stats.to_response(),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass
class StoredMessage:
    id: str
    conversation_id: str
    role: str
    content: str
    created_at: datetime
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    response_time_ms: float | None = None
    error: str | None = None  # Set on placeholder messages for failed exchanges

    def to_response(self) -> StoredMessageResponse:
        return StoredMessageResponse(
            id=self.id,
            role=self.role,
            content=self.content,
            created_at=self.created_at,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            total_tokens=self.total_tokens,
            cost=self.cost,
            response_time_ms=self.response_time_ms,
            error=self.error,
        )
