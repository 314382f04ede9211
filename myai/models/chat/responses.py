from datetime import datetime

from pydantic import BaseModel


class ConversationSettingsResponse(BaseModel):
    temperature: float
    max_tokens: int
    top_p: float
    frequency_penalty: float
    presence_penalty: float


class ConversationStatsResponse(BaseModel):
    message_count: int
    total_tokens: int
    total_cost: float
    last_message_at: datetime | None
    avg_response_time_ms: float


class ConversationResponse(BaseModel):
    id: str
    title: str
    type: str
    status: str
    model_id: str
    system_prompt: str | None
    settings: ConversationSettingsResponse
    stats: ConversationStatsResponse
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]


class StoredMessageResponse(BaseModel):
    id: str
    role: str
    content: str
    created_at: datetime
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    response_time_ms: float | None
    error: str | None


class SendMessageResponse(BaseModel):
    user_message: StoredMessageResponse
    assistant_message: StoredMessageResponse
    warning: str | None = None
