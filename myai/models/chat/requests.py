from pydantic import BaseModel, Field


class CreateConversationRequest(BaseModel):
    title: str = Field("New conversation", min_length=1, max_length=200)
    type: str = Field("chat", description="chat, business, rag, code or creative")
    model: str | None = Field(None, description="Model id ('provider/name'); defaults to the configured chat model")
    system_prompt: str | None = Field(None, max_length=5000, description="Overrides the preset for the conversation type")
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(2048, ge=1, le=8192)
    top_p: float = Field(1.0, ge=0.0, le=1.0)
    frequency_penalty: float = Field(0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(0.0, ge=-2.0, le=2.0)


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Message content")
