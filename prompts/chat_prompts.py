"""
System prompt presets for conversations.
"""

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant. Answer the user's questions clearly and accurately."

BUSINESS_SYSTEM_PROMPT = (
    "You are the MyAI platform business assistant."
    " You help users with customer management, project management, contract management and finance questions."
)

TECHNICAL_SYSTEM_PROMPT = (
    "You are the MyAI platform technical assistant."
    " You help users solve technical problems and questions about using the system."
)

# Context is prepended to the user message by the caller
RAG_SYSTEM_PROMPT = (
    "You are an AI assistant that answers from a knowledge base."
    " Answer using the provided context. If the context does not contain the answer, say so explicitly."
)

SYSTEM_PROMPT_PRESETS = {
    "default": DEFAULT_SYSTEM_PROMPT,
    "business": BUSINESS_SYSTEM_PROMPT,
    "technical": TECHNICAL_SYSTEM_PROMPT,
    "rag": RAG_SYSTEM_PROMPT,
}

# Conversation type -> preset name
CONVERSATION_TYPE_PRESETS = {
    "business": "business",
    "code": "technical",
    "rag": "rag",
}

# Stored in place of the assistant reply when generation fails
FAILED_REPLY_PLACEHOLDER = (
    "I apologize, but I encountered an error while processing your message. Please try again."
)


def system_prompt_for(conversation_type: str) -> str:
    preset = CONVERSATION_TYPE_PRESETS.get(conversation_type, "default")
    return SYSTEM_PROMPT_PRESETS[preset]
