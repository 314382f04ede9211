from datetime import datetime

from myai.db.database import Database, register_schema_sql
from myai.models.chat.models import (
    Conversation,
    ConversationSettings,
    ConversationStats,
    ConversationStatus,
    StoredMessage,
)


@register_schema_sql
def _create_conversations_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS conversations (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            type TEXT NOT NULL,
            status TEXT NOT NULL,
            model_provider TEXT NOT NULL,
            model_name TEXT NOT NULL,
            system_prompt TEXT,
            temperature REAL NOT NULL,
            max_tokens INTEGER NOT NULL,
            top_p REAL NOT NULL,
            frequency_penalty REAL NOT NULL,
            presence_penalty REAL NOT NULL,
            message_count INTEGER NOT NULL DEFAULT 0,
            total_tokens INTEGER NOT NULL DEFAULT 0,
            total_cost REAL NOT NULL DEFAULT 0,
            last_message_at TEXT,
            avg_response_time_ms REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """


@register_schema_sql
def _create_conversation_messages_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS conversation_messages (
            id TEXT PRIMARY KEY,
            conversation_id TEXT NOT NULL,
            role TEXT NOT NULL,
            content TEXT NOT NULL,
            prompt_tokens INTEGER NOT NULL DEFAULT 0,
            completion_tokens INTEGER NOT NULL DEFAULT 0,
            total_tokens INTEGER NOT NULL DEFAULT 0,
            cost REAL NOT NULL DEFAULT 0,
            response_time_ms REAL,
            error TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY (conversation_id) REFERENCES conversations(id)
        )
    """


@register_schema_sql
def _create_conversation_messages_index() -> str:
    return """
        CREATE INDEX IF NOT EXISTS idx_conversation_messages_conversation
        ON conversation_messages (conversation_id, created_at)
    """


_CONVERSATION_COLUMNS = """
    id, user_id, title, type, status, model_provider, model_name, system_prompt,
    temperature, max_tokens, top_p, frequency_penalty, presence_penalty,
    message_count, total_tokens, total_cost, last_message_at, avg_response_time_ms,
    created_at, updated_at
"""

_MESSAGE_COLUMNS = """
    id, conversation_id, role, content, prompt_tokens, completion_tokens, total_tokens,
    cost, response_time_ms, error, created_at
"""


class ConversationRepo:
    """Repository for conversations and their messages"""

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_conversation(self, conversation: Conversation) -> Conversation:
        settings = conversation.settings
        self.db.execute_update(
            f"""
            INSERT INTO conversations ({_CONVERSATION_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, 0, 0, NULL, 0, ?, ?)
            """,
            (
                conversation.id,
                conversation.user_id,
                conversation.title,
                conversation.type,
                conversation.status.value,
                conversation.model_provider,
                conversation.model_name,
                conversation.system_prompt,
                settings.temperature,
                settings.max_tokens,
                settings.top_p,
                settings.frequency_penalty,
                settings.presence_penalty,
                conversation.created_at.isoformat(),
                conversation.updated_at.isoformat(),
            ),
        )
        return conversation

    def get_conversation(self, conversation_id: str, user_id: str) -> Conversation | None:
        """Get a conversation owned by the given user, deleted ones excluded"""
        rows = self.db.execute_query(
            f"""
            SELECT {_CONVERSATION_COLUMNS}
            FROM conversations
            WHERE id = ? AND user_id = ? AND status != ?
            """,
            (conversation_id, user_id, ConversationStatus.DELETED.value),
        )
        if not rows:
            return None
        return self._row_to_conversation(rows[0])

    def list_conversations(self, user_id: str) -> list[Conversation]:
        rows = self.db.execute_query(
            f"""
            SELECT {_CONVERSATION_COLUMNS}
            FROM conversations
            WHERE user_id = ? AND status != ?
            ORDER BY updated_at DESC
            """,
            (user_id, ConversationStatus.DELETED.value),
        )
        return [self._row_to_conversation(row) for row in rows]

    def apply_usage(
        self,
        conversation_id: str,
        tokens: int,
        cost: float,
        response_time_ms: float,
        at: datetime,
    ) -> None:
        """Record one completed exchange in the conversation stats

        SET expressions read the pre-update row, so the running average uses the old message count.
        """
        self.db.execute_update(
            """
            UPDATE conversations SET
                total_tokens = total_tokens + ?,
                total_cost = total_cost + ?,
                avg_response_time_ms = (avg_response_time_ms * message_count + ?) / (message_count + 1),
                message_count = message_count + 1,
                last_message_at = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (tokens, cost, response_time_ms, at.isoformat(), at.isoformat(), conversation_id),
        )

    def add_message(self, message: StoredMessage) -> StoredMessage:
        self.db.execute_update(
            f"""
            INSERT INTO conversation_messages ({_MESSAGE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.conversation_id,
                message.role,
                message.content,
                message.prompt_tokens,
                message.completion_tokens,
                message.total_tokens,
                message.cost,
                message.response_time_ms,
                message.error,
                message.created_at.isoformat(),
            ),
        )
        self.db.execute_update(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (message.created_at.isoformat(), message.conversation_id),
        )
        return message

    def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        rows = self.db.execute_query(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM conversation_messages
            WHERE conversation_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (conversation_id,),
        )
        return [self._row_to_message(row) for row in rows]

    def get_recent_messages(self, conversation_id: str, limit: int) -> list[StoredMessage]:
        """Newest `limit` user/assistant messages without errors, oldest first"""
        if limit <= 0:
            return []

        rows = self.db.execute_query(
            f"""
            SELECT {_MESSAGE_COLUMNS} FROM (
                SELECT {_MESSAGE_COLUMNS}, rowid AS seq
                FROM conversation_messages
                WHERE conversation_id = ?
                  AND role IN ('user', 'assistant')
                  AND error IS NULL
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
            )
            ORDER BY created_at ASC, seq ASC
            """,
            (conversation_id, limit),
        )
        return [self._row_to_message(row) for row in rows]

    def _row_to_conversation(self, row: dict) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            type=row["type"],
            status=ConversationStatus(row["status"]),
            model_provider=row["model_provider"],
            model_name=row["model_name"],
            system_prompt=row["system_prompt"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            settings=ConversationSettings(
                temperature=row["temperature"],
                max_tokens=row["max_tokens"],
                top_p=row["top_p"],
                frequency_penalty=row["frequency_penalty"],
                presence_penalty=row["presence_penalty"],
            ),
            stats=ConversationStats(
                message_count=row["message_count"],
                total_tokens=row["total_tokens"],
                total_cost=row["total_cost"],
                last_message_at=datetime.fromisoformat(row["last_message_at"]) if row["last_message_at"] else None,
                avg_response_time_ms=row["avg_response_time_ms"],
            ),
        )

    def _row_to_message(self, row: dict) -> StoredMessage:
        return StoredMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
            prompt_tokens=row["prompt_tokens"],
            completion_tokens=row["completion_tokens"],
            total_tokens=row["total_tokens"],
            cost=row["cost"],
            response_time_ms=row["response_time_ms"],
            error=row["error"],
        )
