from datetime import datetime

from myai.db.database import Database, register_schema_sql
from myai.models.user import AiUsage, User


@register_schema_sql
def _create_users_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            api_key TEXT NOT NULL UNIQUE,
            total_tokens INTEGER NOT NULL DEFAULT 0,
            total_requests INTEGER NOT NULL DEFAULT 0,
            monthly_tokens INTEGER NOT NULL DEFAULT 0,
            monthly_requests INTEGER NOT NULL DEFAULT 0,
            last_reset_at TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """


_USER_COLUMNS = """
    id, api_key, total_tokens, total_requests, monthly_tokens, monthly_requests, last_reset_at, created_at
"""


class UserRepo:
    """Repository for users and their AI usage counters"""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_user_by_id(self, user_id: str) -> User | None:
        rows = self.db.execute_query(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,))
        if not rows:
            return None
        return self._row_to_user(rows[0])

    def get_user_by_api_key(self, api_key: str) -> User | None:
        rows = self.db.execute_query(f"SELECT {_USER_COLUMNS} FROM users WHERE api_key = ?", (api_key,))
        if not rows:
            return None
        return self._row_to_user(rows[0])

    def create_user(self, user_id: str, api_key: str, created_at: datetime) -> User:
        self.db.execute_update(
            f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, 0, 0, 0, 0, ?, ?)",
            (user_id, api_key, created_at.isoformat(), created_at.isoformat()),
        )
        return User(
            id=user_id,
            api_key=api_key,
            usage=AiUsage(
                total_tokens=0,
                total_requests=0,
                monthly_tokens=0,
                monthly_requests=0,
                last_reset_at=created_at,
            ),
            created_at=created_at,
        )

    def save_usage(self, user_id: str, usage: AiUsage) -> None:
        self.db.execute_update(
            """
            UPDATE users SET
                total_tokens = ?,
                total_requests = ?,
                monthly_tokens = ?,
                monthly_requests = ?,
                last_reset_at = ?
            WHERE id = ?
            """,
            (
                usage.total_tokens,
                usage.total_requests,
                usage.monthly_tokens,
                usage.monthly_requests,
                usage.last_reset_at.isoformat(),
                user_id,
            ),
        )

    def _row_to_user(self, row: dict) -> User:
        return User(
            id=row["id"],
            api_key=row["api_key"],
            usage=AiUsage(
                total_tokens=row["total_tokens"],
                total_requests=row["total_requests"],
                monthly_tokens=row["monthly_tokens"],
                monthly_requests=row["monthly_requests"],
                last_reset_at=datetime.fromisoformat(row["last_reset_at"]),
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
