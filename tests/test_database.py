import sqlite3
from datetime import timedelta

import pytest

from myai.db.conversation_repo import ConversationRepo
from myai.db.database import SCHEMA_VERSION, Database, DatabaseNotInitializedError
from myai.db.user_repo import UserRepo
from myai.models.chat.models import Conversation, ConversationStatus, StoredMessage


def _conversation(clock) -> Conversation:
    return Conversation(
        id="conv-1",
        user_id="user-1",
        title="Test",
        type="chat",
        status=ConversationStatus.ACTIVE,
        model_provider="openai",
        model_name="gpt-3.5-turbo",
        system_prompt=None,
        created_at=clock(),
        updated_at=clock(),
    )


@pytest.fixture
def database(tmp_path) -> Database:
    database = Database(str(tmp_path / "nested" / "test.db"))
    database.setup()
    return database


def test_queries_require_setup(tmp_path):
    database = Database(str(tmp_path / "test.db"))

    with pytest.raises(DatabaseNotInitializedError):
        database.execute_query("SELECT 1")


def test_setup_records_schema_version(database):
    assert database.execute_query("SELECT version FROM db_version")[0]["version"] == SCHEMA_VERSION


def test_outdated_database_is_replaced(tmp_path):
    path = tmp_path / "old.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE db_version (version INTEGER NOT NULL)")
    conn.execute("INSERT INTO db_version (version) VALUES (?)", (SCHEMA_VERSION - 1,))
    conn.execute("CREATE TABLE leftover (id INTEGER)")
    conn.commit()
    conn.close()

    database = Database(str(path))
    database.setup()

    tables = {row["name"] for row in database.execute_query("SELECT name FROM sqlite_master WHERE type='table'")}
    assert "leftover" not in tables
    assert "conversations" in tables


def test_outdated_database_can_be_preserved(tmp_path):
    path = tmp_path / "old.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE db_version (version INTEGER NOT NULL)")
    conn.execute("INSERT INTO db_version (version) VALUES (?)", (SCHEMA_VERSION - 1,))
    conn.commit()
    conn.close()

    Database(str(path), preserve_old_db=True).setup()

    assert len(list(tmp_path.glob("old-*.db"))) == 1


def test_user_lookup_by_api_key(database, clock):
    repo = UserRepo(database)
    created = repo.create_user("user-1", "key-1", clock())

    assert repo.get_user_by_api_key("key-1") == created
    assert repo.get_user_by_api_key("other") is None
    assert repo.get_user_by_id("user-1").usage.last_reset_at == clock()


def test_apply_usage_keeps_running_average(database, clock):
    repo = ConversationRepo(database)
    repo.create_conversation(_conversation(clock))

    repo.apply_usage("conv-1", tokens=10, cost=0.5, response_time_ms=100.0, at=clock())
    repo.apply_usage("conv-1", tokens=30, cost=0.25, response_time_ms=300.0, at=clock())

    stats = repo.get_conversation("conv-1", "user-1").stats
    assert stats.message_count == 2
    assert stats.total_tokens == 40
    assert stats.total_cost == pytest.approx(0.75)
    assert stats.avg_response_time_ms == pytest.approx(200.0)
    assert stats.last_message_at == clock()


def test_recent_messages_are_newest_in_chronological_order(database, clock):
    repo = ConversationRepo(database)
    repo.create_conversation(_conversation(clock))
    start = clock()
    for index in range(6):
        repo.add_message(StoredMessage(
            id=f"m{index}",
            conversation_id="conv-1",
            role="system" if index == 0 else "user",
            content=f"m{index}",
            created_at=start + timedelta(seconds=index),
            error="failed" if index == 5 else None,
        ))

    recent = repo.get_recent_messages("conv-1", limit=3)

    assert [m.id for m in recent] == ["m2", "m3", "m4"]
    assert repo.get_recent_messages("conv-1", limit=0) == []
    assert [m.id for m in repo.get_messages("conv-1")] == [f"m{index}" for index in range(6)]
