from datetime import datetime

from saikaki.database import get_db_context
from saikaki.models import ChatSession, Message
from saikaki.models.chat_session import DEFAULT_TITLE, DEFAULT_USER_ID
from saikaki.repositories import ChatSessionRepository, MessageRepository


def test_session_defaults():
    with get_db_context() as db:
        s = ChatSessionRepository().create_session_for_user(db)
        assert s.user_id == DEFAULT_USER_ID
        assert s.title == DEFAULT_TITLE
        assert s.message_count == 0


def test_messages_listed_in_creation_order_with_counters():
    sess_repo, msg_repo = ChatSessionRepository(), MessageRepository()
    with get_db_context() as db:
        s = sess_repo.create_session_for_user(db, user_id="u1", title="Repo test")
        msg_repo.create_user_message(db, s.id, "hi", metadata={"originalLength": 2})
        msg_repo.create_assistant_message(db, s.id, "hello", metadata={"streamed": True}, model_used="m")
        msg_repo.create_user_message(db, s.id, "bye")
        session_id = s.id

    with get_db_context() as db:
        msgs = msg_repo.get_by_session_id(db, session_id)
        assert [m.content for m in msgs] == ["hi", "hello", "bye"]
        assert msgs[0].message_metadata == {"originalLength": 2}
        assert msgs[1].is_assistant_message and msgs[1].model_used == "m"
        assert [m.content for m in msg_repo.get_by_session_id(db, session_id, role="user")] == ["hi", "bye"]

        s = sess_repo.get(db, session_id)
        assert s.message_count == 3
        assert s.assistant_message_count == 1


def test_conversation_history_keeps_latest_oldest_first():
    sess_repo, msg_repo = ChatSessionRepository(), MessageRepository()
    with get_db_context() as db:
        s = sess_repo.create_session_for_user(db)
        for i in range(6):
            msg_repo.create_user_message(db, s.id, f"m{i}")
        history = msg_repo.get_conversation_history(db, s.id, limit=4)
        assert [m.content for m in history] == ["m2", "m3", "m4", "m5"]


def test_sessions_listed_per_user_most_recent_first():
    repo = ChatSessionRepository()
    with get_db_context() as db:
        first = repo.create_session_for_user(db, user_id="alice", title="first")
        second = repo.create_session_for_user(db, user_id="alice", title="second")
        repo.create_session_for_user(db, user_id="bob", title="other")
        second.updated_at = datetime(2001, 1, 1)
        db.flush()
        assert [s.title for s in repo.get_by_user_id(db, "alice")] == ["first", "second"]

        repo.touch(db, second.id)
        assert [s.title for s in repo.get_by_user_id(db, "alice")] == ["second", "first"]


def test_delete_session_cascades_messages():
    sess_repo, msg_repo = ChatSessionRepository(), MessageRepository()
    with get_db_context() as db:
        s = sess_repo.create_session_for_user(db)
        msg_repo.create_user_message(db, s.id, "doomed")
        session_id = s.id

    with get_db_context() as db:
        assert sess_repo.delete(db, session_id) is True
        assert sess_repo.delete(db, session_id) is False

    with get_db_context() as db:
        assert db.query(ChatSession).count() == 0
        assert db.query(Message).count() == 0


def test_set_title():
    repo = ChatSessionRepository()
    with get_db_context() as db:
        s = repo.create_session_for_user(db)
        repo.set_title(db, s.id, "Renamed")
        assert repo.get(db, s.id).title == "Renamed"
