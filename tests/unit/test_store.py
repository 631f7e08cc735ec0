"""
Unit tests for KnowledgeStore query handling, using a fake psycopg2 connection.
"""

import json

import psycopg2
import pytest
from src.app.errors import KnowItAllError
from src.content.store import KnowledgeStore, content_preview, count_chars, count_words


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = conn.rowcount
        self.rows = conn.rows

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((" ".join(sql.split()), params))
        if self.conn.error:
            raise self.conn.error
        if self.conn.results:
            self.rows = self.conn.results.pop(0)

    def fetchall(self):
        return self.rows

    def fetchone(self):
        return self.rows[0] if self.rows else None


class FakeConnection:
    def __init__(self, rows=None, rowcount=1, error=None, results=None):
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.results = list(results or [])  # rows per execute, in order
        self.executed = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


CONVERSATION_ROW = ("c-1", "u1", None, 0, 0, "0", False, None, None)


class TestSearchDocuments:

    def test_maps_and_ranks_rows(self):
        conn = FakeConnection(
            rows=[
                ("doc-2", "Pricing", "Pricing content", None, None, "0.81"),
                ("doc-1", "Refunds", "Refund policy", "Refund...", ["policy"], 0.93),
            ]
        )
        store = KnowledgeStore(conn=conn)

        snippets = store.search_documents([0.1, 0.2], user_id="u1", match_threshold=0.75, match_count=5)

        assert [s.id for s in snippets] == ["doc-1", "doc-2"]
        assert snippets[0].tags == ["policy"]
        assert snippets[1].tags == []
        assert snippets[1].similarity == pytest.approx(0.81)

        sql, params = conn.executed[0]
        assert "search_knowledge_documents" in sql
        assert json.loads(params[0]) == [0.1, 0.2]
        assert params[1:] == (0.75, 5, "u1")

    def test_database_error_wrapped(self):
        conn = FakeConnection(error=psycopg2.OperationalError("connection lost"))
        store = KnowledgeStore(conn=conn)

        with pytest.raises(KnowItAllError) as exc_info:
            store.search_documents([0.1])
        assert exc_info.value.code == "DOCUMENT_SEARCH_FAILED"
        assert conn.rollbacks == 1


class TestCreateDocument:

    def test_insert_with_metadata(self):
        conn = FakeConnection(rows=[(7,)])
        content = "Refunds are accepted within thirty days. " * 10

        document = KnowledgeStore(conn=conn).create_document(
            "Refund policy", content, [0.5, 0.25], "u1", tags=["policy"]
        )

        assert document.id == "7"
        assert document.content_preview == content[:200] + "..."
        assert document.word_count == 60
        assert document.tags == ["policy"]
        assert conn.commits == 1

        sql, params = conn.executed[0]
        assert "INSERT INTO knowledge_base_documents" in sql
        assert json.loads(params[3]) == [0.5, 0.25]
        assert params[4] == "text"

    def test_database_error_wrapped(self):
        conn = FakeConnection(error=psycopg2.IntegrityError("null title"))

        with pytest.raises(KnowItAllError) as exc_info:
            KnowledgeStore(conn=conn).create_document("t", "body", [0.1], "u1")
        assert exc_info.value.code == "DOCUMENT_CREATE_FAILED"
        assert conn.rollbacks == 1


class TestConversationQueries:

    def test_create_conversation(self):
        conn = FakeConnection(rows=[CONVERSATION_ROW])
        conversation = KnowledgeStore(conn=conn).create_conversation("u1")

        assert conversation.conversation_id == "c-1"
        assert conversation.title is None
        assert conversation.total_cost == 0.0
        assert conn.commits == 1
        # generated uuid, owner, no title so the first message names it
        conversation_id, user_id, title = conn.executed[0][1]
        assert len(conversation_id) == 36
        assert (user_id, title) == ("u1", None)

    def test_list_conversations_returns_page_and_total(self):
        conn = FakeConnection(results=[[(3,)], [CONVERSATION_ROW]])

        conversations, total = KnowledgeStore(conn=conn).list_conversations("u1", limit=1)

        assert total == 3
        assert [c.conversation_id for c in conversations] == ["c-1"]
        count_sql, _ = conn.executed[0]
        assert "is_archived = FALSE" in count_sql
        assert conn.executed[1][1] == ("u1", 1, 0)

    def test_list_including_archived(self):
        conn = FakeConnection(results=[[(0,)], []])
        KnowledgeStore(conn=conn).list_conversations("u1", include_archived=True)

        assert "is_archived" not in conn.executed[0][0]

    def test_delete_removes_messages_then_metadata(self):
        conn = FakeConnection(rowcount=1)

        assert KnowledgeStore(conn=conn).delete_conversation("c1", "u1") is True
        assert "DELETE FROM know_it_all_conversations WHERE" in conn.executed[0][0]
        assert "know_it_all_conversation_metadata" in conn.executed[1][0]
        assert conn.commits == 1

    def test_delete_missing_conversation(self):
        assert KnowledgeStore(conn=FakeConnection(rowcount=0)).delete_conversation("c1", "u1") is False

    def test_save_message_returns_id(self):
        conn = FakeConnection(rows=[(42,)])
        store = KnowledgeStore(conn=conn)

        message = store.save_message("c1", "assistant", "Answer", "u1", model_used="gpt-5", total_tokens=10)

        assert message.id == "42"
        assert message.model_used == "gpt-5"
        assert conn.commits == 1
        _, params = conn.executed[0]
        assert params[:4] == ("c1", "assistant", "Answer", "u1")

    def test_history_mapping(self):
        conn = FakeConnection(rows=[(1, "c1", "user", "Hi", None, None, None)])
        history = KnowledgeStore(conn=conn).get_conversation_history("c1", "u1", limit=10)

        assert len(history) == 1
        assert history[0].role == "user"
        assert history[0].estimated_cost is None
        assert conn.executed[0][1] == ("c1", "u1", 10)

    def test_conversation_exists(self):
        assert KnowledgeStore(conn=FakeConnection(rows=[(1,)])).conversation_exists("c1", "u1") is True
        assert KnowledgeStore(conn=FakeConnection(rows=[])).conversation_exists("c1", "u1") is False

    def test_reads_close_their_transaction(self):
        conn = FakeConnection(rows=[(1,)])
        KnowledgeStore(conn=conn).conversation_exists("c1", "u1")

        assert conn.commits == 1

    def test_update_usage(self):
        conn = FakeConnection(rowcount=1)
        assert KnowledgeStore(conn=conn).update_conversation_usage("c1", 1500, 0.002) is True
        assert conn.executed[0][1] == (1500, 0.002, "c1")

    def test_title_truncated(self):
        conn = FakeConnection()
        KnowledgeStore(conn=conn).set_title_if_missing("c1", "x" * 80)

        title, conversation_id = conn.executed[0][1]
        assert title == "x" * 50 + "..."
        assert conversation_id == "c1"


class TestTransactionRecovery:
    """A failed statement must not leave the shared connection aborted."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.save_message("c1", "user", "Hi", "u1"),
            lambda s: s.update_conversation_usage("c1", 10, 0.1),
            lambda s: s.set_title_if_missing("c1", "Hi"),
            lambda s: s.get_conversation_history("c1", "u1"),
        ],
    )
    def test_failed_statement_rolls_back(self, call):
        conn = FakeConnection(error=psycopg2.OperationalError("deadlock detected"))

        with pytest.raises(psycopg2.OperationalError):
            call(KnowledgeStore(conn=conn))
        assert conn.rollbacks == 1
        assert conn.commits == 0

    def test_connection_usable_after_failed_write(self):
        conn = FakeConnection(error=psycopg2.OperationalError("deadlock detected"))
        store = KnowledgeStore(conn=conn)

        with pytest.raises(psycopg2.OperationalError):
            store.save_message("c1", "user", "Hi", "u1")

        conn.error = None
        conn.rows = [(1,)]
        assert store.conversation_exists("c1", "u1") is True
        assert (conn.rollbacks, conn.commits) == (1, 1)


def test_text_helpers():
    assert content_preview("short") == "short"
    assert content_preview("abcdef", max_length=3) == "abc..."
    assert count_words("  two   words ") == 2
    assert count_chars("比較 A\nB") == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
