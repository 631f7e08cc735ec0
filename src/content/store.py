import json
import logging
import os
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

import psycopg2
from dotenv import load_dotenv

from src.app.errors import KnowItAllError

load_dotenv()  # reads .env

logger = logging.getLogger(__name__)

DB_CONFIG = {
    "dbname": os.getenv("PG_DB", "postgres"),
    "user": os.getenv("PG_USER", "postgres"),
    "password": os.getenv("PG_PASS", "postgres"),
    "host": os.getenv("PG_HOST", "localhost"),
    "port": os.getenv("PG_PORT", 5432),
}

PREVIEW_LENGTH = 200
TITLE_LENGTH = 50


def content_preview(content: str, max_length: int = PREVIEW_LENGTH) -> str:
    if len(content) <= max_length:
        return content
    return content[:max_length] + "..."


def count_words(text: str) -> int:
    return len(text.split())


def count_chars(text: str) -> int:
    """Characters excluding whitespace."""
    return sum(1 for ch in text if not ch.isspace())


@dataclass
class KnowledgeSnippet:
    """One knowledge document returned by vector search."""

    id: str
    title: str
    content: str
    similarity: float
    content_preview: Optional[str] = None
    tags: list[str] = field(default_factory=list)


@dataclass
class KnowledgeDocument:
    id: str
    title: str
    content: str
    content_preview: str
    source_type: str  # text | url | conversation | ...
    created_by: str
    tags: list[str] = field(default_factory=list)
    category: Optional[str] = None
    word_count: int = 0
    char_count: int = 0
    language: str = "zh-TW"


@dataclass
class ConversationMessage:
    id: Optional[str]
    conversation_id: str
    role: str  # user | assistant | system
    content: str
    model_used: Optional[str] = None
    total_tokens: Optional[int] = None
    estimated_cost: Optional[float] = None


@dataclass
class Conversation:
    """Conversation metadata row: owner, title and running usage totals."""

    conversation_id: str
    user_id: str
    title: Optional[str] = None
    message_count: int = 0
    total_tokens_used: int = 0
    total_cost: float = 0.0
    is_archived: bool = False
    created_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


_CONVERSATION_COLUMNS = """
    conversation_id, user_id, title, message_count, total_tokens_used,
    total_cost, is_archived, created_at, last_message_at
"""


def _row_to_conversation(row) -> Conversation:
    return Conversation(
        conversation_id=str(row[0]),
        user_id=str(row[1]),
        title=row[2],
        message_count=row[3] or 0,
        total_tokens_used=row[4] or 0,
        total_cost=float(row[5] or 0),
        is_archived=bool(row[6]),
        created_at=row[7],
        last_message_at=row[8],
    )


class KnowledgeStore:
    """Queries against the hosted Postgres/pgvector knowledge base."""

    def __init__(self, conn=None) -> None:
        self.conn = conn or psycopg2.connect(**DB_CONFIG)

    @contextmanager
    def _transaction(self):
        """Cursor scoped to one transaction: committed on success, rolled back on any error."""
        try:
            with self.conn.cursor() as cur:
                yield cur
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    # -- knowledge documents -------------------------------------------------

    def search_documents(
        self,
        query_embedding: Sequence[float],
        user_id: Optional[str] = None,
        match_threshold: float = 0.7,
        match_count: int = 10,
    ) -> list[KnowledgeSnippet]:
        """
        Vector search through the search_knowledge_documents() database function.
        Results come back ranked by similarity, highest first.
        """
        try:
            with self._transaction() as cur:
                cur.execute(
                    """
                    SELECT id, title, content, content_preview, tags, similarity
                    FROM search_knowledge_documents(%s, %s, %s, %s)
                    """,
                    (json.dumps(list(query_embedding)), match_threshold, match_count, user_id),
                )
                rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error("[KNOWLEDGE] Error searching documents: %s", e)
            raise KnowItAllError(
                "Failed to search documents",
                "DOCUMENT_SEARCH_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        snippets = [
            KnowledgeSnippet(
                id=str(row[0]),
                title=row[1],
                content=row[2] or "",
                content_preview=row[3],
                tags=row[4] or [],
                similarity=float(row[5]),
            )
            for row in rows
        ]
        snippets.sort(key=lambda s: -s.similarity)
        logger.info("[KNOWLEDGE] Found %d matching documents", len(snippets))
        return snippets

    def create_document(
        self,
        title: str,
        content: str,
        embedding: Sequence[float],
        created_by: str,
        source_type: str = "text",
        tags: list[str] = None,
        category: str = None,
        language: str = "zh-TW",
    ) -> KnowledgeDocument:
        """
        Insert a knowledge document together with its embedding.

        Raises:
            KnowItAllError: DOCUMENT_CREATE_FAILED on a database error
        """
        document = KnowledgeDocument(
            id="",
            title=title,
            content=content,
            content_preview=content_preview(content),
            source_type=source_type,
            created_by=created_by,
            tags=list(tags or []),
            category=category,
            word_count=count_words(content),
            char_count=count_chars(content),
            language=language,
        )
        try:
            with self._transaction() as cur:
                cur.execute(
                    """
                    INSERT INTO knowledge_base_documents (
                        title, content, content_preview, embedding,
                        source_type, tags, category, word_count, char_count, language,
                        created_by, updated_by, access_count, reference_count,
                        is_active, is_public
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 0, 0, TRUE, FALSE)
                    RETURNING id
                    """,
                    (
                        document.title,
                        document.content,
                        document.content_preview,
                        json.dumps(list(embedding)),
                        document.source_type,
                        document.tags,
                        document.category,
                        document.word_count,
                        document.char_count,
                        document.language,
                        created_by,
                        created_by,
                    ),
                )
                document.id = str(cur.fetchone()[0])
        except psycopg2.Error as e:
            logger.error("[KNOWLEDGE] Error creating document: %s", e)
            raise KnowItAllError(
                "Failed to create knowledge document",
                "DOCUMENT_CREATE_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        logger.info("[KNOWLEDGE] Created document %s (%r)", document.id, title)
        return document

    # -- conversations -------------------------------------------------------

    def create_conversation(self, user_id: str, title: str = None) -> Conversation:
        """
        Open a new conversation for user_id. Without a title, the first
        message names it (see set_title_if_missing).
        """
        conversation_id = str(uuid.uuid4())
        try:
            with self._transaction() as cur:
                cur.execute(
                    f"""
                    INSERT INTO know_it_all_conversation_metadata (
                        conversation_id, user_id, title, message_count,
                        total_tokens_used, total_cost, is_archived,
                        created_at, updated_at
                    )
                    VALUES (%s, %s, %s, 0, 0, 0, FALSE, NOW(), NOW())
                    RETURNING {_CONVERSATION_COLUMNS}
                    """,
                    (conversation_id, user_id, title),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error("[CHAT] Error creating conversation: %s", e)
            raise KnowItAllError(
                "Failed to create conversation",
                "CONVERSATION_CREATE_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        logger.info("[CHAT] Created conversation %s", conversation_id)
        return _row_to_conversation(row)

    def list_conversations(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        include_archived: bool = False,
    ) -> tuple[list[Conversation], int]:
        """Return one page of the user's conversations (latest activity first) and the total count."""
        where = "WHERE user_id = %s"
        if not include_archived:
            where += " AND is_archived = FALSE"

        try:
            with self._transaction() as cur:
                cur.execute(
                    f"SELECT COUNT(*) FROM know_it_all_conversation_metadata {where}",
                    (user_id,),
                )
                total = cur.fetchone()[0]
                cur.execute(
                    f"""
                    SELECT {_CONVERSATION_COLUMNS}
                    FROM know_it_all_conversation_metadata {where}
                    ORDER BY last_message_at DESC NULLS LAST, created_at DESC
                    LIMIT %s OFFSET %s
                    """,
                    (user_id, limit, offset),
                )
                rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error("[CHAT] Error listing conversations: %s", e)
            raise KnowItAllError(
                "Failed to list conversations",
                "CONVERSATION_LIST_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        return [_row_to_conversation(row) for row in rows], int(total)

    def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Delete a conversation's messages and metadata in one transaction."""
        try:
            with self._transaction() as cur:
                cur.execute(
                    """
                    DELETE FROM know_it_all_conversations
                    WHERE conversation_id = %s AND user_id = %s
                    """,
                    (conversation_id, user_id),
                )
                cur.execute(
                    """
                    DELETE FROM know_it_all_conversation_metadata
                    WHERE conversation_id = %s AND user_id = %s
                    """,
                    (conversation_id, user_id),
                )
                deleted = cur.rowcount > 0
        except psycopg2.Error as e:
            logger.error("[CHAT] Error deleting conversation: %s", e)
            raise KnowItAllError(
                "Failed to delete conversation",
                "CONVERSATION_DELETE_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        if deleted:
            logger.info("[CHAT] Deleted conversation %s", conversation_id)
        return deleted

    def conversation_exists(self, conversation_id: str, user_id: str) -> bool:
        with self._transaction() as cur:
            cur.execute(
                """
                SELECT 1 FROM know_it_all_conversation_metadata
                WHERE conversation_id = %s AND user_id = %s
                """,
                (conversation_id, user_id),
            )
            return cur.fetchone() is not None

    def get_conversation_history(
        self, conversation_id: str, user_id: str, limit: int = 10
    ) -> list[ConversationMessage]:
        """Fetch the most recent messages of a conversation, oldest first."""
        with self._transaction() as cur:
            cur.execute(
                """
                SELECT id, conversation_id, role, content, model_used, total_tokens, estimated_cost
                FROM (
                    SELECT * FROM know_it_all_conversations
                    WHERE conversation_id = %s AND user_id = %s
                    ORDER BY created_at DESC
                    LIMIT %s
                ) recent
                ORDER BY created_at ASC
                """,
                (conversation_id, user_id, limit),
            )
            rows = cur.fetchall()

        return [
            ConversationMessage(
                id=str(row[0]),
                conversation_id=row[1],
                role=row[2],
                content=row[3],
                model_used=row[4],
                total_tokens=row[5],
                estimated_cost=float(row[6]) if row[6] is not None else None,
            )
            for row in rows
        ]

    def save_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        user_id: str,
        model_used: str = None,
        prompt_tokens: int = None,
        completion_tokens: int = None,
        total_tokens: int = None,
        estimated_cost: float = None,
        knowledge_docs_used: list[str] = None,
    ) -> ConversationMessage:
        """Insert one chat message. Returns it with its database id."""
        with self._transaction() as cur:
            cur.execute(
                """
                INSERT INTO know_it_all_conversations (
                    conversation_id, role, content, user_id,
                    model_used, prompt_tokens, completion_tokens, total_tokens,
                    estimated_cost, knowledge_docs_used, added_to_knowledge_base,
                    created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, FALSE, NOW(), NOW())
                RETURNING id
                """,
                (
                    conversation_id,
                    role,
                    content,
                    user_id,
                    model_used,
                    prompt_tokens,
                    completion_tokens,
                    total_tokens,
                    estimated_cost,
                    knowledge_docs_used,
                ),
            )
            message_id = cur.fetchone()[0]

        return ConversationMessage(
            id=str(message_id),
            conversation_id=conversation_id,
            role=role,
            content=content,
            model_used=model_used,
            total_tokens=total_tokens,
            estimated_cost=estimated_cost,
        )

    def update_conversation_usage(self, conversation_id: str, tokens: int, cost: float) -> bool:
        """Add one user/assistant exchange to the conversation totals."""
        with self._transaction() as cur:
            cur.execute(
                """
                UPDATE know_it_all_conversation_metadata
                SET message_count = message_count + 2,
                    total_tokens_used = total_tokens_used + %s,
                    total_cost = total_cost + %s,
                    last_message_at = NOW(),
                    updated_at = NOW()
                WHERE conversation_id = %s
                """,
                (tokens, cost, conversation_id),
            )
            updated = cur.rowcount > 0
        return updated

    def set_title_if_missing(self, conversation_id: str, first_message: str) -> None:
        """Title a fresh conversation with the first 50 chars of its opening message."""
        title = content_preview(first_message, TITLE_LENGTH)
        with self._transaction() as cur:
            cur.execute(
                """
                UPDATE know_it_all_conversation_metadata
                SET title = %s
                WHERE conversation_id = %s AND title IS NULL
                """,
                (title, conversation_id),
            )

    def close(self):
        if self.conn:
            self.conn.close()
