"""
Add plain-text documents to the know-it-all knowledge base.
"""

import logging
from typing import List, Optional

from src.app.errors import KnowItAllError
from src.content.store import KnowledgeDocument, KnowledgeStore
from src.llm.embeddings import EmbeddingService

logger = logging.getLogger(__name__)


def ingest_text(
    store: KnowledgeStore,
    embeddings: EmbeddingService,
    title: str,
    content: str,
    user_id: str,
    tags: Optional[List[str]] = None,
    category: Optional[str] = None,
    source_type: str = "text",
) -> KnowledgeDocument:
    """
    Embed a document and store it so chat retrieval can find it.

    Args:
        store: Knowledge store to insert into
        embeddings: Service used to embed the content
        title: Document title
        content: Document body (already plain text)
        user_id: Creator of the document
        tags: Optional tags
        category: Optional category
        source_type: Origin of the text (text, url, conversation, ...)

    Returns:
        The stored KnowledgeDocument with its database id

    Raises:
        KnowItAllError: INVALID_DOCUMENT for empty input, or the embedding/store error
    """
    if not title.strip() or not content.strip():
        raise KnowItAllError("Document title and content are required", "INVALID_DOCUMENT", 400)

    logger.info(f"[INGEST] Embedding document {title!r} ({len(content)} chars)")
    embedding = embeddings.generate_embedding(content)

    return store.create_document(
        title=title,
        content=content,
        embedding=embedding,
        created_by=user_id,
        source_type=source_type,
        tags=tags,
        category=category,
    )
