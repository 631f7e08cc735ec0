"""
Embedding generation for knowledge-base semantic search.

Uses OpenAI text-embedding-3-small (1536 dims): the pgvector HNSW index on
the knowledge table cannot hold vectors above 2000 dimensions.
"""

import logging
import math
import os
from typing import Iterable, List, Optional, Sequence

import tiktoken
from openai import OpenAI

from src.app.errors import KnowItAllError
from src.llm.config import LLMConfig

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536
MAX_INPUT_TOKENS = 8191  # model limit
COST_PER_1K_TOKENS = 0.00002  # USD, text-embedding-3-small


class EmbeddingService:

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        client=None,
        encoding=None,
    ) -> None:
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise KnowItAllError(
                    "OpenAI API key not configured", "OPENAI_API_KEY_MISSING", 500
                )
            client = OpenAI(api_key=api_key)

        self.client = client
        self.model = model
        self.dimensions = dimensions
        self.enc = encoding or tiktoken.get_encoding("cl100k_base")

    @classmethod
    def from_config(cls, config: LLMConfig, client=None, encoding=None) -> "EmbeddingService":
        """Build the service from EMBEDDING_MODEL / EMBEDDING_DIMENSIONS settings."""
        return cls(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
            client=client,
            encoding=encoding,
        )

    def truncate_text(self, text: str, max_tokens: int = MAX_INPUT_TOKENS) -> str:
        """Trim text so it fits within the embedding model's token limit."""
        tokens = self.enc.encode(text)
        if len(tokens) <= max_tokens:
            return text

        logger.warning(
            "[EMBEDDING] Truncating input from %d to %d tokens", len(tokens), max_tokens
        )
        return self.enc.decode(tokens[:max_tokens])

    def estimate_embedding_cost(self, text: str) -> float:
        return len(self.enc.encode(text)) / 1000 * COST_PER_1K_TOKENS

    def generate_embedding(self, text: str) -> List[float]:
        """
        Generate an embedding vector for a single text.

        Raises:
            KnowItAllError: EMBEDDING_DIMENSION_MISMATCH or EMBEDDING_GENERATION_FAILED
        """
        return self.generate_embeddings_batch([text])[0]

    def generate_embeddings_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for several texts in one API call.

        Returns:
            One vector per input text, in input order
        """
        truncated = [self.truncate_text(t) for t in texts]
        est_cost = sum(self.estimate_embedding_cost(t) for t in truncated)
        logger.info(
            "[EMBEDDING] Generating %d embedding(s) (est. cost: $%.6f)", len(truncated), est_cost
        )

        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=truncated,
                dimensions=self.dimensions,
            )
        except Exception as e:
            logger.error("[EMBEDDING] Error generating embeddings: %s", e)
            raise KnowItAllError(
                "Failed to generate embedding",
                "EMBEDDING_GENERATION_FAILED",
                500,
                {"originalError": str(e)},
            ) from e

        embeddings = [item.embedding for item in response.data]
        for index, embedding in enumerate(embeddings):
            if len(embedding) != self.dimensions:
                raise KnowItAllError(
                    f"Unexpected embedding dimensions at index {index}: "
                    f"{len(embedding)} (expected {self.dimensions})",
                    "EMBEDDING_DIMENSION_MISMATCH",
                    500,
                )

        logger.info(
            "[EMBEDDING] Generated %d embedding(s) (%d tokens)",
            len(embeddings),
            response.usage.total_tokens,
        )
        return embeddings


def cosine_similarity(embedding1: Sequence[float], embedding2: Sequence[float]) -> float:
    """
    Cosine similarity rescaled from [-1, 1] to [0, 1].

    Raises:
        ValueError: If the vectors differ in length
    """
    if len(embedding1) != len(embedding2):
        raise ValueError("Embeddings must have same dimensions")

    dot = sum(a * b for a, b in zip(embedding1, embedding2))
    norm1 = math.sqrt(sum(a * a for a in embedding1))
    norm2 = math.sqrt(sum(b * b for b in embedding2))
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return (dot / (norm1 * norm2) + 1) / 2


def find_most_similar(
    query_embedding: Sequence[float], documents: Iterable[dict], top_n: int = 10
) -> List[dict]:
    """
    Rank {"id", "embedding"} documents against a query vector.

    Returns:
        [{"id", "similarity"}] sorted by similarity, highest first
    """
    scored = [
        {"id": doc["id"], "similarity": cosine_similarity(query_embedding, doc["embedding"])}
        for doc in documents
    ]
    return sorted(scored, key=lambda x: -x["similarity"])[:top_n]
