"""
Centralized LLM configuration for the know-it-all assistant.

This module loads chat, embedding and retrieval settings from environment
variables (a local .env file is read first) with sensible defaults.
"""

import logging
import os
from typing import Optional
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()  # reads .env

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """
    LLM configuration loaded from environment variables.

    Environment Variables:
        # Provider / chat model
        LLM_PROVIDER: Provider name (only "openai" is supported)
        OPENAI_API_KEY: OpenAI API key
        KNOW_IT_ALL_MODEL: Model used when smart mode is off (default: gpt-4-turbo-preview)
        SMART_MODE_DEFAULT: Route every query through the analyzer (true | false)

        # Embeddings / retrieval
        EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
        EMBEDDING_DIMENSIONS: Vector size (default: 1536, pgvector HNSW limit is 2000)
        KNOWLEDGE_MATCH_THRESHOLD: Minimum similarity for retrieved documents (default: 0.75)

        # Analyzer policy
        QUERY_ANALYZER_CONFIG: Optional path to a YAML scoring policy override
    """

    default_provider: str = "openai"
    openai_api_key: Optional[str] = None
    default_model: str = "gpt-4-turbo-preview"
    smart_mode_default: bool = False

    # Response generation
    max_response_tokens: int = 2000
    temperature: float = 0.7
    top_p: float = 0.9
    history_limit: int = 10

    # Embeddings / retrieval
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    knowledge_match_threshold: float = 0.75

    analyzer_config_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """
        Load configuration from environment variables.

        Returns:
            LLMConfig instance with values from environment or defaults
        """
        return cls(
            default_provider=os.getenv("LLM_PROVIDER", "openai"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            default_model=os.getenv("KNOW_IT_ALL_MODEL", "gpt-4-turbo-preview"),
            smart_mode_default=os.getenv("SMART_MODE_DEFAULT", "false").lower() == "true",
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", 1536)),
            knowledge_match_threshold=float(os.getenv("KNOWLEDGE_MATCH_THRESHOLD", 0.75)),
            analyzer_config_path=os.getenv("QUERY_ANALYZER_CONFIG") or None,
        )

    def validate(self) -> None:
        """
        Validate configuration and warn about missing settings.

        Raises:
            ValueError: If configuration is invalid
        """
        valid_providers = ["openai"]
        if self.default_provider not in valid_providers:
            raise ValueError(
                f"Invalid default_provider: {self.default_provider}. "
                f"Must be one of {valid_providers}"
            )

        if not 0.0 <= self.knowledge_match_threshold <= 1.0:
            raise ValueError(
                f"knowledge_match_threshold must be within [0, 1], got {self.knowledge_match_threshold}"
            )

        if self.embedding_dimensions > 2000:
            raise ValueError(
                f"embedding_dimensions={self.embedding_dimensions} exceeds the pgvector HNSW limit (2000)"
            )

        if not self.openai_api_key:
            logger.warning("OPENAI_API_KEY not set. OpenAI provider will be unavailable.")
