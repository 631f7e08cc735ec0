"""
Base provider interface for LLM providers.

This module defines the abstract base class and data structures for
provider adapters used by the know-it-all chat service.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any
from dataclasses import dataclass


@dataclass
class ChatCompletionResponse:
    """
    Unified response format across LLM providers.

    The chat service only consumes this shape, so switching the SDK
    underneath does not leak into orchestration code.
    """
    content: str
    model: str
    usage: Dict[str, int]  # prompt_tokens, completion_tokens, total_tokens
    finish_reason: str
    estimated_cost: float = 0.0
    raw_response: Optional[Any] = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Design principles:
    - Both sync and async methods for flexibility
    - Unified response format via ChatCompletionResponse
    - Health check capability so the router can refuse a dead provider
    - Cost estimation for per-message bookkeeping
    """

    @abstractmethod
    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> ChatCompletionResponse:
        """
        Synchronous chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Override default model for this provider
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific additional arguments

        Returns:
            ChatCompletionResponse with unified format

        Raises:
            RuntimeError: If provider is unavailable or API call fails
        """
        pass

    @abstractmethod
    async def chat_completion_async(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> ChatCompletionResponse:
        """Asynchronous chat completion. Same contract as chat_completion()."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Health check - determine if provider is ready to use.

        Returns:
            True if provider can handle requests, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique identifier for this provider (e.g. "openai")."""
        pass

    def estimate_cost(self, model: str, usage: Dict[str, int]) -> float:
        """
        Estimated USD cost for one completion.

        Returns 0.0 by default; hosted providers override this.
        """
        return 0.0
