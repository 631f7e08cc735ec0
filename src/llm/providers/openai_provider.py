"""
OpenAI provider implementation.

Wraps the OpenAI Python SDK to implement the LLMProvider interface and
attaches a per-call cost estimate from the pricing table.
"""

import os
import logging
from typing import Optional
from openai import OpenAI, AsyncOpenAI

from .base import LLMProvider, ChatCompletionResponse
from ..pricing import estimate_cost

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI LLM provider implementation.

    Wraps the official OpenAI Python SDK to provide both synchronous and
    asynchronous chat completions. The model is chosen per call, usually
    by the ModelRouter.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4-turbo-preview"):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            model: Default model when a call does not name one
        """
        self.model = model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")

        # Clients need a key at construction time; without one the provider
        # just reports itself unavailable
        self.client = OpenAI(api_key=self.api_key) if self.api_key else None
        self.async_client = AsyncOpenAI(api_key=self.api_key) if self.api_key else None

    def chat_completion(
        self,
        messages,
        model=None,
        temperature=0.7,
        max_tokens=None,
        **kwargs
    ) -> ChatCompletionResponse:
        """Synchronous chat completion via OpenAI API."""
        model = model or self.model
        try:
            if self.client is None:
                raise RuntimeError("OPENAI_API_KEY not set")
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_completion_tokens=max_tokens,
                **kwargs
            )
            return self._convert_response(response, model)

        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise RuntimeError(f"OpenAI provider failed: {e}") from e

    async def chat_completion_async(
        self,
        messages,
        model=None,
        temperature=0.7,
        max_tokens=None,
        **kwargs
    ) -> ChatCompletionResponse:
        """Asynchronous chat completion via OpenAI API."""
        model = model or self.model
        try:
            if self.async_client is None:
                raise RuntimeError("OPENAI_API_KEY not set")
            response = await self.async_client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_completion_tokens=max_tokens,
                **kwargs
            )
            return self._convert_response(response, model)

        except Exception as e:
            logger.error(f"OpenAI API error (async): {e}")
            raise RuntimeError(f"OpenAI provider failed: {e}") from e

    def is_available(self) -> bool:
        """True if an API key is configured."""
        return bool(self.api_key)

    @property
    def provider_name(self) -> str:
        """Provider identifier."""
        return "openai"

    def estimate_cost(self, model, usage) -> float:
        return estimate_cost(
            model,
            usage.get("prompt_tokens", 0),
            usage.get("completion_tokens", 0),
        )

    def _convert_response(self, response, requested_model: str) -> ChatCompletionResponse:
        """
        Convert OpenAI response to unified ChatCompletionResponse format.

        Cost is priced on the requested model: the API may answer with a
        dated snapshot name (e.g. gpt-5-2025-08-07) that the table lacks.
        """
        choice = response.choices[0]
        usage = {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }
        cost = self.estimate_cost(requested_model, usage)

        logger.info(
            f"[COST] ${cost:.6f} ({usage['prompt_tokens']} input + "
            f"{usage['completion_tokens']} output tokens, model: {requested_model})"
        )

        return ChatCompletionResponse(
            content=choice.message.content or "",
            model=requested_model,
            usage=usage,
            finish_reason=choice.finish_reason,
            estimated_cost=cost,
            raw_response=response,
        )
