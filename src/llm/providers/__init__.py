"""
LLM provider and model routing package.

This package wraps the OpenAI SDK behind a provider interface and decides
which model answers each chat message.

Usage:
    >>> from src.llm.providers import ModelRouter
    >>> router = ModelRouter()
    >>> decision = router.select_model("Compare our pricing strategy and churn?", "smart")
    >>> provider = router.get_provider()
    >>> response = provider.chat_completion(messages=[...], model=decision.model)

Smart Mode:
    >>> from src.llm.providers import analyze_query
    >>> analyze_query("What time is it?").recommended_model
    'gpt-5-nano'
"""

from .base import LLMProvider, ChatCompletionResponse
from .openai_provider import OpenAIProvider
from .query_analyzer import (
    AnalyzerConfig,
    ComplexityBand,
    QueryAnalysisResult,
    QueryComplexity,
    QueryFactors,
    analyze_query,
    get_recommended_model,
    should_use_smart_mode,
)
from .model_router import ModelRouter, RoutingDecision

__all__ = [
    "LLMProvider",
    "ChatCompletionResponse",
    "OpenAIProvider",
    "AnalyzerConfig",
    "ComplexityBand",
    "QueryAnalysisResult",
    "QueryComplexity",
    "QueryFactors",
    "analyze_query",
    "get_recommended_model",
    "should_use_smart_mode",
    "ModelRouter",
    "RoutingDecision",
]
