"""
Model router for smart-mode model selection.

Decides which OpenAI model answers a chat message: either the model the
user picked, the configured default, or (in smart mode) the model the
query analyzer recommends for the query's complexity.
"""

from dataclasses import dataclass
from typing import Optional, Dict
import logging

from .base import LLMProvider
from .openai_provider import OpenAIProvider
from .query_analyzer import AnalyzerConfig, QueryAnalysisResult, analyze_query, load_analyzer_config
from ..config import LLMConfig

logger = logging.getLogger(__name__)

SMART_MODEL = "smart"


@dataclass(frozen=True)
class RoutingDecision:
    """Model chosen for one message, plus the analysis when smart mode ran."""

    model: str
    smart_mode: bool
    analysis: Optional[QueryAnalysisResult] = None


class ModelRouter:
    """
    Route queries to the right model and provider.

    Design principles:
    - Smart mode delegates model choice to the query analyzer
    - Explicit user model choice always wins outside smart mode
    - Provider instances are cached and health-checked
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        analyzer_config: Optional[AnalyzerConfig] = None,
    ):
        """
        Initialize model router.

        Args:
            config: LLMConfig instance (defaults to loading from environment)
            analyzer_config: Scoring policy (defaults to QUERY_ANALYZER_CONFIG
                             from config, else the built-in policy)
        """
        self.config = config or LLMConfig.from_env()
        self.analyzer_config = analyzer_config or load_analyzer_config(
            self.config.analyzer_config_path
        )
        self._providers: Dict[str, LLMProvider] = {}

    def select_model(
        self,
        query: str,
        requested_model: Optional[str] = None,
        use_smart_mode: Optional[bool] = None,
    ) -> RoutingDecision:
        """
        Pick the model for a query.

        Args:
            query: User message content
            requested_model: Model chosen by the user; "smart" enables smart mode
            use_smart_mode: Force smart mode on/off (defaults to config)

        Returns:
            RoutingDecision with the chosen model

        Examples:
            >>> router = ModelRouter()
            >>> router.select_model("hi", requested_model="smart").model
            'gpt-5-nano'
        """
        if use_smart_mode is None:
            use_smart_mode = self.config.smart_mode_default and not requested_model

        if requested_model == SMART_MODEL or use_smart_mode:
            analysis = analyze_query(query, self.analyzer_config)
            logger.info(
                f"[ROUTING] Smart mode: {analysis.complexity.value} query "
                f"(score: {analysis.score}) -> {analysis.recommended_model}"
            )
            logger.debug(f"[ROUTING] Reasoning: {analysis.reasoning}")
            return RoutingDecision(
                model=analysis.recommended_model, smart_mode=True, analysis=analysis
            )

        model = requested_model or self.config.default_model
        logger.debug(f"[ROUTING] Using {model} (smart mode off)")
        return RoutingDecision(model=model, smart_mode=False)

    def get_provider(self, provider_name: Optional[str] = None) -> LLMProvider:
        """
        Get an available LLM provider.

        Args:
            provider_name: Specific provider to use (overrides config default)

        Returns:
            LLMProvider instance ready to handle requests

        Raises:
            ValueError: If provider_name is unknown
            RuntimeError: If the provider fails its health check
        """
        provider_name = provider_name or self.config.default_provider
        provider = self._get_provider_instance(provider_name)

        if not provider.is_available():
            logger.error(f"{provider_name} provider unavailable (health check failed)")
            raise RuntimeError(f"No available LLM provider. Tried: {provider_name}")

        return provider

    def _get_provider_instance(self, provider_name: str) -> LLMProvider:
        """
        Get or create provider instance (cached).

        Raises:
            ValueError: If provider_name is unknown
        """
        if provider_name in self._providers:
            return self._providers[provider_name]

        if provider_name == "openai":
            provider = OpenAIProvider(
                api_key=self.config.openai_api_key, model=self.config.default_model
            )
        else:
            raise ValueError(
                f"Unknown provider: {provider_name}. Valid options: openai"
            )

        self._providers[provider_name] = provider
        return provider

    def clear_cache(self):
        """
        Clear provider instance cache.

        Useful for testing or when provider configuration changes.
        """
        self._providers.clear()
        logger.debug("Provider cache cleared")
