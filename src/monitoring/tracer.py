"""
Phoenix tracing initialization for LLM observability.

Phoenix captures every OpenAI call (chat completions and embeddings, with
tokens and latency), which makes smart-mode routing visible per request.

Usage:
    Call init_phoenix_tracing() once at application startup, before any OpenAI calls.

Environment variables:
    PHOENIX_COLLECTOR_ENDPOINT: Collector URL (default: http://localhost:4317)
    PHOENIX_PROJECT_NAME: Project name in UI (default: know-it-all)
    DISABLE_TRACING: Skip tracing entirely (true | false)
"""

import logging
import os
from phoenix.otel import register
from openinference.instrumentation.openai import OpenAIInstrumentor

logger = logging.getLogger(__name__)

_phoenix_initialized = False


def init_phoenix_tracing():
    """Initialize Phoenix tracing. Call once at startup."""
    global _phoenix_initialized

    if _phoenix_initialized:
        return

    if os.getenv("DISABLE_TRACING", "false").lower() == "true":
        logger.info("[PHOENIX] Tracing disabled via DISABLE_TRACING")
        return

    try:
        collector_endpoint = os.getenv("PHOENIX_COLLECTOR_ENDPOINT", "http://localhost:4317")
        project_name = os.getenv("PHOENIX_PROJECT_NAME", "know-it-all")

        tracer_provider = register(
            project_name=project_name,
            endpoint=collector_endpoint,
        )

        OpenAIInstrumentor().instrument(tracer_provider=tracer_provider)

        _phoenix_initialized = True
        logger.info(f"[PHOENIX] Initialized | Project: {project_name} | UI: {collector_endpoint}")

    except Exception as e:
        logger.warning(f"[PHOENIX] Failed to initialize: {e}")


def is_phoenix_enabled() -> bool:
    """Check if Phoenix tracing is enabled."""
    return _phoenix_initialized
