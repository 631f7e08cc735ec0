"""
OpenAI model pricing for cost tracking.

Prices are USD per 1M tokens (input, output). Unknown models fall back to
GPT-4 Turbo pricing so estimates err on the expensive side.
"""

from typing import Dict, Tuple

MODEL_PRICING: Dict[str, Tuple[float, float]] = {
    "gpt-5": (2.00, 6.00),
    "gpt-5-mini": (0.40, 1.20),
    "gpt-5-nano": (0.10, 0.30),
    "o1": (15.00, 60.00),
    "o1-mini": (3.00, 12.00),
    "o3": (10.00, 40.00),
    "o4-mini": (2.00, 8.00),
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4-turbo": (10.00, 30.00),
    "gpt-4-turbo-preview": (10.00, 30.00),
    "gpt-3.5-turbo": (0.50, 1.50),
}

DEFAULT_PRICING: Tuple[float, float] = (10.00, 30.00)


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimated USD cost of one completion."""
    input_price, output_price = MODEL_PRICING.get(model, DEFAULT_PRICING)
    return (prompt_tokens / 1_000_000) * input_price + (completion_tokens / 1_000_000) * output_price
