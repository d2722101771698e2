"""Static per-model pricing and cost estimation.

Rates are USD per one million tokens. Unknown models resolve to a small
fallback rate so estimation never fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class ModelRate:
    """Input/output price pair in USD per million tokens."""

    input_usd_per_million: float
    output_usd_per_million: float


FALLBACK_RATE = ModelRate(input_usd_per_million=0.01, output_usd_per_million=0.01)

MODEL_PRICING: Mapping[str, ModelRate] = MappingProxyType(
    {
        "gpt-4o": ModelRate(2.5, 10.0),
        "gpt-4o-mini": ModelRate(0.15, 0.6),
        "gpt-4-turbo": ModelRate(10.0, 30.0),
        "gpt-4": ModelRate(30.0, 60.0),
        "gpt-3.5-turbo": ModelRate(0.5, 1.5),
    }
)


class CostEstimator:
    """Estimate request cost from token counts and a read-only price table."""

    def __init__(
        self,
        pricing: Mapping[str, ModelRate] | None = None,
        fallback: ModelRate = FALLBACK_RATE,
    ) -> None:
        self._pricing = MappingProxyType(dict(pricing)) if pricing is not None else MODEL_PRICING
        self._fallback = fallback

    def rate_for(self, model: str) -> ModelRate:
        """Return the rate pair for `model`, or the fallback rate."""

        return self._pricing.get(model, self._fallback)

    def estimate(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """Return estimated USD cost for one call."""

        rate = self.rate_for(model)
        prompt = max(0, prompt_tokens)
        completion = max(0, completion_tokens)
        return (prompt / 1_000_000) * rate.input_usd_per_million + (
            completion / 1_000_000
        ) * rate.output_usd_per_million


_DEFAULT_ESTIMATOR = CostEstimator()


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimate cost with the built-in price table."""

    return _DEFAULT_ESTIMATOR.estimate(model, prompt_tokens, completion_tokens)
