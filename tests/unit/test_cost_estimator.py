"""Unit tests for per-model cost estimation."""

from __future__ import annotations

import pytest

from langmesh.telemetry.pricing import (
    FALLBACK_RATE,
    MODEL_PRICING,
    CostEstimator,
    ModelRate,
    estimate_cost,
)


def test_known_model_uses_table_rates() -> None:
    """One million input and output tokens on gpt-4o should cost 2.5 + 10.0 USD."""

    assert CostEstimator().estimate("gpt-4o", 1_000_000, 1_000_000) == pytest.approx(12.5)
    assert estimate_cost("gpt-4o", 1_000_000, 1_000_000) == pytest.approx(12.5)


def test_unknown_model_falls_back_to_small_default_rate() -> None:
    """Unknown models should price at the fallback rate instead of failing."""

    cost = estimate_cost("unknown-model-xyz", 1_000_000, 1_000_000)

    assert cost == pytest.approx(0.02)
    assert 0.0 < cost < 1.0
    assert CostEstimator().rate_for("unknown-model-xyz") == FALLBACK_RATE


def test_small_request_cost_matches_formula() -> None:
    """Cost should be the sum of per-million input and output prices."""

    assert estimate_cost("gpt-4o", 100, 50) == pytest.approx(0.00075)
    assert estimate_cost("gpt-4o-mini", 2_000, 1_000) == pytest.approx(
        (2_000 / 1e6) * 0.15 + (1_000 / 1e6) * 0.6
    )


def test_zero_and_negative_token_counts_cost_nothing() -> None:
    """Zero or negative usage should never produce a negative cost."""

    assert estimate_cost("gpt-4", 0, 0) == 0.0
    assert estimate_cost("gpt-4", -10, -5) == 0.0


def test_pricing_table_is_read_only() -> None:
    """The built-in price table should reject mutation."""

    with pytest.raises(TypeError):
        MODEL_PRICING["gpt-4o"] = ModelRate(0.0, 0.0)  # type: ignore[index]


def test_custom_pricing_is_copied_on_injection() -> None:
    """Injected price tables should be snapshotted at construction."""

    pricing = {"house-model": ModelRate(1.0, 2.0)}
    estimator = CostEstimator(pricing)
    pricing["house-model"] = ModelRate(100.0, 100.0)

    assert estimator.estimate("house-model", 1_000_000, 1_000_000) == pytest.approx(3.0)
    assert estimator.estimate("gpt-4o", 1_000_000, 0) == pytest.approx(0.01)
