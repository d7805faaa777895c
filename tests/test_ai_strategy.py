"""Tests for the AI-assisted strategy and its fallback."""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from storage_dispatch.domain.errors import ExternalCallFailure
from storage_dispatch.strategies import (
    AIAssistedStrategy,
    AIStrategyConfig,
    DynamicPriceStrategy,
    StrategyContext,
)
from storage_dispatch.strategies.ai_assisted import parse_response

ContextFactory = Callable[..., StrategyContext]


class FakeOptimizer:
    """External optimizer returning a canned response."""

    def __init__(
        self,
        response: Any = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.response = response
        self.delay = delay
        self.error = error
        self.contexts: list[dict[str, Any]] = []

    async def optimize(self, context: dict[str, Any]) -> Any:
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def valid_response(powers: list[float], confidence: float = 0.8) -> dict[str, Any]:
    return {
        "schedule": [{"power_kw": p} for p in powers],
        "projected_value": 99.0,
        "confidence": confidence,
        "reasoning": "charge overnight, discharge at the evening peak",
    }


def run(strategy: AIAssistedStrategy, context: StrategyContext):
    return asyncio.run(strategy.evaluate(context))


class TestFallback:
    """Any optimizer failure yields exactly the dynamic price schedule."""

    @pytest.fixture
    def expected(self, make_context: ContextFactory):
        return DynamicPriceStrategy().evaluate(make_context())

    @pytest.mark.parametrize(
        "optimizer",
        [
            None,
            FakeOptimizer(error=RuntimeError("model overloaded")),
            FakeOptimizer(response={"schedule": "tomorrow"}),
            FakeOptimizer(response=valid_response([1.0] * 3)),
            FakeOptimizer(response=valid_response([1.0] * 24, confidence=1.5)),
        ],
        ids=["no-optimizer", "raises", "malformed", "wrong-length", "bad-confidence"],
    )
    def test_failure_falls_back(
        self, optimizer: Any, make_context: ContextFactory, expected
    ) -> None:
        """Test failures substitute the dynamic price candidate."""
        candidate = run(AIAssistedStrategy(optimizer), make_context())

        assert candidate.fallback_used
        assert candidate.strategy_id == "ai_optimized"
        assert candidate.schedule == expected.schedule
        assert candidate.projected_value == expected.projected_value
        assert candidate.confidence == expected.confidence

    def test_timeout_falls_back(self, make_context: ContextFactory, expected) -> None:
        """Test a hanging optimizer is abandoned at the timeout."""
        optimizer = FakeOptimizer(response=valid_response([0.0] * 24), delay=5.0)
        strategy = AIAssistedStrategy(optimizer, AIStrategyConfig(timeout_seconds=0.05))

        candidate = run(strategy, make_context())

        assert candidate.fallback_used
        assert candidate.schedule == expected.schedule

    def test_fallback_logged_as_warning(
        self, make_context: ContextFactory, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test the fallback is logged at warning level."""
        optimizer = FakeOptimizer(error=ConnectionError("unreachable"))
        with caplog.at_level("WARNING"):
            run(AIAssistedStrategy(optimizer), make_context())
        assert "using dynamic_price fallback" in caplog.text


class TestValidResponse:
    """A valid optimizer schedule is clipped and re-valued."""

    def test_schedule_clipped_and_revalued(self, make_context: ContextFactory) -> None:
        """Test the reported projected value is replaced by the arbitrage value."""
        powers = [0.0] * 24
        powers[2] = 20.0  # beyond the 5 kW rate
        powers[18] = -5.0
        powers[19] = -5.0
        optimizer = FakeOptimizer(response=valid_response(powers, confidence=0.8))

        candidate = run(AIAssistedStrategy(optimizer), make_context())

        assert not candidate.fallback_used
        assert candidate.powers[2] == pytest.approx(4.0)
        assert candidate.clipped_slots == 2
        assert candidate.projected_value == pytest.approx(1.69)
        assert candidate.confidence == pytest.approx(0.8)

    def test_request_context_contents(self, make_context: ContextFactory) -> None:
        """Test the optimizer receives asset limits and priced slots."""
        optimizer = FakeOptimizer(response=valid_response([0.0] * 24))
        run(AIAssistedStrategy(optimizer), make_context())

        sent = optimizer.contexts[0]
        assert sent["asset"]["capacity_kwh"] == 10.0
        assert sent["constraints"]["min_soc_percent"] == 20.0
        assert len(sent["slots"]) == 24
        assert sent["slots"][2]["price"] == 0.05


class TestParseResponse:
    """Strict response validation."""

    def test_string_numbers_rejected(self) -> None:
        """Test strict floats reject numeric strings."""
        with pytest.raises(ExternalCallFailure):
            parse_response(
                {
                    "schedule": [{"power_kw": "1.0"}],
                    "projected_value": 1.0,
                    "confidence": 0.5,
                },
                slot_count=1,
            )

    def test_non_finite_rejected(self) -> None:
        """Test NaN and infinity are rejected."""
        with pytest.raises(ExternalCallFailure):
            parse_response(valid_response([float("nan")]), slot_count=1)

    def test_valid(self) -> None:
        """Test a well-formed response parses."""
        response = parse_response(valid_response([1.5, -2.0]), slot_count=2)
        assert [s.power_kw for s in response.schedule] == [1.5, -2.0]
        assert response.confidence == 0.8
