"""AI-assisted strategy with deterministic fallback.

Delegates schedule construction to an external optimizer under a strict
timeout. Any failure of that call (timeout, raised error, malformed response)
is treated as one case: the strategy returns exactly what the dynamic price
strategy produces for the same inputs.

A valid AI schedule is still clipped by the constraint simulator and valued
with the arbitrage formula, so its projected value is comparable with the
other monetary strategies.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, ValidationError

from storage_dispatch.battery.simulator import SimulationOutcome, arbitrage_value
from storage_dispatch.domain.errors import ExternalCallFailure
from storage_dispatch.domain.models import ForecastKind, ValueUnit
from storage_dispatch.providers.interfaces import ExternalOptimizer
from storage_dispatch.strategies.base import Candidate, Strategy, StrategyContext
from storage_dispatch.strategies.dynamic import DynamicPriceStrategy

logger = logging.getLogger(__name__)


# =============================================================================
# Response schema
# =============================================================================


class AISlotProposal(BaseModel):
    """One slot of the optimizer's proposed schedule."""

    model_config = ConfigDict(extra="ignore")

    power_kw: StrictFloat


class AIOptimizerResponse(BaseModel):
    """Strictly validated optimizer response."""

    model_config = ConfigDict(extra="ignore")

    schedule: list[AISlotProposal]
    projected_value: StrictFloat
    confidence: StrictFloat = Field(ge=0, le=1)
    reasoning: str = ""


@dataclass(frozen=True)
class AIStrategyConfig:
    """Configuration for the AI-assisted strategy.

    Attributes:
        timeout_seconds: Hard limit on the external call.
        objective: Objective name passed to the optimizer.
    """

    timeout_seconds: float = 3.0
    objective: str = "maximize_profit"


def parse_response(raw: Any, slot_count: int) -> AIOptimizerResponse:
    """Validate an optimizer response, failing closed.

    Raises:
        ExternalCallFailure: If the response does not match the schema, has
            the wrong number of slots or carries non-finite numbers.
    """
    try:
        response = AIOptimizerResponse.model_validate(raw)
    except ValidationError as exc:
        raise ExternalCallFailure(f"malformed optimizer response: {exc}") from exc

    if len(response.schedule) != slot_count:
        raise ExternalCallFailure(
            f"optimizer returned {len(response.schedule)} slots, expected {slot_count}"
        )
    numbers = [slot.power_kw for slot in response.schedule]
    numbers.append(response.projected_value)
    if not all(math.isfinite(n) for n in numbers):
        raise ExternalCallFailure("optimizer response contains non-finite numbers")
    return response


class AIAssistedStrategy(Strategy):
    """External optimizer with a hard fallback to dynamic price ranking."""

    name = "ai_optimized"
    value_unit = ValueUnit.USD
    requires = frozenset({ForecastKind.PRICE})

    def __init__(
        self,
        optimizer: ExternalOptimizer | None,
        config: AIStrategyConfig | None = None,
        fallback: DynamicPriceStrategy | None = None,
    ) -> None:
        self.optimizer = optimizer
        self.config = config or AIStrategyConfig()
        self.fallback = fallback or DynamicPriceStrategy()

    def build_request_context(self, context: StrategyContext) -> dict[str, Any]:
        """Optimization context handed to the external optimizer."""
        asset = context.asset
        return {
            "site_id": context.site_id,
            "objective": self.config.objective,
            "asset": {
                "id": asset.asset_id,
                "capacity_kwh": asset.capacity_kwh,
                "max_charge_rate_kw": asset.max_charge_rate_kw,
                "max_discharge_rate_kw": asset.max_discharge_rate_kw,
                "efficiency": asset.round_trip_efficiency,
                "current_soc_percent": asset.current_soc_percent,
            },
            "constraints": {
                "min_soc_percent": asset.min_soc_percent,
                "max_soc_percent": asset.max_soc_percent,
            },
            "slots": [
                {
                    "start": slot.start.isoformat(),
                    "end": slot.end.isoformat(),
                    "price": context.price_at(i),
                }
                for i, slot in enumerate(context.slots)
            ],
        }

    async def _call_optimizer(self, context: StrategyContext) -> AIOptimizerResponse:
        if self.optimizer is None:
            raise ExternalCallFailure("no external optimizer configured")
        try:
            raw = await asyncio.wait_for(
                self.optimizer.optimize(self.build_request_context(context)),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ExternalCallFailure(
                f"optimizer timed out after {self.config.timeout_seconds}s"
            ) from exc
        except ExternalCallFailure:
            raise
        except Exception as exc:
            raise ExternalCallFailure(f"optimizer raised {exc!r}") from exc
        return parse_response(raw, context.slot_count)

    def request(self, context: StrategyContext) -> list[float]:
        """Deterministic request used when the optimizer cannot answer."""
        return self.fallback.request(context)

    def value(self, context: StrategyContext, outcome: SimulationOutcome) -> float:
        return arbitrage_value(outcome.entries, context.asset.round_trip_efficiency)

    def fallback_candidate(self, context: StrategyContext) -> Candidate:
        """The dynamic price candidate, relabelled as this strategy's fallback."""
        candidate = self.fallback.evaluate(context)
        return replace(candidate, strategy_id=self.name, fallback_used=True)

    async def evaluate(  # type: ignore[override]
        self, context: StrategyContext
    ) -> Candidate:
        """Ask the external optimizer, falling back on any failure."""
        try:
            response = await self._call_optimizer(context)
        except ExternalCallFailure as exc:
            logger.warning(
                "AI optimization failed for site %s asset %s, using %s fallback: %s",
                context.site_id,
                context.asset.asset_id,
                self.fallback.name,
                exc,
            )
            return self.fallback_candidate(context)

        requested = [float(slot.power_kw) for slot in response.schedule]
        outcome = self.simulate(context, requested)
        confidence = float(response.confidence) * context.coverage(context.prices)
        logger.info(
            "AI schedule accepted for asset %s (%d slots clipped): %s",
            context.asset.asset_id,
            outcome.clipped_slots,
            response.reasoning[:200],
        )
        return Candidate(
            strategy_id=self.name,
            schedule=outcome.entries,
            projected_value=self.value(context, outcome),
            value_unit=self.value_unit,
            confidence=round(confidence, 6),
            clipped_slots=outcome.clipped_slots,
        )
