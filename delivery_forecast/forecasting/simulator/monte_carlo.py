from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from delivery_forecast.common.numeric import round_half_up
from delivery_forecast.config import SimulationConfig
from delivery_forecast.errors import SimulationError
from delivery_forecast.forecasting.domain.models import (
    DeliveryRate,
    Precision,
    SamplePicker,
    SimulationResults,
    SimulationRun,
)
from delivery_forecast.forecasting.simulator.pickers import GeneratorSamplePicker

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def simulate_periods(
    sample: Sequence[int],
    remaining_work: int,
    remaining_periods: float,
    picker: SamplePicker,
    precision: Precision = Precision.DAY,
) -> SimulationRun:
    """Run one when/how-many simulation over a shared sequence of draws.

    When: draw delivery rates until the remaining work is done, however long
    it takes. With week precision only the fraction of the last week that is
    needed counts, rounded to one decimal.

    How many: replay the same draws, in order, for `remaining_periods`
    periods, drawing more only when the recorded ones run out. With week
    precision a fractional last week contributes ceil(rate * fraction) items.
    """
    periods = 0.0
    total_completed = 0
    draws: list[int] = []

    while total_completed < remaining_work:
        rate = picker.pick(sample)
        draws.append(rate)

        completed_now = rate
        period_now = 1.0
        if precision is Precision.WEEK and total_completed + rate > remaining_work:
            left = remaining_work - total_completed
            period_now = round_half_up(left / rate, 1)
            completed_now = left

        total_completed += completed_now
        periods += period_now

    throughput = 0
    used = 0
    while used < remaining_periods:
        if used >= len(draws):
            draws.append(picker.pick(sample))
        rate = draws[used]
        if precision is Precision.WEEK and used + 1 > remaining_periods:
            throughput += math.ceil(rate * (remaining_periods - used))
        else:
            throughput += rate
        used += 1

    return SimulationRun(periods_to_complete=periods, throughput_achieved=throughput)


@dataclass
class MonteCarloEngine:
    """Bounded resampling of a delivery-rate sample.

    Runs `simulate_periods` until the time budget is spent or the iteration
    cap is hit, whichever comes first. The clock is checked once per run.
    """

    config: SimulationConfig = field(default_factory=SimulationConfig)
    clock: Clock = time.monotonic

    def run(
        self,
        sample: Sequence[DeliveryRate],
        remaining_work: int,
        remaining_periods: float,
        precision: Precision = Precision.DAY,
        picker: SamplePicker | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> SimulationResults:
        counts = [int(r.items_completed) for r in sample]
        if not counts:
            raise SimulationError("Cannot simulate without a delivery-rate sample")
        if remaining_work < 0:
            raise SimulationError(f"Remaining work must be >= 0, got {remaining_work}")
        if remaining_work > 0 and max(counts) <= 0:
            raise SimulationError("Sample has no delivered work; remaining work can never finish")

        picker = picker or GeneratorSamplePicker.from_seed(self.config.rng_seed)
        remaining_periods = max(0.0, float(remaining_periods))

        periods_to_finish: list[float] = []
        throughput_achieved: list[int] = []
        start = self.clock()
        budget = self.config.time_budget_seconds
        cap = self.config.iteration_cap
        stop_reason = "iteration cap"

        while len(periods_to_finish) < cap:
            if self.clock() - start >= budget:
                stop_reason = "time budget"
                break
            if should_cancel is not None and should_cancel():
                stop_reason = "cancelled"
                break
            result = simulate_periods(counts, remaining_work, remaining_periods, picker, precision)
            periods_to_finish.append(result.periods_to_complete)
            throughput_achieved.append(result.throughput_achieved)

        logger.debug(
            "Simulation stopped on %s after %d runs (remaining_work=%d, remaining_periods=%.2f)",
            stop_reason,
            len(periods_to_finish),
            remaining_work,
            remaining_periods,
        )
        return SimulationResults(
            periods_to_finish=tuple(periods_to_finish),
            throughput_achieved=tuple(throughput_achieved),
            run_count=len(periods_to_finish),
        )
