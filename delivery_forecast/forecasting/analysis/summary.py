from __future__ import annotations

from collections import Counter
from typing import Final, Mapping, Sequence

from delivery_forecast.common.numeric import round_half_up
from delivery_forecast.forecasting.domain.models import (
    ContextRate,
    DateRange,
    DeliveryRate,
    ForecastSettings,
    RemainingWorkItem,
    SimulationSummary,
    WorkItemLevel,
)
from delivery_forecast.forecasting.settings import adjust_remaining_work


def _empty_levels() -> dict[str, int]:
    return {lvl.value: 0 for lvl in WorkItemLevel}


EMPTY_SIMULATION_SUMMARY: Final[SimulationSummary] = SimulationSummary(
    adjusted_remaining_work=0,
    average_weekly_rate=0,
    original_remaining_by_level=_empty_levels(),
    adjusted_remaining_by_level=_empty_levels(),
    per_context_rates={},
    run_count=0,
)


def weekly_rate(total: float, sample_days: int) -> int:
    """Express a total delivered over `sample_days` as a per-week rate."""
    if sample_days <= 0:
        return 0
    return int(round_half_up(total / (sample_days / 7)))


def remaining_by_level(items: Sequence[RemainingWorkItem]) -> dict[str, int]:
    counts = Counter(i.level.value for i in items if i.level is not None)
    out = _empty_levels()
    out.update(counts)
    return out


def adjust_remaining_by_level(
    by_level: Mapping[str, int],
    settings: ForecastSettings,
) -> dict[str, int]:
    return {lvl: adjust_remaining_work(n, settings) for lvl, n in by_level.items()}


def summarise(
    *,
    adjusted_remaining_work: int,
    remaining_items: Sequence[RemainingWorkItem],
    settings: ForecastSettings,
    sample: Sequence[DeliveryRate],
    date_range: DateRange,
    original_total_by_context: Mapping[str, float],
    adjusted_total_by_context: Mapping[str, float],
    run_count: int,
) -> SimulationSummary:
    days = date_range.days
    original_by_level = remaining_by_level(remaining_items)
    return SimulationSummary(
        adjusted_remaining_work=adjusted_remaining_work,
        average_weekly_rate=weekly_rate(sum(r.items_completed for r in sample), days),
        original_remaining_by_level=original_by_level,
        adjusted_remaining_by_level=adjust_remaining_by_level(original_by_level, settings),
        per_context_rates={
            ctx: ContextRate(
                original=weekly_rate(original_total_by_context[ctx], days),
                adjusted=weekly_rate(adjusted_total_by_context.get(ctx, 0.0), days),
                name=settings.context_names.get(ctx, ""),
            )
            for ctx in original_total_by_context
        },
        run_count=run_count,
    )
