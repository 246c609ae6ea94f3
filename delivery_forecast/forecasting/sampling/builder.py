from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping, Sequence

from delivery_forecast.common.numeric import round_half_up
from delivery_forecast.common.time_utils import end_of_iso_week, parse_iso_date
from delivery_forecast.config import DEFAULT_CAPACITY_PERCENT, DEFAULT_SAMPLE_DAYS
from delivery_forecast.errors import InvalidDateRangeError
from delivery_forecast.forecasting.domain.models import (
    CompletedItemsRecord,
    DateRange,
    DeliveryRate,
    ForecastSettings,
    Precision,
)

logger = logging.getLogger(__name__)

CompletedItemsByContext = dict[str, dict[date, int]]


def calculate_date_range(
    sample_start: date | None,
    sample_end: date | None,
    today: date,
    default_days: int = DEFAULT_SAMPLE_DAYS,
) -> DateRange:
    """Resolve the sample window from the configured dates.

    - start only: rolling window from start up to yesterday
    - start and end: used as given
    - neither: the `default_days` days ending yesterday
    An end date without a start date is ignored.
    """
    yesterday = today - timedelta(days=1)
    if sample_start is not None and sample_end is None:
        rng = DateRange(start=sample_start, end=yesterday)
    elif sample_start is not None and sample_end is not None:
        rng = DateRange(start=sample_start, end=sample_end)
    else:
        rng = DateRange(start=yesterday - timedelta(days=default_days - 1), end=yesterday)

    if rng.start > rng.end:
        raise InvalidDateRangeError(
            f"Sample window starts after it ends: {rng.start.isoformat()} > {rng.end.isoformat()}"
        )
    return rng


def group_completed_by_context(records: Iterable[CompletedItemsRecord]) -> CompletedItemsByContext:
    """Index raw completion counts as {context_id: {day: count}}.

    Records without a context (aggregated rows) are dropped.
    """
    out: CompletedItemsByContext = defaultdict(dict)
    for r in records:
        if r.context_id is None or r.context_id == "null":
            continue
        out[r.context_id][parse_iso_date(r.day)] = int(r.items_completed)
    return dict(out)


@dataclass(frozen=True)
class AdjustedSample:
    """Merged delivery-rate sample plus the per-context totals behind it."""

    delivery_rates: tuple[DeliveryRate, ...]
    date_range: DateRange
    original_total_by_context: Mapping[str, float] = field(default_factory=dict)
    adjusted_total_by_context: Mapping[str, float] = field(default_factory=dict)

    @property
    def counts(self) -> list[int]:
        return [r.items_completed for r in self.delivery_rates]


@dataclass
class SampleBuilder:
    """Turns per-context completion history into one adjusted delivery-rate series.

    Each context's daily count is scaled by its capacity on the initiative
    (default 75%) and by the expected team performance, then summed across
    contexts. Week precision regroups the daily series into ISO weeks.
    """

    default_capacity_percent: float = DEFAULT_CAPACITY_PERCENT

    def build(
        self,
        context_ids: Sequence[str],
        date_range: DateRange,
        completed_by_context: Mapping[str, Mapping[date, int]],
        settings: ForecastSettings,
    ) -> AdjustedSample:
        original_totals: dict[str, float] = {cid: 0.0 for cid in context_ids}
        adjusted_totals: dict[str, float] = {cid: 0.0 for cid in context_ids}
        daily: list[DeliveryRate] = []

        day = date_range.start
        while day <= date_range.end:
            day_sum = 0.0
            for cid in context_ids:
                completed = completed_by_context.get(cid, {}).get(day, 0)
                adjusted = self._adjust(cid, completed, settings)
                original_totals[cid] += completed
                adjusted_totals[cid] += adjusted
                day_sum += adjusted
            daily.append(DeliveryRate(period=day, items_completed=int(round_half_up(day_sum))))
            day += timedelta(days=1)

        rates = daily
        if settings.precision is Precision.WEEK:
            rates = bucket_by_week(daily)

        logger.debug(
            "Built %s sample of %d periods over %s..%s for %d contexts",
            settings.precision.value,
            len(rates),
            date_range.start,
            date_range.end,
            len(context_ids),
        )
        return AdjustedSample(
            delivery_rates=tuple(rates),
            date_range=date_range,
            original_total_by_context=original_totals,
            adjusted_total_by_context=adjusted_totals,
        )

    def _adjust(self, context_id: str, completed: int, settings: ForecastSettings) -> float:
        capacity = settings.capacity_percent_by_context.get(context_id, self.default_capacity_percent)
        value = completed * (capacity / 100)
        if settings.team_performance_percent:
            value *= settings.team_performance_percent / 100
        return value


def bucket_by_week(daily: Sequence[DeliveryRate]) -> list[DeliveryRate]:
    """Sum daily rates per ISO week, labelling each bucket with its Sunday.

    A bucket describes what was finished during the week, so it is dated when
    the week ends. Partial weeks at either end of the window are kept.
    """
    sums: dict[tuple[int, int], int] = {}
    labels: dict[tuple[int, int], date] = {}
    for r in daily:
        iso = r.period.isocalendar()
        key = (iso.year, iso.week)
        if key not in sums:
            sums[key] = 0
            labels[key] = end_of_iso_week(r.period)
        sums[key] += r.items_completed
    return [DeliveryRate(period=labels[k], items_completed=sums[k]) for k in sums]
