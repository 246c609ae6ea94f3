from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Final, Sequence

from delivery_forecast.common.numeric import round_half_up
from delivery_forecast.common.time_utils import add_days, add_weeks
from delivery_forecast.forecasting.analysis.statistics import percent_rank, percentile
from delivery_forecast.forecasting.domain.models import (
    DeliveryDateAnalysis,
    Initiative,
    Precision,
    ThroughputAnalysis,
)

logger = logging.getLogger(__name__)

FINISHED_MESSAGE: Final[str] = "This initiative has been marked as finished."

EMPTY_DELIVERY_DATE_ANALYSIS: Final[DeliveryDateAnalysis] = DeliveryDateAnalysis(
    p50=None,
    p85=None,
    p98=None,
    desired_date=None,
    confidence_percent=0.0,
)

EMPTY_THROUGHPUT_ANALYSIS: Final[ThroughputAnalysis] = ThroughputAnalysis(
    p50=0.0,
    p85=0.0,
    p98=0.0,
    remaining_item_count=0,
    confidence_percent=0.0,
)


def simulation_start_date(today: date, initiative_begin: date) -> date:
    """Forecasts start tomorrow, or when the initiative starts if that is later."""
    return max(today + timedelta(days=1), initiative_begin)


def add_periods(start: date, periods: float, precision: Precision) -> date:
    if precision is Precision.WEEK:
        return add_weeks(start, periods)
    return add_days(start, periods)


def periods_between(start: date, end: date, precision: Precision) -> float:
    days = (end - start).days
    if precision is Precision.WEEK:
        return days / 7
    return float(days)


def format_confidence(rank: float) -> float:
    return round_half_up(rank * 100, 1)


@dataclass(frozen=True)
class DistributionInterpreter:
    """Reads percentile dates/counts and confidence levels off simulation output."""

    today: date

    def interpret_delivery_dates(
        self,
        periods_to_finish: Sequence[float],
        initiative: Initiative,
        precision: Precision,
    ) -> DeliveryDateAnalysis:
        if initiative.is_finished:
            return EMPTY_DELIVERY_DATE_ANALYSIS

        start = simulation_start_date(self.today, initiative.begin_date)
        if not periods_to_finish:
            return DeliveryDateAnalysis(
                p50=None,
                p85=None,
                p98=None,
                desired_date=initiative.end_date,
                confidence_percent=0.0,
            )

        p50, p85, p98 = (
            add_periods(start, percentile(p, periods_to_finish), precision) for p in (50, 85, 98)
        )

        confidence = 0.0
        if initiative.end_date is not None:
            # The deadline day itself is available for work.
            target = periods_between(start, initiative.end_date + timedelta(days=1), precision)
            confidence = format_confidence(percent_rank(periods_to_finish, target))

        return DeliveryDateAnalysis(
            p50=p50,
            p85=p85,
            p98=p98,
            desired_date=initiative.end_date,
            confidence_percent=confidence,
        )

    def interpret_throughput(
        self,
        throughput_achieved: Sequence[int],
        remaining_work: int,
    ) -> ThroughputAnalysis:
        # More throughput is better, so "85% likely" is the 15th percentile.
        if not throughput_achieved:
            return ThroughputAnalysis(
                p50=0.0,
                p85=0.0,
                p98=0.0,
                remaining_item_count=remaining_work,
                confidence_percent=0.0,
            )
        return ThroughputAnalysis(
            p50=percentile(100 - 50, throughput_achieved),
            p85=percentile(100 - 85, throughput_achieved),
            p98=percentile(100 - 98, throughput_achieved),
            remaining_item_count=remaining_work,
            confidence_percent=(1 - percent_rank(throughput_achieved, remaining_work)) * 100,
        )
