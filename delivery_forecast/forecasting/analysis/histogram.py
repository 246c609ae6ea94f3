from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Sequence

from delivery_forecast.common.numeric import round_half_up
from delivery_forecast.forecasting.analysis.interpretation import add_periods
from delivery_forecast.forecasting.domain.models import HistogramBucket, Precision


def build_histogram(values: Sequence[float]) -> list[HistogramBucket]:
    """One bucket per distinct simulated value, ascending.

    Probabilities are percentages rounded to two decimals; the cumulative
    probability accumulates unrounded shares and is rounded on output.
    """
    total = len(values)
    if total == 0:
        return []
    counts = Counter(values)
    out: list[HistogramBucket] = []
    cumulative = 0.0
    for value in sorted(counts):
        frequency = counts[value]
        probability = frequency / total * 100
        cumulative += probability
        out.append(
            HistogramBucket(
                bin=value,
                frequency=frequency,
                probability=round_half_up(probability, 2),
                cumulative_probability=round_half_up(cumulative, 2),
            )
        )
    return out


def build_delivery_date_histogram(
    periods_to_finish: Sequence[float],
    simulation_start: date,
    precision: Precision,
) -> list[HistogramBucket]:
    return [
        HistogramBucket(
            bin=b.bin,
            frequency=b.frequency,
            probability=b.probability,
            cumulative_probability=b.cumulative_probability,
            derived_date=add_periods(simulation_start, b.bin, precision),
        )
        for b in build_histogram(periods_to_finish)
    ]


def build_throughput_histogram(throughput_achieved: Sequence[int]) -> list[HistogramBucket]:
    return build_histogram(throughput_achieved)
