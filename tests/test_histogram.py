from __future__ import annotations

from datetime import date

from delivery_forecast.forecasting.analysis.histogram import (
    build_delivery_date_histogram,
    build_histogram,
    build_throughput_histogram,
)
from delivery_forecast.forecasting.domain.models import HistogramBucket, Precision


def test_histogram_bins_by_exact_value() -> None:
    assert build_histogram([11, 10, 10]) == [
        HistogramBucket(bin=10, frequency=2, probability=66.67, cumulative_probability=66.67),
        HistogramBucket(bin=11, frequency=1, probability=33.33, cumulative_probability=100.0),
    ]


def test_throughput_histogram_is_ascending() -> None:
    buckets = build_throughput_histogram([3, 1, 2, 1])
    assert [b.bin for b in buckets] == [1, 2, 3]
    assert [b.probability for b in buckets] == [50.0, 25.0, 25.0]
    assert [b.cumulative_probability for b in buckets] == [50.0, 75.0, 100.0]


def test_delivery_histogram_attaches_dates() -> None:
    start = date(2024, 1, 11)
    days = build_delivery_date_histogram([10, 10, 11], start, Precision.DAY)
    assert [b.derived_date for b in days] == [date(2024, 1, 21), date(2024, 1, 22)]

    weeks = build_delivery_date_histogram([1, 2.5], start, Precision.WEEK)
    assert [b.derived_date for b in weeks] == [date(2024, 1, 18), date(2024, 1, 28)]


def test_empty_histogram() -> None:
    assert build_histogram([]) == []
