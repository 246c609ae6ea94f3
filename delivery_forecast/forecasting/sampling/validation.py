from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Mapping, Sequence

from delivery_forecast.config import VALID_DATA_POINT_THRESHOLDS
from delivery_forecast.forecasting.domain.models import DeliveryRate, Precision, SampleInfo


TOO_MANY_ZERO_PERIODS: Final[str] = (
    "Due to a large volume of zero throughput periods, we're unable to process the forecasting."
)


@dataclass(frozen=True)
class SampleValidation:
    validated: bool
    reason: str | None = None


@dataclass(frozen=True)
class SampleValidator:
    """Rejects samples with too few periods in which anything was delivered.

    Example at day precision: a 7-day week with no weekend throughput has
    2/7 zero days (71% non-zero), which passes the 30% threshold.
    """

    thresholds: Mapping[str, float] = field(default_factory=lambda: dict(VALID_DATA_POINT_THRESHOLDS))

    def validate(self, sample: Sequence[DeliveryRate], precision: Precision | str) -> SampleValidation:
        key = precision.value if isinstance(precision, Precision) else precision
        threshold = self.thresholds[key]
        if not sample:
            return SampleValidation(validated=False, reason=TOO_MANY_ZERO_PERIODS)
        if non_zero_periods(sample) / len(sample) >= threshold:
            return SampleValidation(validated=True)
        return SampleValidation(validated=False, reason=TOO_MANY_ZERO_PERIODS)


def non_zero_periods(sample: Sequence[DeliveryRate]) -> int:
    return sum(1 for r in sample if r.items_completed > 0)


def describe_sample(sample: Sequence[DeliveryRate]) -> SampleInfo:
    if not sample:
        return EMPTY_SAMPLE_INFO
    first = sample[0].period
    last = sample[-1].period
    return SampleInfo(
        date_range_text=f"{first.strftime('%d %b %Y')} - {last.strftime('%d %b %Y')}",
        duration_days=(last - first).days,
        data_set_size=f"{len(sample)} samples",
        throughput_periods=non_zero_periods(sample),
    )


EMPTY_SAMPLE_INFO: Final[SampleInfo] = SampleInfo(
    date_range_text="",
    duration_days=0,
    data_set_size="",
    throughput_periods=0,
)
