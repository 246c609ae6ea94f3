from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence


class Precision(str, Enum):
    DAY = "day"
    WEEK = "week"


class WorkItemLevel(str, Enum):
    PORTFOLIO = "portfolio"
    TEAM = "team"
    INDIVIDUAL_CONTRIBUTOR = "individualContributor"

    @property
    def display_name(self) -> str:
        return _LEVEL_DISPLAY_NAMES[self]

    @classmethod
    def from_text(cls, text: str) -> "WorkItemLevel":
        """Accept either the enum value or the display name ('Individual Contributor')."""
        key = "".join(ch for ch in text.lower() if ch.isalnum())
        for level in cls:
            if key == level.value.lower() or key == level.display_name.replace(" ", "").lower():
                return level
        raise ValueError(f"Unknown work item level: {text!r}")


_LEVEL_DISPLAY_NAMES = {
    WorkItemLevel.PORTFOLIO: "Portfolio",
    WorkItemLevel.TEAM: "Team",
    WorkItemLevel.INDIVIDUAL_CONTRIBUTOR: "Individual Contributor",
}


COMPLETED_STATE_CATEGORIES = frozenset({"completed", "removed"})


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class CompletedItemsRecord:
    context_id: str | None
    day: date | str
    items_completed: int | str


@dataclass(frozen=True)
class DeliveryRate:
    period: date
    items_completed: int


@dataclass(frozen=True)
class ForecastSettings:
    team_performance_percent: float = 100.0
    work_expansion_percent: float = 150.0
    precision: Precision = Precision.DAY
    included_levels: frozenset[WorkItemLevel] = frozenset({WorkItemLevel.TEAM})
    capacity_percent_by_context: Mapping[str, float] = field(default_factory=dict)
    context_names: Mapping[str, str] = field(default_factory=dict)
    sample_window_start: date | None = None
    sample_window_end: date | None = None


@dataclass(frozen=True)
class RemainingWorkItem:
    work_item_id: str
    state_category: str  # "proposed", "inprogress", "completed", "removed"
    level: WorkItemLevel | None = None


@dataclass(frozen=True)
class Initiative:
    begin_date: date
    end_date: date | None
    is_finished: bool = False


@dataclass(frozen=True)
class ForecastInputs:
    """Everything the core needs for one forecast, already fetched."""

    initiative: Initiative
    settings: ForecastSettings
    context_ids: tuple[str, ...]
    completed_items: tuple[CompletedItemsRecord, ...]
    remaining_items: tuple[RemainingWorkItem, ...]


@dataclass(frozen=True)
class SimulationRun:
    periods_to_complete: float
    throughput_achieved: int


@dataclass(frozen=True)
class SimulationResults:
    periods_to_finish: tuple[float, ...]
    throughput_achieved: tuple[int, ...]
    run_count: int


@dataclass(frozen=True)
class HistogramBucket:
    bin: float
    frequency: int
    probability: float
    cumulative_probability: float
    derived_date: date | None = None


@dataclass(frozen=True)
class DeliveryDateAnalysis:
    p50: date | None
    p85: date | None
    p98: date | None
    desired_date: date | None
    confidence_percent: float
    histogram: tuple[HistogramBucket, ...] = ()


@dataclass(frozen=True)
class ThroughputAnalysis:
    p50: float
    p85: float
    p98: float
    remaining_item_count: int
    confidence_percent: float
    histogram: tuple[HistogramBucket, ...] = ()


@dataclass(frozen=True)
class ContextRate:
    original: int
    adjusted: int
    name: str = ""


@dataclass(frozen=True)
class SimulationSummary:
    adjusted_remaining_work: int
    average_weekly_rate: int
    original_remaining_by_level: Mapping[str, int]
    adjusted_remaining_by_level: Mapping[str, int]
    per_context_rates: Mapping[str, ContextRate]
    run_count: int


@dataclass(frozen=True)
class SampleInfo:
    date_range_text: str
    duration_days: int
    data_set_size: str
    throughput_periods: int


@dataclass(frozen=True)
class Assumptions:
    team_performance: str = ""
    work_item_level: str = ""
    work_expansion: str = ""
    full_focus: str = ""
    precision: str = ""


@dataclass(frozen=True)
class PredictiveAnalysisResult:
    delivery_date_analysis: DeliveryDateAnalysis
    throughput_analysis: ThroughputAnalysis
    simulation_summary: SimulationSummary
    sample_info: SampleInfo
    assumptions: Assumptions
    message: str | None = None
    is_empty: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Render as JSON-compatible camelCase dict for presentation layers."""
        d = self.delivery_date_analysis
        t = self.throughput_analysis
        s = self.simulation_summary
        out: dict[str, Any] = {
            "deliveryDateAnalysis": {
                "p50": _iso(d.p50),
                "p85": _iso(d.p85),
                "p98": _iso(d.p98),
                "desiredDate": _iso(d.desired_date),
                "confidencePercent": d.confidence_percent,
                "histogram": [_bucket_dict(b) for b in d.histogram],
            },
            "throughputAnalysis": {
                "p50": t.p50,
                "p85": t.p85,
                "p98": t.p98,
                "remainingItemCount": t.remaining_item_count,
                "confidencePercent": t.confidence_percent,
                "histogram": [_bucket_dict(b) for b in t.histogram],
            },
            "simulationSummary": {
                "adjustedRemainingWork": s.adjusted_remaining_work,
                "averageWeeklyRate": s.average_weekly_rate,
                "remainingByLevel": {
                    "original": dict(s.original_remaining_by_level),
                    "adjusted": dict(s.adjusted_remaining_by_level),
                },
                "perContextRates": {
                    ctx: {"name": r.name or ctx, "original": r.original, "adjusted": r.adjusted}
                    for ctx, r in s.per_context_rates.items()
                },
                "runCount": s.run_count,
            },
            "sampleInfo": {
                "dateRange": self.sample_info.date_range_text,
                "duration": self.sample_info.duration_days,
                "dataSetSize": self.sample_info.data_set_size,
                "throughputPeriods": self.sample_info.throughput_periods,
            },
            "assumptions": {
                "teamPerformance": self.assumptions.team_performance,
                "workItemLevel": self.assumptions.work_item_level,
                "workExpansion": self.assumptions.work_expansion,
                "fullFocus": self.assumptions.full_focus,
                "precision": self.assumptions.precision,
            },
            "isEmpty": self.is_empty,
        }
        if self.message is not None:
            out["message"] = self.message
        return out


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _bucket_dict(b: HistogramBucket) -> dict[str, Any]:
    out: dict[str, Any] = {
        "bin": b.bin,
        "frequency": b.frequency,
        "probability": b.probability,
        "cumulativeProbability": b.cumulative_probability,
    }
    if b.derived_date is not None:
        out["derivedDate"] = b.derived_date.isoformat()
    return out


class SamplePicker(Protocol):
    def pick(self, values: Sequence[int]) -> int:
        """Return one element of `values`, chosen uniformly with replacement."""
        ...


class ForecastDataSource(Protocol):
    """Collaborators that resolve a room's inputs before the core runs."""

    def get_context_ids(self, room_id: str) -> Sequence[str]:
        ...

    def get_completed_items_each_day_by_context(
        self,
        context_ids: Sequence[str],
        date_range: DateRange,
        levels: Sequence[str],
    ) -> Sequence[CompletedItemsRecord]:
        ...

    def get_forecasting_settings(self, room_id: str) -> ForecastSettings:
        ...

    def get_remaining_work_items(self, room_id: str) -> Sequence[RemainingWorkItem]:
        ...

    def get_initiative(self, room_id: str) -> Initiative:
        ...
