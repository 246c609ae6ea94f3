from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class DomainEvent:
    """Base type for all domain events."""

    occurred_at: datetime


@dataclass(frozen=True)
class PredictiveAnalysisComputed(DomainEvent):
    room_id: str | None
    run_count: int
    result: Mapping[str, Any]


@dataclass(frozen=True)
class PredictiveAnalysisSkipped(DomainEvent):
    room_id: str | None
    reason: str


ForecastEvent = Union[PredictiveAnalysisComputed, PredictiveAnalysisSkipped]
