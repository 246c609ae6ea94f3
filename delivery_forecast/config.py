from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, Field, field_validator


DEFAULT_CAPACITY_PERCENT: Final[float] = 75.0
SIMULATION_ITERATION_CAP: Final[int] = 250_000
SIMULATION_TIME_BUDGET_SECONDS: Final[float] = 1.0
DEFAULT_SAMPLE_DAYS: Final[int] = 90

# Minimum share of non-zero periods a sample needs, per precision.
# "month" is not a selectable precision yet; kept so the table is complete.
VALID_DATA_POINT_THRESHOLDS: Final[dict[str, float]] = {
    "day": 0.3,
    "week": 0.5,
    "month": 0.8,
}


def _expand(path: str | Path) -> Path:
    return Path(os.path.expanduser(str(path))).resolve()


def _read_toml(path: Path) -> dict[str, Any]:
    return tomllib.loads(path.read_bytes().decode("utf-8"))


class SimulationConfig(BaseModel):
    """Bounds and randomness of the Monte Carlo loop."""

    iteration_cap: int = Field(default=SIMULATION_ITERATION_CAP, gt=0)
    time_budget_seconds: float = Field(default=SIMULATION_TIME_BUDGET_SECONDS, gt=0.0)
    rng_seed: int | None = Field(
        default=None,
        description="Fix to make forecasts reproducible; None draws fresh entropy per run.",
    )


class SamplingConfig(BaseModel):
    """How historical delivery rates are turned into a sample."""

    default_capacity_percent: float = Field(default=DEFAULT_CAPACITY_PERCENT, ge=0.0)
    default_sample_days: int = Field(default=DEFAULT_SAMPLE_DAYS, gt=0)
    validity_thresholds: dict[str, float] = Field(
        default_factory=lambda: dict(VALID_DATA_POINT_THRESHOLDS),
    )

    @field_validator("validity_thresholds")
    @classmethod
    def _thresholds_are_fractions(cls, v: dict[str, float]) -> dict[str, float]:
        for key, threshold in v.items():
            if not 0.0 <= threshold <= 1.0:
                raise ValueError(f"threshold for {key!r} must be within [0, 1], got {threshold}")
        merged = dict(VALID_DATA_POINT_THRESHOLDS)
        merged.update(v)
        return merged


class ForecastingConfig(BaseModel):
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)

    @classmethod
    def load(cls, path: str | Path) -> "ForecastingConfig":
        raw = _read_toml(_expand(path))
        return cls.model_validate(raw)
