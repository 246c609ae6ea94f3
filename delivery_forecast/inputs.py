from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from delivery_forecast.forecasting.domain.models import (
    CompletedItemsRecord,
    ForecastInputs,
    ForecastSettings,
    Initiative,
    Precision,
    RemainingWorkItem,
    WorkItemLevel,
)


class ContextCapacityModel(BaseModel):
    context_id: str
    context_name: str = Field(default="")
    capacity_percent: float = Field(..., ge=0.0)


class SettingsModel(BaseModel):
    team_performance_percent: float = Field(default=100.0, ge=0.0)
    work_expansion_percent: float = Field(default=150.0, ge=0.0)
    precision: Precision = Field(default=Precision.DAY)
    included_levels: list[WorkItemLevel] = Field(default_factory=lambda: [WorkItemLevel.TEAM])
    context_capacity: list[ContextCapacityModel] = Field(default_factory=list)
    sample_window_start: date | None = None
    sample_window_end: date | None = None

    @field_validator("included_levels", mode="before")
    @classmethod
    def _parse_levels(cls, v: object) -> object:
        if isinstance(v, list):
            return [WorkItemLevel.from_text(x) if isinstance(x, str) else x for x in v]
        return v

    def to_domain(self) -> ForecastSettings:
        return ForecastSettings(
            team_performance_percent=self.team_performance_percent,
            work_expansion_percent=self.work_expansion_percent,
            precision=self.precision,
            included_levels=frozenset(self.included_levels),
            capacity_percent_by_context={c.context_id: c.capacity_percent for c in self.context_capacity},
            context_names={c.context_id: c.context_name for c in self.context_capacity if c.context_name},
            sample_window_start=self.sample_window_start,
            sample_window_end=self.sample_window_end,
        )


class InitiativeModel(BaseModel):
    begin_date: date
    end_date: date | None = None
    is_finished: bool = False


class CompletedItemsModel(BaseModel):
    context_id: str | None
    day: date = Field(..., alias="date")
    items_completed: int = Field(..., ge=0)


class RemainingItemModel(BaseModel):
    work_item_id: str
    state_category: str = Field(default="proposed")
    level: WorkItemLevel | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, v: object) -> object:
        if isinstance(v, str):
            return WorkItemLevel.from_text(v)
        return v


class ForecastInputsFile(BaseModel):
    """JSON schema of already-resolved forecast inputs for one initiative."""

    initiative: InitiativeModel
    settings: SettingsModel = Field(default_factory=SettingsModel)
    context_ids: list[str] = Field(default_factory=list)
    completed_items: list[CompletedItemsModel] = Field(default_factory=list)
    remaining_items: list[RemainingItemModel] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "ForecastInputsFile":
        return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def to_domain(self) -> ForecastInputs:
        return ForecastInputs(
            initiative=Initiative(
                begin_date=self.initiative.begin_date,
                end_date=self.initiative.end_date,
                is_finished=self.initiative.is_finished,
            ),
            settings=self.settings.to_domain(),
            context_ids=tuple(self.context_ids),
            completed_items=tuple(
                CompletedItemsRecord(
                    context_id=r.context_id,
                    day=r.day,
                    items_completed=r.items_completed,
                )
                for r in self.completed_items
            ),
            remaining_items=tuple(
                RemainingWorkItem(
                    work_item_id=r.work_item_id,
                    state_category=r.state_category,
                    level=r.level,
                )
                for r in self.remaining_items
            ),
        )
