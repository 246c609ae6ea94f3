from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from delivery_forecast.common.time_utils import parse_iso_date
from delivery_forecast.forecasting.domain.models import (
    CompletedItemsRecord,
    DateRange,
    ForecastDataSource,
    ForecastSettings,
    Initiative,
    RemainingWorkItem,
)
from delivery_forecast.forecasting.settings import DEFAULT_FORECAST_SETTINGS


@dataclass
class RoomData:
    initiative: Initiative
    context_ids: tuple[str, ...] = ()
    settings: ForecastSettings | None = None
    remaining_items: tuple[RemainingWorkItem, ...] = ()


@dataclass
class InMemoryForecastDataSource(ForecastDataSource):
    """Serves rooms and completion history from memory.

    Stands in for the persistence layer in tests and the CLI. Completion
    history is shared by all rooms and filtered by context and date; the
    level filter is applied upstream, so `levels` is only recorded.
    """

    rooms: dict[str, RoomData] = field(default_factory=dict)
    completed_items: list[CompletedItemsRecord] = field(default_factory=list)
    last_levels_requested: tuple[str, ...] = field(default=(), init=False)

    def add_room(self, room_id: str, room: RoomData) -> None:
        self.rooms[room_id] = room

    def _room(self, room_id: str) -> RoomData:
        room = self.rooms.get(room_id)
        if room is None:
            raise KeyError(f"Unknown room: {room_id}")
        return room

    def get_context_ids(self, room_id: str) -> Sequence[str]:
        return self._room(room_id).context_ids

    def get_completed_items_each_day_by_context(
        self,
        context_ids: Sequence[str],
        date_range: DateRange,
        levels: Sequence[str],
    ) -> Sequence[CompletedItemsRecord]:
        self.last_levels_requested = tuple(levels)
        wanted = set(context_ids)
        return [
            r
            for r in self.completed_items
            if r.context_id in wanted and date_range.start <= parse_iso_date(r.day) <= date_range.end
        ]

    def get_forecasting_settings(self, room_id: str) -> ForecastSettings:
        return self._room(room_id).settings or DEFAULT_FORECAST_SETTINGS

    def get_remaining_work_items(self, room_id: str) -> Sequence[RemainingWorkItem]:
        return self._room(room_id).remaining_items

    def get_initiative(self, room_id: str) -> Initiative:
        return self._room(room_id).initiative
