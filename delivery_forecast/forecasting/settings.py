from __future__ import annotations

import math
from typing import Final, Sequence

from delivery_forecast.forecasting.domain.models import (
    COMPLETED_STATE_CATEGORIES,
    Assumptions,
    ForecastSettings,
    Precision,
    RemainingWorkItem,
    WorkItemLevel,
)


DEFAULT_FORECAST_SETTINGS: Final[ForecastSettings] = ForecastSettings(
    team_performance_percent=100.0,
    work_expansion_percent=150.0,
    precision=Precision.DAY,
    included_levels=frozenset({WorkItemLevel.TEAM}),
)

TEAM_PERFORMANCE_LEVELS: Final[dict[int, str]] = {
    25: "Significantly Slower",
    50: "Slower",
    75: "Slightly Slower",
    100: "Normal",
    125: "Slightly Faster",
    150: "Faster",
    175: "Significantly Faster",
}

WORK_EXPANSION_LEVELS: Final[dict[int, str]] = {
    100: "Already fully expanded",
    150: "Mostly Expanded",
    200: "Somewhat Expanded",
    300: "Not Expanded",
}

# Order in which levels are listed in the assumptions text.
_LEVEL_ORDER: Final[tuple[WorkItemLevel, ...]] = (
    WorkItemLevel.PORTFOLIO,
    WorkItemLevel.TEAM,
    WorkItemLevel.INDIVIDUAL_CONTRIBUTOR,
)


def included_level_names(settings: ForecastSettings) -> list[str]:
    """Display names of the included levels, as the history store expects them."""
    return [lvl.display_name for lvl in _LEVEL_ORDER if lvl in settings.included_levels]


def filter_remaining_work(
    items: Sequence[RemainingWorkItem],
    settings: ForecastSettings,
) -> list[RemainingWorkItem]:
    """Keep open items whose level is included in the forecast.

    Items without a level can only be attributed when every level is included.
    """
    all_levels = set(_LEVEL_ORDER) <= set(settings.included_levels)
    out: list[RemainingWorkItem] = []
    for item in items:
        if item.state_category.lower() in COMPLETED_STATE_CATEGORIES:
            continue
        if item.level is None:
            if all_levels:
                out.append(item)
            continue
        if item.level in settings.included_levels:
            out.append(item)
    return out


def adjust_remaining_work(count: int, settings: ForecastSettings) -> int:
    """Scale remaining work by the expected work expansion, rounding down."""
    if not settings.work_expansion_percent:
        return count
    return math.floor(count * (settings.work_expansion_percent / 100))


def build_assumptions(settings: ForecastSettings) -> Assumptions:
    return Assumptions(
        team_performance=_team_performance_text(settings),
        work_item_level=_work_item_level_text(settings),
        work_expansion=_work_expansion_text(settings),
        full_focus=_full_focus_text(settings),
        precision=_precision_text(settings),
    )


def _team_performance_text(settings: ForecastSettings) -> str:
    value = settings.team_performance_percent
    if not value or value == 100:
        return "Team performance remains at the current rate"
    label = TEAM_PERFORMANCE_LEVELS.get(int(value)) if float(value).is_integer() else None
    if label is None:
        return f"Team performance is adjusted to {value:g}%"
    return f"Team performance is {label.lower()} ({value:g}%)"


def _work_item_level_text(settings: ForecastSettings) -> str:
    names = included_level_names(settings)
    if not names:
        return "No work item levels are included"
    suffix = "levels" if len(names) > 1 else "level only"
    return f"Accounting for items at the {', '.join(names)} {suffix}"


def _work_expansion_text(settings: ForecastSettings) -> str:
    value = settings.work_expansion_percent
    label = WORK_EXPANSION_LEVELS.get(int(value)) if value and float(value).is_integer() else None
    if label is None:
        label = WORK_EXPANSION_LEVELS[100]
    return f"The scope is {label.lower()}"


def _full_focus_text(settings: ForecastSettings) -> str:
    capacities = list(settings.capacity_percent_by_context.values())
    focused = [c for c in capacities if c >= 100]
    if capacities and len(focused) == len(capacities):
        return "All participant teams are fully focused on this initiative"
    if focused:
        return "Some of the participant teams are not fully focused on this initiative"
    return "No teams are fully dedicated to this initiative"


def _precision_text(settings: ForecastSettings) -> str:
    level = "Weekly" if settings.precision is Precision.WEEK else "Daily"
    return f"The precision is set to {level}"
