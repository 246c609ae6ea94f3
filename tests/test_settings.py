from __future__ import annotations

from delivery_forecast.forecasting.domain.models import (
    ForecastSettings,
    Precision,
    RemainingWorkItem,
    WorkItemLevel,
)
from delivery_forecast.forecasting.settings import (
    DEFAULT_FORECAST_SETTINGS,
    adjust_remaining_work,
    build_assumptions,
    filter_remaining_work,
    included_level_names,
)

ALL_LEVELS = frozenset(WorkItemLevel)


def _items() -> list[RemainingWorkItem]:
    return [
        RemainingWorkItem("A", "proposed", WorkItemLevel.TEAM),
        RemainingWorkItem("B", "inprogress", WorkItemLevel.PORTFOLIO),
        RemainingWorkItem("C", "completed", WorkItemLevel.TEAM),
        RemainingWorkItem("D", "Removed", WorkItemLevel.TEAM),
        RemainingWorkItem("E", "proposed", None),
    ]


def test_filter_drops_finished_and_excluded_levels() -> None:
    kept = filter_remaining_work(_items(), DEFAULT_FORECAST_SETTINGS)
    assert [i.work_item_id for i in kept] == ["A"]


def test_filter_keeps_unlevelled_items_only_when_every_level_is_included() -> None:
    kept = filter_remaining_work(_items(), ForecastSettings(included_levels=ALL_LEVELS))
    assert [i.work_item_id for i in kept] == ["A", "B", "E"]


def test_adjust_remaining_work_rounds_down() -> None:
    assert adjust_remaining_work(10, ForecastSettings(work_expansion_percent=150.0)) == 15
    assert adjust_remaining_work(7, ForecastSettings(work_expansion_percent=150.0)) == 10
    assert adjust_remaining_work(7, ForecastSettings(work_expansion_percent=0.0)) == 7


def test_level_names_follow_display_order() -> None:
    assert included_level_names(ForecastSettings(included_levels=ALL_LEVELS)) == [
        "Portfolio",
        "Team",
        "Individual Contributor",
    ]


def test_level_from_text_accepts_values_and_display_names() -> None:
    assert WorkItemLevel.from_text("Individual Contributor") is WorkItemLevel.INDIVIDUAL_CONTRIBUTOR
    assert WorkItemLevel.from_text("individualContributor") is WorkItemLevel.INDIVIDUAL_CONTRIBUTOR
    assert WorkItemLevel.from_text("Team") is WorkItemLevel.TEAM


def test_default_assumptions() -> None:
    a = build_assumptions(DEFAULT_FORECAST_SETTINGS)
    assert a.team_performance == "Team performance remains at the current rate"
    assert a.work_item_level == "Accounting for items at the Team level only"
    assert a.work_expansion == "The scope is mostly expanded"
    assert a.full_focus == "No teams are fully dedicated to this initiative"
    assert a.precision == "The precision is set to Daily"


def test_assumptions_reflect_custom_settings() -> None:
    a = build_assumptions(
        ForecastSettings(
            team_performance_percent=125.0,
            work_expansion_percent=300.0,
            precision=Precision.WEEK,
            included_levels=frozenset({WorkItemLevel.PORTFOLIO, WorkItemLevel.TEAM}),
            capacity_percent_by_context={"a": 100.0, "b": 50.0},
        )
    )
    assert a.team_performance == "Team performance is slightly faster (125%)"
    assert a.work_item_level == "Accounting for items at the Portfolio, Team levels"
    assert a.work_expansion == "The scope is not expanded"
    assert a.full_focus == "Some of the participant teams are not fully focused on this initiative"
    assert a.precision == "The precision is set to Weekly"


def test_all_teams_fully_focused() -> None:
    a = build_assumptions(ForecastSettings(capacity_percent_by_context={"a": 100.0, "b": 120.0}))
    assert a.full_focus == "All participant teams are fully focused on this initiative"
