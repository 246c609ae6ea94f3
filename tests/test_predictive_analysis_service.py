from __future__ import annotations

from datetime import date, timedelta

import pytest

from delivery_forecast.config import ForecastingConfig, SimulationConfig
from delivery_forecast.errors import InvalidDateRangeError
from delivery_forecast.forecasting.analysis.interpretation import FINISHED_MESSAGE
from delivery_forecast.forecasting.domain.models import (
    CompletedItemsRecord,
    ForecastInputs,
    ForecastSettings,
    Initiative,
    Precision,
    RemainingWorkItem,
    WorkItemLevel,
)
from delivery_forecast.forecasting.sampling.validation import TOO_MANY_ZERO_PERIODS
from delivery_forecast.forecasting.services.predictive_analysis import (
    NO_CONTEXTS_MESSAGE,
    PredictiveAnalysisService,
    remaining_periods,
)
from delivery_forecast.forecasting.simulator.monte_carlo import MonteCarloEngine
from delivery_forecast.forecasting.sources import InMemoryForecastDataSource, RoomData
from delivery_forecast.integration.event_bus import InMemoryEventBus
from delivery_forecast.integration.events import (
    DomainEvent,
    PredictiveAnalysisComputed,
    PredictiveAnalysisSkipped,
)


TODAY = date(2024, 3, 10)


def _service(cap: int = 200, seed: int | None = 1, bus: InMemoryEventBus | None = None) -> PredictiveAnalysisService:
    config = ForecastingConfig(simulation=SimulationConfig(iteration_cap=cap, rng_seed=seed))
    # A frozen clock makes the iteration cap the only stop condition.
    engine = MonteCarloEngine(config=config.simulation, clock=lambda: 0.0)
    return PredictiveAnalysisService(config=config, bus=bus, today_provider=lambda: TODAY, engine=engine)


def _history(start: date, end: date, per_day: int, context_id: str = "a") -> tuple[CompletedItemsRecord, ...]:
    out = []
    day = start
    while day <= end:
        out.append(CompletedItemsRecord(context_id=context_id, day=day, items_completed=per_day))
        day += timedelta(days=1)
    return tuple(out)


def _items(n: int) -> tuple[RemainingWorkItem, ...]:
    return tuple(RemainingWorkItem(f"item-{i}", "proposed", WorkItemLevel.TEAM) for i in range(n))


def _daily_inputs(**overrides: object) -> ForecastInputs:
    settings = ForecastSettings(
        work_expansion_percent=100.0,
        capacity_percent_by_context={"a": 100.0},
        sample_window_start=date(2024, 2, 1),
        sample_window_end=date(2024, 2, 29),
    )
    values: dict[str, object] = {
        "initiative": Initiative(begin_date=date(2024, 3, 1), end_date=date(2024, 3, 20)),
        "settings": settings,
        "context_ids": ("a",),
        "completed_items": _history(date(2024, 2, 1), date(2024, 2, 29), per_day=2),
        "remaining_items": _items(10),
    }
    values.update(overrides)
    return ForecastInputs(**values)  # type: ignore[arg-type]


def test_steady_history_gives_certain_forecast() -> None:
    result = _service().run(_daily_inputs(), today=TODAY)

    assert not result.is_empty
    d = result.delivery_date_analysis
    assert d.p50 == d.p85 == d.p98 == date(2024, 3, 16)
    assert d.desired_date == date(2024, 3, 20)
    assert d.confidence_percent == 100.0
    assert [(b.bin, b.frequency, b.derived_date) for b in d.histogram] == [(5.0, 200, date(2024, 3, 16))]

    t = result.throughput_analysis
    assert t.p50 == t.p85 == t.p98 == 18
    assert t.remaining_item_count == 10
    assert t.confidence_percent == 100.0

    s = result.simulation_summary
    assert s.run_count == 200
    assert s.adjusted_remaining_work == 10
    assert s.average_weekly_rate == 14
    assert s.per_context_rates["a"].original == 14
    assert result.sample_info.data_set_size == "29 samples"
    assert result.assumptions.precision == "The precision is set to Daily"


def test_week_precision_forecast() -> None:
    settings = ForecastSettings(
        work_expansion_percent=100.0,
        precision=Precision.WEEK,
        capacity_percent_by_context={"a": 100.0},
        sample_window_start=date(2024, 1, 1),
        sample_window_end=date(2024, 2, 25),
    )
    inputs = _daily_inputs(
        settings=settings,
        initiative=Initiative(begin_date=date(2024, 3, 1), end_date=date(2024, 3, 31)),
        completed_items=_history(date(2024, 1, 1), date(2024, 2, 25), per_day=1),
    )
    result = _service(cap=50).run(inputs, today=TODAY)

    assert result.sample_info.data_set_size == "8 samples"
    d = result.delivery_date_analysis
    assert [b.bin for b in d.histogram] == [1.4]
    assert d.p50 == date(2024, 3, 20)
    assert d.confidence_percent == 100.0
    assert result.throughput_analysis.p50 == 21


def test_finished_initiative_is_skipped() -> None:
    inputs = _daily_inputs(initiative=Initiative(date(2024, 3, 1), date(2024, 3, 20), is_finished=True))
    result = _service().run(inputs, today=TODAY)
    assert result.is_empty
    assert result.message == FINISHED_MESSAGE
    assert result.simulation_summary.run_count == 0


def test_initiative_without_contexts_is_skipped() -> None:
    result = _service().run(_daily_inputs(context_ids=()), today=TODAY)
    assert result.is_empty
    assert result.message == NO_CONTEXTS_MESSAGE


def test_sample_without_throughput_is_rejected() -> None:
    result = _service().run(_daily_inputs(completed_items=()), today=TODAY)
    assert result.is_empty
    assert result.message == TOO_MANY_ZERO_PERIODS
    assert result.sample_info.data_set_size == "29 samples"
    assert result.sample_info.throughput_periods == 0


def test_reversed_sample_window_raises() -> None:
    settings = ForecastSettings(sample_window_start=date(2024, 3, 1), sample_window_end=date(2024, 2, 1))
    with pytest.raises(InvalidDateRangeError):
        _service().run(_daily_inputs(settings=settings), today=TODAY)


def test_seeded_runs_are_reproducible() -> None:
    history = tuple(
        CompletedItemsRecord("a", date(2024, 2, 1) + timedelta(days=i), items_completed=i % 4)
        for i in range(29)
    )
    inputs = _daily_inputs(completed_items=history, remaining_items=_items(25))

    first = _service(seed=42).run(inputs, today=TODAY)
    second = _service(seed=42).run(inputs, today=TODAY)
    assert first.to_dict() == second.to_dict()


def test_remaining_periods_rounds_partial_period_up() -> None:
    initiative = Initiative(begin_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
    assert remaining_periods(date(2024, 3, 11), initiative, Precision.DAY) == 20
    assert remaining_periods(date(2024, 3, 11), initiative, Precision.WEEK) == 3
    assert remaining_periods(date(2024, 4, 11), initiative, Precision.DAY) == 0
    assert remaining_periods(date(2024, 3, 11), Initiative(date(2024, 3, 1), None), Precision.DAY) == 0


def test_results_are_published_on_the_bus() -> None:
    bus = InMemoryEventBus()
    seen: list[DomainEvent] = []
    bus.subscribe(DomainEvent, seen.append)

    service = _service(bus=bus)
    service.run(_daily_inputs(), room_id="room-1", today=TODAY)
    service.run(_daily_inputs(context_ids=()), room_id="room-2", today=TODAY)

    computed, skipped = seen
    assert isinstance(computed, PredictiveAnalysisComputed)
    assert computed.room_id == "room-1"
    assert computed.run_count == 200
    assert computed.result["deliveryDateAnalysis"]["p50"] == "2024-03-16"
    assert isinstance(skipped, PredictiveAnalysisSkipped)
    assert skipped.reason == NO_CONTEXTS_MESSAGE


def test_forecast_room_resolves_inputs_from_source() -> None:
    inputs = _daily_inputs()
    source = InMemoryForecastDataSource(completed_items=list(inputs.completed_items))
    source.add_room(
        "room-1",
        RoomData(
            initiative=inputs.initiative,
            context_ids=inputs.context_ids,
            settings=inputs.settings,
            remaining_items=inputs.remaining_items,
        ),
    )

    result = _service().forecast_room("room-1", source)

    assert source.last_levels_requested == ("Team",)
    assert result.delivery_date_analysis.p50 == date(2024, 3, 16)


def test_forecast_room_unknown_room() -> None:
    with pytest.raises(KeyError):
        _service().forecast_room("missing", InMemoryForecastDataSource())


def test_result_dict_shape() -> None:
    out = _service(cap=10).run(_daily_inputs(), today=TODAY).to_dict()
    assert set(out) == {
        "deliveryDateAnalysis",
        "throughputAnalysis",
        "simulationSummary",
        "sampleInfo",
        "assumptions",
        "isEmpty",
    }
    assert out["simulationSummary"]["remainingByLevel"]["original"] == {
        "portfolio": 0,
        "team": 10,
        "individualContributor": 0,
    }
    assert out["deliveryDateAnalysis"]["histogram"][0]["derivedDate"] == "2024-03-16"

    skipped = _service().run(_daily_inputs(context_ids=()), today=TODAY).to_dict()
    assert skipped["isEmpty"] is True
    assert skipped["message"] == NO_CONTEXTS_MESSAGE


def test_failing_subscriber_does_not_lose_the_forecast() -> None:
    bus = InMemoryEventBus()

    def broken(e: PredictiveAnalysisComputed) -> None:
        raise RuntimeError("downstream unavailable")

    bus.subscribe(PredictiveAnalysisComputed, broken)
    result = _service(bus=bus).run(_daily_inputs(), room_id="room-1", today=TODAY)

    assert result.delivery_date_analysis.p50 == date(2024, 3, 16)
    (failure,) = bus.failures
    assert isinstance(failure.event, PredictiveAnalysisComputed)
    assert failure.event.room_id == "room-1"


def test_every_early_exit_returns_an_empty_result() -> None:
    service = _service()
    finished = _daily_inputs(
        initiative=Initiative(date(2024, 3, 1), date(2024, 3, 20), is_finished=True),
        context_ids=(),
    )
    for inputs in (finished, _daily_inputs(context_ids=()), _daily_inputs(completed_items=())):
        result = service.run(inputs, today=TODAY)
        assert result is not None
        assert result.is_empty
        assert result.message
        assert result.to_dict()["isEmpty"] is True


def test_service_builds_its_own_engine_from_config() -> None:
    config = ForecastingConfig(simulation=SimulationConfig(iteration_cap=25, time_budget_seconds=30.0, rng_seed=1))
    service = PredictiveAnalysisService(config=config, today_provider=lambda: TODAY)
    result = service.run(_daily_inputs(), today=TODAY)
    assert service.engine is None
    assert result.simulation_summary.run_count == 25


def test_result_dict_labels_context_rates() -> None:
    settings = ForecastSettings(
        work_expansion_percent=100.0,
        capacity_percent_by_context={"a": 100.0},
        context_names={"a": "Platform"},
        sample_window_start=date(2024, 2, 1),
        sample_window_end=date(2024, 2, 29),
    )
    inputs = _daily_inputs(
        settings=settings,
        context_ids=("a", "b"),
        completed_items=_history(date(2024, 2, 1), date(2024, 2, 29), per_day=2)
        + _history(date(2024, 2, 1), date(2024, 2, 29), per_day=1, context_id="b"),
    )
    rates = _service(cap=10).run(inputs, today=TODAY).to_dict()["simulationSummary"]["perContextRates"]
    assert rates["a"] == {"name": "Platform", "original": 14, "adjusted": 14}
    assert rates["b"] == {"name": "b", "original": 7, "adjusted": 5}
