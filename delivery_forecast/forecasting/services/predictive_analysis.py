from __future__ import annotations

import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Callable, Final, Iterator

from delivery_forecast.config import ForecastingConfig
from delivery_forecast.forecasting.analysis.histogram import (
    build_delivery_date_histogram,
    build_throughput_histogram,
)
from delivery_forecast.forecasting.analysis.interpretation import (
    EMPTY_DELIVERY_DATE_ANALYSIS,
    EMPTY_THROUGHPUT_ANALYSIS,
    FINISHED_MESSAGE,
    DistributionInterpreter,
    periods_between,
    simulation_start_date,
)
from delivery_forecast.forecasting.analysis.summary import EMPTY_SIMULATION_SUMMARY, summarise
from delivery_forecast.forecasting.domain.models import (
    Assumptions,
    DateRange,
    ForecastDataSource,
    ForecastInputs,
    Initiative,
    PredictiveAnalysisResult,
    Precision,
    SampleInfo,
    SamplePicker,
)
from delivery_forecast.forecasting.sampling.builder import (
    SampleBuilder,
    calculate_date_range,
    group_completed_by_context,
)
from delivery_forecast.forecasting.sampling.validation import (
    EMPTY_SAMPLE_INFO,
    SampleValidator,
    describe_sample,
)
from delivery_forecast.forecasting.settings import (
    adjust_remaining_work,
    build_assumptions,
    filter_remaining_work,
    included_level_names,
)
from delivery_forecast.forecasting.simulator.monte_carlo import MonteCarloEngine
from delivery_forecast.integration.event_bus import EventBus
from delivery_forecast.integration.events import (
    ForecastEvent,
    PredictiveAnalysisComputed,
    PredictiveAnalysisSkipped,
)

logger = logging.getLogger(__name__)

NO_CONTEXTS_MESSAGE: Final[str] = "Unable to run forecast due to no items in this initiative."


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def empty_result(message: str, sample_info: SampleInfo = EMPTY_SAMPLE_INFO) -> PredictiveAnalysisResult:
    return PredictiveAnalysisResult(
        delivery_date_analysis=EMPTY_DELIVERY_DATE_ANALYSIS,
        throughput_analysis=EMPTY_THROUGHPUT_ANALYSIS,
        simulation_summary=EMPTY_SIMULATION_SUMMARY,
        sample_info=sample_info,
        assumptions=Assumptions(),
        message=message,
        is_empty=True,
    )


def remaining_periods(start: date, initiative: Initiative, precision: Precision) -> int:
    """Whole periods left until the deadline; a partial last period counts as one."""
    if initiative.end_date is None:
        return 0
    return max(0, math.ceil(periods_between(start, initiative.end_date, precision)))


@contextmanager
def _stage(name: str) -> Iterator[None]:
    t0 = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.1f ms", name, (time.perf_counter() - t0) * 1000)


@dataclass
class PredictiveAnalysisService:
    """Forecasts an initiative's delivery date and achievable throughput.

    Pipeline: finished check, context check, sample build, sample validation,
    simulation, interpretation, histograms, summary. Every early exit returns
    an empty result carrying a message instead of raising.
    """

    config: ForecastingConfig = field(default_factory=ForecastingConfig)
    bus: EventBus | None = None
    today_provider: Callable[[], date] = _utc_today
    engine: MonteCarloEngine | None = None

    def forecast_room(
        self,
        room_id: str,
        source: ForecastDataSource,
        picker: SamplePicker | None = None,
    ) -> PredictiveAnalysisResult:
        """Resolve a room's inputs through `source`, then run the forecast."""
        today = self.today_provider()
        initiative = source.get_initiative(room_id)
        if initiative.is_finished:
            return self._skip(room_id, empty_result(FINISHED_MESSAGE))

        settings = source.get_forecasting_settings(room_id)
        context_ids = tuple(source.get_context_ids(room_id))
        if not context_ids:
            return self._skip(room_id, empty_result(NO_CONTEXTS_MESSAGE))

        date_range = self._date_range(settings.sample_window_start, settings.sample_window_end, today)
        completed = source.get_completed_items_each_day_by_context(
            context_ids,
            date_range,
            included_level_names(settings),
        )
        inputs = ForecastInputs(
            initiative=initiative,
            settings=settings,
            context_ids=context_ids,
            completed_items=tuple(completed),
            remaining_items=tuple(source.get_remaining_work_items(room_id)),
        )
        return self.run(inputs, room_id=room_id, today=today, picker=picker)

    def run(
        self,
        inputs: ForecastInputs,
        *,
        room_id: str | None = None,
        today: date | None = None,
        picker: SamplePicker | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> PredictiveAnalysisResult:
        today = today or self.today_provider()
        initiative = inputs.initiative
        settings = inputs.settings

        if initiative.is_finished:
            return self._skip(room_id, empty_result(FINISHED_MESSAGE))
        if not inputs.context_ids:
            return self._skip(room_id, empty_result(NO_CONTEXTS_MESSAGE))

        with _stage("build sample"):
            date_range = self._date_range(settings.sample_window_start, settings.sample_window_end, today)
            sample = SampleBuilder(
                default_capacity_percent=self.config.sampling.default_capacity_percent,
            ).build(
                inputs.context_ids,
                date_range,
                group_completed_by_context(inputs.completed_items),
                settings,
            )
            remaining_items = filter_remaining_work(inputs.remaining_items, settings)
            adjusted_remaining = adjust_remaining_work(len(remaining_items), settings)
            sample_info = describe_sample(sample.delivery_rates)

        validation = SampleValidator(thresholds=self.config.sampling.validity_thresholds).validate(
            sample.delivery_rates, settings.precision
        )
        if not validation.validated:
            return self._skip(room_id, empty_result(validation.reason or "", sample_info))

        start = simulation_start_date(today, initiative.begin_date)
        periods_left = remaining_periods(start, initiative, settings.precision)

        engine = self.engine or MonteCarloEngine(config=self.config.simulation)
        with _stage("simulation"):
            results = engine.run(
                sample.delivery_rates,
                adjusted_remaining,
                periods_left,
                settings.precision,
                picker=picker,
                should_cancel=should_cancel,
            )

        interpreter = DistributionInterpreter(today=today)
        with _stage("interpret"):
            delivery = interpreter.interpret_delivery_dates(
                results.periods_to_finish, initiative, settings.precision
            )
            throughput = interpreter.interpret_throughput(results.throughput_achieved, adjusted_remaining)

        with _stage("histograms"):
            delivery_histogram = build_delivery_date_histogram(
                results.periods_to_finish, start, settings.precision
            )
            throughput_histogram = build_throughput_histogram(results.throughput_achieved)

        summary = summarise(
            adjusted_remaining_work=adjusted_remaining,
            remaining_items=remaining_items,
            settings=settings,
            sample=sample.delivery_rates,
            date_range=date_range,
            original_total_by_context=sample.original_total_by_context,
            adjusted_total_by_context=sample.adjusted_total_by_context,
            run_count=results.run_count,
        )

        result = PredictiveAnalysisResult(
            delivery_date_analysis=replace(delivery, histogram=tuple(delivery_histogram)),
            throughput_analysis=replace(throughput, histogram=tuple(throughput_histogram)),
            simulation_summary=summary,
            sample_info=sample_info,
            assumptions=build_assumptions(settings),
        )
        logger.info(
            "Forecast for %s: %d runs, p85 delivery %s, %.1f%% confidence of the deadline",
            room_id or "<inputs>",
            results.run_count,
            delivery.p85,
            delivery.confidence_percent,
        )
        self._publish(
            PredictiveAnalysisComputed(
                occurred_at=datetime.now(timezone.utc),
                room_id=room_id,
                run_count=results.run_count,
                result=result.to_dict(),
            )
        )
        return result

    def _date_range(self, start: date | None, end: date | None, today: date) -> DateRange:
        return calculate_date_range(start, end, today, default_days=self.config.sampling.default_sample_days)

    def _skip(self, room_id: str | None, result: PredictiveAnalysisResult) -> PredictiveAnalysisResult:
        logger.info("Forecast for %s skipped: %s", room_id or "<inputs>", result.message)
        self._publish(
            PredictiveAnalysisSkipped(
                occurred_at=datetime.now(timezone.utc),
                room_id=room_id,
                reason=result.message or "",
            )
        )
        return result

    def _publish(self, event: ForecastEvent) -> None:
        if self.bus is None:
            return
        delivered = self.bus.publish(event)
        logger.debug("Published %s to %d handler(s)", type(event).__name__, delivered)
