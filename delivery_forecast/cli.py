from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import numpy as np
import typer
from rich.console import Console
from rich.table import Table

from delivery_forecast.common.logging_config import configure_logging
from delivery_forecast.config import ForecastingConfig
from delivery_forecast.forecasting.domain.models import (
    CompletedItemsRecord,
    ForecastSettings,
    Initiative,
    PredictiveAnalysisResult,
    Precision,
    RemainingWorkItem,
    WorkItemLevel,
)
from delivery_forecast.forecasting.services.predictive_analysis import PredictiveAnalysisService
from delivery_forecast.forecasting.sources import InMemoryForecastDataSource, RoomData
from delivery_forecast.inputs import ForecastInputsFile
from delivery_forecast.integration.event_bus import InMemoryEventBus
from delivery_forecast.integration.events import PredictiveAnalysisComputed


app = typer.Typer(add_completion=False)


def _load_config(config: Optional[str], seed: Optional[int]) -> ForecastingConfig:
    cfg = ForecastingConfig.load(Path(config)) if config else ForecastingConfig()
    if seed is not None:
        cfg.simulation.rng_seed = seed
    return cfg


def _print_result(result: PredictiveAnalysisResult, console: Console) -> None:
    if result.is_empty:
        console.print(f"[yellow]No forecast:[/yellow] {result.message}")
        return

    d = result.delivery_date_analysis
    t = result.throughput_analysis
    table = Table(title="Predictive analysis")
    table.add_column("Likelihood")
    table.add_column("Delivered by")
    table.add_column("Items by deadline", justify="right")
    for label, when, how_many in (("50%", d.p50, t.p50), ("85%", d.p85, t.p85), ("98%", d.p98, t.p98)):
        table.add_row(label, str(when), f"{how_many:g}")
    console.print(table)
    console.print(
        f"Deadline {d.desired_date}: {d.confidence_percent:.1f}% confidence; "
        f"{t.remaining_item_count} items remaining: {t.confidence_percent:.1f}% confidence"
    )
    console.print(f"Runs: {result.simulation_summary.run_count}")


@app.command()
def demo(
    seed: int = typer.Option(7, help="Random seed for synthetic history and simulation"),
    precision: Precision = typer.Option(Precision.DAY, help="day | week"),
    history_days: int = typer.Option(90, help="Days of synthetic completion history"),
) -> None:
    """Forecast a synthetic initiative end to end."""
    configure_logging(logging.INFO)
    console = Console()

    rng = np.random.default_rng(seed)
    today = datetime.now(tz=timezone.utc).date()
    contexts = {"ctx-platform": 2.0, "ctx-mobile": 1.2}

    completed: list[CompletedItemsRecord] = []
    for ctx, mean_per_day in contexts.items():
        for i in range(history_days):
            day = today - timedelta(days=i + 1)
            # Nothing gets done at weekends.
            count = 0 if day.weekday() >= 5 else int(rng.poisson(mean_per_day))
            if count:
                completed.append(CompletedItemsRecord(context_id=ctx, day=day, items_completed=count))

    levels = (WorkItemLevel.TEAM, WorkItemLevel.TEAM, WorkItemLevel.PORTFOLIO)
    remaining = tuple(
        RemainingWorkItem(
            work_item_id=f"ITEM-{i}",
            state_category="inprogress" if i % 4 == 0 else "proposed",
            level=levels[i % len(levels)],
        )
        for i in range(60)
    )

    source = InMemoryForecastDataSource(completed_items=completed)
    source.add_room(
        "demo-room",
        RoomData(
            initiative=Initiative(begin_date=today - timedelta(days=30), end_date=today + timedelta(days=45)),
            context_ids=tuple(contexts),
            settings=ForecastSettings(
                precision=precision,
                capacity_percent_by_context={"ctx-platform": 100.0, "ctx-mobile": 50.0},
                context_names={"ctx-platform": "Platform", "ctx-mobile": "Mobile"},
            ),
            remaining_items=remaining,
        ),
    )
    typer.echo(f"Generated {len(completed)} completion records for {len(contexts)} contexts")

    bus = InMemoryEventBus()
    bus.subscribe(
        PredictiveAnalysisComputed,
        lambda e: logging.getLogger(__name__).info("Published forecast with %d runs", e.run_count),
    )
    service = PredictiveAnalysisService(config=_load_config(None, seed), bus=bus)
    result = service.forecast_room("demo-room", source)

    _print_result(result, console)
    typer.echo("\nJSON output:")
    typer.echo(json.dumps(result.to_dict(), indent=2, default=str))


@app.command()
def forecast(
    inputs: str = typer.Argument(..., help="Path to resolved forecast inputs JSON"),
    config: Optional[str] = typer.Option(None, help="Path to forecast_config.toml"),
    today: Optional[str] = typer.Option(None, help="Override today's date (YYYY-MM-DD)"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible runs"),
    output: Optional[str] = typer.Option(None, help="Write the result JSON here instead of stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log stage timings"),
    log_dir: Optional[str] = typer.Option(None, help="Also write logs to <log-dir>/forecast.log"),
) -> None:
    """Forecast one initiative from a JSON file of already-resolved inputs."""
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_dir=log_dir)

    inputs_path = Path(inputs).expanduser()
    if not inputs_path.exists():
        raise typer.BadParameter(f"Inputs file not found: {inputs_path}")

    as_of = date.fromisoformat(today) if today else None
    service = PredictiveAnalysisService(config=_load_config(config, seed))
    result = service.run(ForecastInputsFile.load(inputs_path).to_domain(), today=as_of)

    payload = json.dumps(result.to_dict(), indent=2, default=str)
    if output:
        out = Path(output).expanduser()
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(payload, encoding="utf-8")
        _print_result(result, Console())
        typer.echo(f"Wrote {out}")
    else:
        typer.echo(payload)


@app.command()
def init_config(
    path: str = typer.Argument(
        "forecast_config.toml",
        help="Where to write the forecasting configuration TOML",
    ),
) -> None:
    """Write an example forecast_config.toml."""
    project_root = Path(__file__).resolve().parents[1]
    template = project_root / "forecast_config.example.toml"
    if not template.exists():
        raise RuntimeError(f"Missing template file: {template}")

    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(template.read_text())
    typer.echo(f"Wrote {out} (edit it, then run: delivery-forecast forecast INPUTS.json --config {out})")
