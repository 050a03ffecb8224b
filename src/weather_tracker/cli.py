"""Typer CLI commands for recording and analysing weather measurements."""
from __future__ import annotations

import datetime as dt
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List

import typer
from rich import print as rprint
from rich import print_json
from rich.markup import escape

from .aggregation import UnsupportedStatisticError
from .config import ConfigurationError, load_config
from .database import create_engine_from_config, create_session_factory
from .logging_setup import configure_logging, get_logger
from .measurements import InvalidMetricError, InvalidTimestampError, MeasurementBuilder
from .repositories import SqlMeasurementStore, StoreError
from .serialization import (
    PayloadError,
    measurement_from_payload,
    measurement_to_payload,
    parse_timestamp,
    result_to_payload,
)
from .service import WeatherTrackerService

app = typer.Typer(name="weather-tracker", help="Record weather measurements and compute statistics")
logger = get_logger(__name__)

INPUT_ERRORS = (
    PayloadError,
    InvalidMetricError,
    InvalidTimestampError,
    UnsupportedStatisticError,
)


def _config_option() -> Any:
    return typer.Option(..., "--config", exists=True, dir_okay=False, help="Path to YAML configuration")


def _initialise(config_path: Path) -> WeatherTrackerService:
    try:
        settings = load_config(config_path)
    except ConfigurationError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc
    configure_logging(settings.logging)
    engine = create_engine_from_config(settings.database)
    store = SqlMeasurementStore(
        create_session_factory(engine),
        retry_attempts=settings.database.retry_attempts,
    )
    return WeatherTrackerService(store)


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except StoreError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def _timestamp(value: str) -> dt.datetime:
    try:
        return parse_timestamp(value)
    except PayloadError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc


def _parse_metric_option(raw: str) -> tuple[str, float]:
    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise PayloadError(f"Metric must look like name=value, got {raw!r}")
    try:
        return name.strip(), float(value)
    except ValueError as exc:
        raise PayloadError(f"Metric {name.strip()!r} has non-numeric value {value!r}") from exc


def _load_payloads(path: Path) -> list[dict[str, Any]]:
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        data = json.loads(text)
    else:
        data = [json.loads(line) for line in text.splitlines() if line.strip()]
    if not all(isinstance(item, dict) for item in data):
        raise PayloadError(f"{path} must contain JSON objects")
    return data


@app.command("init-db")
def init_db(config: Path = _config_option()) -> None:
    """Create the database schema."""

    _initialise(config)
    rprint("[green]Database ready[/green]")


@app.command()
def add(
    timestamp: str = typer.Option(..., help="ISO-8601 timestamp with timezone"),
    metric: List[str] = typer.Option([], "--metric", "-m", help="Metric as name=value (repeatable)"),
    config: Path = _config_option(),
) -> None:
    """Record a single measurement."""

    service = _initialise(config)
    try:
        builder = MeasurementBuilder().with_timestamp(parse_timestamp(timestamp))
        for raw in metric:
            builder.with_metric(*_parse_metric_option(raw))
        measurement = builder.build()
    except INPUT_ERRORS as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    with _store_errors():
        service.add(measurement)
    print_json(data=measurement_to_payload(measurement))


@app.command("import")
def import_measurements(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON array or JSON lines file"),
    config: Path = _config_option(),
) -> None:
    """Record every measurement found in a JSON file."""

    service = _initialise(config)
    try:
        measurements = [measurement_from_payload(item) for item in _load_payloads(source)]
    except (json.JSONDecodeError, *INPUT_ERRORS) as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    with _store_errors():
        for measurement in measurements:
            service.add(measurement)
    logger.info("cli.import.complete", source=str(source), count=len(measurements))
    rprint(f"[green]Imported {len(measurements)} measurement(s)[/green]")


@app.command()
def fetch(
    timestamp: str = typer.Argument(..., help="ISO-8601 timestamp with timezone"),
    config: Path = _config_option(),
) -> None:
    """Show the measurement recorded at an exact timestamp."""

    service = _initialise(config)
    moment = _timestamp(timestamp)
    with _store_errors():
        measurement = service.fetch(moment)
    if measurement is None:
        rprint(f"[yellow]No measurement at {timestamp}[/yellow]")
        raise typer.Exit(code=1)
    print_json(data=measurement_to_payload(measurement))


@app.command()
def query(
    start: str = typer.Option(..., "--from", help="Inclusive start timestamp"),
    end: str = typer.Option(..., "--to", help="Exclusive end timestamp"),
    config: Path = _config_option(),
) -> None:
    """List the measurements recorded in [from, to)."""

    service = _initialise(config)
    lower, upper = _timestamp(start), _timestamp(end)
    with _store_errors():
        measurements = service.query_range(lower, upper)
    print_json(data=[measurement_to_payload(m) for m in measurements])


@app.command()
def delete(
    timestamp: str = typer.Argument(..., help="ISO-8601 timestamp with timezone"),
    config: Path = _config_option(),
) -> None:
    """Delete the measurement(s) recorded at an exact timestamp."""

    service = _initialise(config)
    moment = _timestamp(timestamp)
    with _store_errors():
        removed = service.delete(moment)
    if not removed:
        rprint(f"[yellow]No measurement at {timestamp}[/yellow]")
        raise typer.Exit(code=1)
    rprint(f"[green]Deleted {removed} measurement(s)[/green]")


@app.command()
def stats(
    start: str = typer.Option(..., "--from", help="Inclusive start timestamp"),
    end: str = typer.Option(..., "--to", help="Exclusive end timestamp"),
    metric: List[str] = typer.Option(..., "--metric", "-m", help="Metric name (repeatable)"),
    stat: List[str] = typer.Option(..., "--stat", "-s", help="min, max or average (repeatable)"),
    config: Path = _config_option(),
) -> None:
    """Compute statistics for metrics recorded in [from, to)."""

    service = _initialise(config)
    lower, upper = _timestamp(start), _timestamp(end)
    try:
        with _store_errors():
            results = service.summarize(lower, upper, metric, stat)
    except UnsupportedStatisticError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc
    print_json(data=[result_to_payload(result) for result in results])


__all__ = ["app"]
