"""Service tying the measurement store to the aggregation engine."""
from __future__ import annotations

import datetime as dt
from typing import Mapping, Sequence

import structlog

from .aggregation import AggregateResult, Statistic, analyze
from .logging_setup import get_logger
from .measurements import Measurement
from .repositories import MeasurementStore


class WeatherTrackerService:
    """Record measurements and answer lookup and statistics questions about them.

    Store failures propagate unchanged; the service only adds logging.
    """

    def __init__(
        self,
        store: MeasurementStore,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or get_logger(__name__)

    def add(self, measurement: Measurement) -> None:
        self.store.add(measurement)

    def fetch(self, timestamp: dt.datetime) -> Measurement | None:
        return self.store.fetch(timestamp)

    def query_range(self, start: dt.datetime, end: dt.datetime) -> list[Measurement]:
        return self.store.query_range(start, end)

    def delete(self, timestamp: dt.datetime) -> int:
        return self.store.delete(timestamp)

    def replace(self, measurement: Measurement) -> bool:
        return self.store.replace(measurement)

    def update(self, timestamp: dt.datetime, metrics: Mapping[str, object]) -> Measurement | None:
        """Overwrite or add ``metrics`` on the measurement stored at ``timestamp``."""

        updated = self.store.update(timestamp, metrics)
        if updated is None:
            return None
        self.logger.info(
            "service.update",
            timestamp=updated.timestamp.isoformat(),
            metrics=sorted(metrics),
        )
        return updated

    def analyze(
        self,
        measurements: Sequence[Measurement],
        metric_names: Sequence[str],
        statistics: Sequence[Statistic | str],
    ) -> list[AggregateResult]:
        return analyze(measurements, metric_names, statistics)

    def summarize(
        self,
        start: dt.datetime,
        end: dt.datetime,
        metric_names: Sequence[str],
        statistics: Sequence[Statistic | str],
    ) -> list[AggregateResult]:
        """Aggregate the measurements recorded in ``[start, end)``."""

        requested = [Statistic.parse(statistic) for statistic in statistics]
        measurements = self.store.query_range(start, end)
        results = analyze(measurements, metric_names, requested)
        self.logger.info(
            "service.summarize",
            start=start.isoformat(),
            end=end.isoformat(),
            measurements=len(measurements),
            results=len(results),
        )
        return results


__all__ = ["WeatherTrackerService"]
