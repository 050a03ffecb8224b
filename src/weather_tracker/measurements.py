"""Measurement value types and the builder used to assemble them."""
from __future__ import annotations

import datetime as dt
import math
import numbers
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

# payload keys that sit next to the metrics
RESERVED_METRIC_NAMES = frozenset({"timestamp"})


class InvalidMetricError(ValueError):
    """Raised when a metric name or value cannot be recorded."""


class DuplicateMetricError(InvalidMetricError):
    """Raised when a metric name is added twice to the same measurement."""


class InvalidTimestampError(ValueError):
    """Raised when a measurement timestamp is missing or not timezone-aware."""


def normalize_timestamp(timestamp: dt.datetime) -> dt.datetime:
    """Return ``timestamp`` converted to UTC.

    Naive datetimes are rejected because they do not name an instant.
    """

    if not isinstance(timestamp, dt.datetime):
        raise InvalidTimestampError(f"Timestamp must be a datetime, got {type(timestamp).__name__}")
    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        raise InvalidTimestampError(f"Timestamp {timestamp.isoformat()} has no timezone")
    return timestamp.astimezone(dt.timezone.utc)


def _check_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidMetricError(f"Metric name must be a non-empty string, got {name!r}")
    if name in RESERVED_METRIC_NAMES:
        raise InvalidMetricError(f"'{name}' is reserved and cannot be used as a metric name")
    return name


def _coerce_value(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidMetricError(f"Metric '{name}' must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise InvalidMetricError(f"Metric '{name}' has non-finite value {number!r}")
    return number


@dataclass(frozen=True, slots=True)
class Metric:
    name: str
    value: float


@dataclass(frozen=True, slots=True)
class Measurement:
    """A timestamp plus the named metric values observed at that instant."""

    timestamp: dt.datetime
    metrics: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", normalize_timestamp(self.timestamp))
        metrics = {_check_name(name): _coerce_value(name, value) for name, value in self.metrics.items()}
        object.__setattr__(self, "metrics", MappingProxyType(metrics))

    def get_metric(self, name: str) -> float | None:
        return self.metrics.get(name)

    def metric_list(self) -> list[Metric]:
        return [Metric(name, value) for name, value in self.metrics.items()]

    def with_metrics(self, updates: Mapping[str, object]) -> "Measurement":
        """Return a copy with ``updates`` overwriting or extending the metrics."""

        builder = MeasurementBuilder().with_timestamp(self.timestamp)
        for name, value in self.metrics.items():
            builder.with_metric(name, updates.get(name, value))
        for name, value in updates.items():
            if name not in self.metrics:
                builder.with_metric(name, value)
        return builder.build()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Measurement):
            return NotImplemented
        return self.timestamp == other.timestamp and dict(self.metrics) == dict(other.metrics)

    def __hash__(self) -> int:
        return hash((self.timestamp, tuple(sorted(self.metrics.items()))))


class MeasurementBuilder:
    """Accumulate a timestamp and metrics, then produce an immutable Measurement."""

    def __init__(self) -> None:
        self._timestamp: dt.datetime | None = None
        self._metrics: dict[str, float] = {}

    def with_timestamp(self, timestamp: dt.datetime) -> "MeasurementBuilder":
        if self._timestamp is not None:
            raise InvalidTimestampError("Measurement timestamp is already set")
        self._timestamp = normalize_timestamp(timestamp)
        return self

    def with_metric(self, name: str, value: object) -> "MeasurementBuilder":
        _check_name(name)
        if name in self._metrics:
            raise DuplicateMetricError(f"Metric '{name}' is already present in this measurement")
        self._metrics[name] = _coerce_value(name, value)
        return self

    def with_metrics(self, metrics: Mapping[str, object] | Iterable[Metric]) -> "MeasurementBuilder":
        if isinstance(metrics, Mapping):
            items = metrics.items()
        else:
            items = ((metric.name, metric.value) for metric in metrics)
        for name, value in items:
            self.with_metric(name, value)
        return self

    def build(self) -> Measurement:
        if self._timestamp is None:
            raise InvalidTimestampError("Measurement timestamp is required")
        return Measurement(timestamp=self._timestamp, metrics=self._metrics)


__all__ = [
    "DuplicateMetricError",
    "InvalidMetricError",
    "InvalidTimestampError",
    "Measurement",
    "MeasurementBuilder",
    "Metric",
    "RESERVED_METRIC_NAMES",
    "normalize_timestamp",
]
