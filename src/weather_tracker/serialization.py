"""JSON payload conversion for measurements and aggregate results.

Measurements travel as flat objects where every key other than ``timestamp``
is a metric::

    {"timestamp": "2015-09-01T16:00:00.000Z", "temperature": 27.1, "dewPoint": 16.9}
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Mapping

from pydantic import AwareDatetime, BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from .aggregation import AggregateResult
from .measurements import InvalidMetricError, InvalidTimestampError, Measurement, MeasurementBuilder

_TIMESTAMP_ADAPTER = TypeAdapter(AwareDatetime)


class PayloadError(ValueError):
    """Raised when a JSON payload does not describe a valid measurement."""


class MeasurementPayload(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    timestamp: AwareDatetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def _require_iso_string(cls, value: Any) -> Any:
        # numbers would otherwise be read as unix epochs
        if not isinstance(value, (str, dt.datetime)):
            raise ValueError("timestamp must be an ISO-8601 string")
        return value


def parse_timestamp(value: str) -> dt.datetime:
    """Parse an ISO-8601 timestamp that carries an offset (``Z`` included)."""

    try:
        return _TIMESTAMP_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise PayloadError(f"Invalid timestamp {value!r}: expected ISO-8601 with a timezone") from exc


def format_timestamp(timestamp: dt.datetime) -> str:
    utc = timestamp.astimezone(dt.timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def measurement_from_payload(payload: Mapping[str, Any]) -> Measurement:
    try:
        parsed = MeasurementPayload.model_validate(dict(payload))
    except ValidationError as exc:
        raise PayloadError(f"Invalid measurement payload: {exc}") from exc

    builder = MeasurementBuilder()
    try:
        builder.with_timestamp(parsed.timestamp)
        for name, value in (parsed.model_extra or {}).items():
            builder.with_metric(name, value)
    except (InvalidMetricError, InvalidTimestampError) as exc:
        raise PayloadError(str(exc)) from exc
    return builder.build()


def measurement_to_payload(measurement: Measurement) -> dict[str, Any]:
    payload: dict[str, Any] = {"timestamp": format_timestamp(measurement.timestamp)}
    payload.update(measurement.metrics)
    return payload


def result_to_payload(result: AggregateResult) -> dict[str, Any]:
    return {
        "metric": result.metric,
        "stat": result.statistic.value,
        "value": result.value,
    }


__all__ = [
    "MeasurementPayload",
    "PayloadError",
    "format_timestamp",
    "measurement_from_payload",
    "measurement_to_payload",
    "parse_timestamp",
    "result_to_payload",
]
