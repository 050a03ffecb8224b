import datetime as dt

import pytest

from weather_tracker.aggregation import AggregateResult, Statistic
from weather_tracker.measurements import Measurement
from weather_tracker.serialization import (
    PayloadError,
    format_timestamp,
    measurement_from_payload,
    measurement_to_payload,
    parse_timestamp,
    result_to_payload,
)

UTC = dt.timezone.utc


def test_measurement_from_payload_treats_extra_keys_as_metrics() -> None:
    measurement = measurement_from_payload(
        {"timestamp": "2015-09-01T16:00:00.000Z", "temperature": 27.1, "dewPoint": 16}
    )

    assert measurement.timestamp == dt.datetime(2015, 9, 1, 16, 0, tzinfo=UTC)
    assert dict(measurement.metrics) == {"temperature": 27.1, "dewPoint": 16.0}


def test_measurement_from_payload_normalizes_offsets() -> None:
    measurement = measurement_from_payload({"timestamp": "2015-09-01T18:00:00+02:00", "temperature": 1})

    assert measurement.timestamp == dt.datetime(2015, 9, 1, 16, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "payload",
    [
        {"temperature": 27.1},
        {"timestamp": "2015-09-01T16:00:00", "temperature": 27.1},
        {"timestamp": "not a date", "temperature": 27.1},
        {"timestamp": "2015-09-01T16:00:00Z", "temperature": "27.1"},
        {"timestamp": "2015-09-01T16:00:00Z", "temperature": None},
        {"timestamp": 1441123200, "temperature": 27.1},
        {"timestamp": 1441123200.5, "temperature": 27.1},
    ],
)
def test_measurement_from_payload_rejects_invalid_payloads(payload) -> None:
    with pytest.raises(PayloadError):
        measurement_from_payload(payload)


def test_measurement_to_payload_uses_millisecond_utc_format() -> None:
    measurement = Measurement(
        dt.datetime(2015, 9, 1, 16, 0, 5, 123456, tzinfo=UTC),
        {"temperature": 27.1},
    )

    assert measurement_to_payload(measurement) == {
        "timestamp": "2015-09-01T16:00:05.123Z",
        "temperature": 27.1,
    }


def test_format_timestamp_converts_to_utc() -> None:
    offset = dt.timezone(dt.timedelta(hours=-3))

    assert format_timestamp(dt.datetime(2015, 9, 1, 13, 0, tzinfo=offset)) == "2015-09-01T16:00:00.000Z"


def test_parse_timestamp_requires_timezone() -> None:
    assert parse_timestamp("2015-09-01T16:00:00Z") == dt.datetime(2015, 9, 1, 16, 0, tzinfo=UTC)
    with pytest.raises(PayloadError):
        parse_timestamp("2015-09-01T16:00:00")


def test_result_to_payload() -> None:
    result = AggregateResult("temperature", Statistic.AVERAGE, 15.0)

    assert result_to_payload(result) == {"metric": "temperature", "stat": "average", "value": 15.0}
