import datetime as dt
import random

import pytest

from weather_tracker.aggregation import (
    AggregateResult,
    Statistic,
    UnsupportedStatisticError,
    analyze,
    average_value,
    round_half_up,
)
from weather_tracker.measurements import Measurement

UTC = dt.timezone.utc
ALL_STATS = [Statistic.MIN, Statistic.MAX, Statistic.AVERAGE]


def _at(hour: int, **metrics: float) -> Measurement:
    return Measurement(dt.datetime(2015, 9, 1, hour, tzinfo=UTC), metrics)


def _scenario() -> list[Measurement]:
    return [_at(1, temp=10, dew=5), _at(2, temp=20), _at(3, dew=8)]


def test_analyze_mixed_presence_scenario() -> None:
    results = analyze(_scenario(), ["temp", "dew"], ALL_STATS)

    assert results == [
        AggregateResult("temp", Statistic.MIN, 10.0),
        AggregateResult("temp", Statistic.MAX, 20.0),
        AggregateResult("temp", Statistic.AVERAGE, 15.0),
        AggregateResult("dew", Statistic.MIN, 5.0),
        AggregateResult("dew", Statistic.MAX, 8.0),
        AggregateResult("dew", Statistic.AVERAGE, 6.5),
    ]


def test_analyze_empty_inputs_yield_no_results() -> None:
    assert analyze([], ["temp"], ALL_STATS) == []
    assert analyze(_scenario(), [], ALL_STATS) == []
    assert analyze(_scenario(), ["temp", "dew"], []) == []


def test_analyze_skips_metric_missing_everywhere() -> None:
    results = analyze(_scenario(), ["temp", "precipitation", "dew"], [Statistic.MAX])

    assert [(r.metric, r.value) for r in results] == [("temp", 20.0), ("dew", 8.0)]


def test_analyze_cross_product_size() -> None:
    measurements = [_at(h, a=h, b=-h, c=h * 0.5) for h in range(5)]
    metrics = ["c", "a", "b"]
    stats = [Statistic.AVERAGE, Statistic.MIN]

    results = analyze(measurements, metrics, stats)

    assert len(results) == len(metrics) * len(stats)
    assert [(r.metric, r.statistic) for r in results] == [
        (m, s) for m in metrics for s in stats
    ]


def test_analyze_is_idempotent_and_does_not_mutate_input() -> None:
    measurements = _scenario()
    snapshot = list(measurements)

    first = analyze(measurements, ["dew", "temp"], ["average", "max", "min"])
    second = analyze(measurements, ["dew", "temp"], ["average", "max", "min"])

    assert first == second
    assert measurements == snapshot


def test_analyze_ignores_input_order() -> None:
    measurements = _scenario()

    assert analyze(measurements, ["temp", "dew"], ALL_STATS) == analyze(
        list(reversed(measurements)), ["temp", "dew"], ALL_STATS
    )


def test_min_average_max_ordering_holds() -> None:
    rng = random.Random(7)
    measurements = [_at(h, temp=rng.uniform(-40, 40)) for h in range(24)]

    results = {r.statistic: r.value for r in analyze(measurements, ["temp"], ALL_STATS)}

    assert results[Statistic.MIN] <= results[Statistic.AVERAGE] <= results[Statistic.MAX]


@pytest.mark.parametrize(
    "values, expected",
    [
        ([1.0, 2.0, 2.0], 1.67),
        ([1.0, 2.0], 1.5),
        ([10.0, 20.0], 15.0),
        ([-1.0, -2.0], -1.5),
        ([], 0.0),
    ],
)
def test_average_rounds_half_up_to_two_decimals(values, expected) -> None:
    assert average_value(values) == expected


def test_round_half_up_breaks_ties_upwards() -> None:
    assert round_half_up(0.125) == 0.13
    assert round_half_up(-0.125) == -0.12
    assert round_half_up(2.5, 0) == 3.0


def test_statistic_parse_accepts_names_case_insensitively() -> None:
    assert Statistic.parse("MIN") is Statistic.MIN
    assert Statistic.parse(" Average ") is Statistic.AVERAGE
    assert Statistic.parse(Statistic.MAX) is Statistic.MAX


@pytest.mark.parametrize("statistic", ["median", "", 3, None])
def test_unsupported_statistic_fails_even_without_data(statistic) -> None:
    with pytest.raises(UnsupportedStatisticError):
        analyze(_scenario(), ["temp"], [statistic])
    with pytest.raises(UnsupportedStatisticError):
        analyze([], ["temp"], [Statistic.MIN, statistic])


def test_average_of_values_near_float_max_stays_finite() -> None:
    assert average_value([1e307]) == 1e307

    results = analyze([_at(1, temp=1e308), _at(2, temp=1e308)], ["temp"], [Statistic.MAX, Statistic.AVERAGE])

    assert [r.value for r in results] == [1e308, 1e308]
