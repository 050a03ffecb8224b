"""Min/max/average aggregation across a list of measurements."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from .logging_setup import get_logger
from .measurements import Measurement

LOGGER = get_logger(__name__)
AVERAGE_DECIMALS = 2


class UnsupportedStatisticError(ValueError):
    """Raised when a statistic other than min, max or average is requested."""


class Statistic(str, enum.Enum):
    MIN = "min"
    MAX = "max"
    AVERAGE = "average"

    @classmethod
    def parse(cls, value: "Statistic | str") -> "Statistic":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedStatisticError(f"Unsupported statistic: {value!r}")


@dataclass(frozen=True, slots=True)
class AggregateResult:
    metric: str
    statistic: Statistic
    value: float


def round_half_up(value: float, decimals: int = AVERAGE_DECIMALS) -> float:
    """Round ``value`` to ``decimals`` places, ties rounding towards +inf."""

    scale = 10**decimals
    scaled = value * scale
    if not math.isfinite(scaled):
        # already coarser than the requested precision
        return value
    return math.floor(scaled + 0.5) / scale


def average_value(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    count = len(values)
    # sum of quotients stays finite for any finite inputs
    return round_half_up(math.fsum(value / count for value in values))


def collect_metric_values(measurements: Iterable[Measurement], metric_name: str) -> list[float]:
    """Return the values of ``metric_name`` from every measurement that recorded it."""

    values: list[float] = []
    for measurement in measurements:
        value = measurement.get_metric(metric_name)
        if value is not None:
            values.append(value)
    return values


def _compute(statistic: Statistic, values: Sequence[float]) -> float:
    if statistic is Statistic.MIN:
        return min(values)
    if statistic is Statistic.MAX:
        return max(values)
    if statistic is Statistic.AVERAGE:
        return average_value(values)
    raise UnsupportedStatisticError(f"Unsupported statistic: {statistic!r}")


def analyze(
    measurements: Sequence[Measurement],
    metric_names: Sequence[str],
    statistics: Sequence[Statistic | str],
) -> list[AggregateResult]:
    """Compute every requested statistic for every requested metric.

    Results are ordered by ``metric_names`` and then by ``statistics``. A metric
    that no measurement recorded contributes no results. Unknown statistics
    raise :class:`UnsupportedStatisticError` before anything is computed.
    """

    requested = [Statistic.parse(statistic) for statistic in statistics]
    results: list[AggregateResult] = []
    if not requested:
        return results

    for metric_name in metric_names:
        values = collect_metric_values(measurements, metric_name)
        if not values:
            LOGGER.debug("aggregation.metric_absent", metric=metric_name)
            continue
        for statistic in requested:
            results.append(AggregateResult(metric_name, statistic, _compute(statistic, values)))

    return results


__all__ = [
    "AggregateResult",
    "Statistic",
    "UnsupportedStatisticError",
    "analyze",
    "average_value",
    "collect_metric_values",
    "round_half_up",
]
