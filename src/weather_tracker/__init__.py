"""Weather measurement tracking and aggregation."""

from .aggregation import AggregateResult, Statistic, UnsupportedStatisticError, analyze
from .config import AppConfig, load_config
from .measurements import Measurement, MeasurementBuilder, Metric
from .repositories import MeasurementStore, SqlMeasurementStore, StoreError
from .service import WeatherTrackerService

__all__ = [
    "AggregateResult",
    "AppConfig",
    "Measurement",
    "MeasurementBuilder",
    "MeasurementStore",
    "Metric",
    "SqlMeasurementStore",
    "Statistic",
    "StoreError",
    "UnsupportedStatisticError",
    "WeatherTrackerService",
    "analyze",
    "load_config",
]
