"""Weather data environment."""

from whattowear.weather.data import (
    EvaluationData,
    Forecast,
    ForecastWindow,
    HourlyForecast,
    load_evaluation_data,
)
from whattowear.weather.environment import build_data_schema, build_environment

__all__ = [
    "EvaluationData",
    "Forecast",
    "ForecastWindow",
    "HourlyForecast",
    "load_evaluation_data",
    "build_data_schema",
    "build_environment",
]
