"""Shared fixtures for evaluator and expression tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import pytest

from whattowear.evaluation.evaluator import MessageEvaluator
from whattowear.expressions.schema import EnvironmentSchema
from whattowear.weather.data import EvaluationData, Forecast, HourlyForecast
from whattowear.weather.environment import build_data_schema, build_environment

NOW = datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def data_schema() -> EnvironmentSchema:
    return build_data_schema()


@pytest.fixture
def evaluator(data_schema: EnvironmentSchema) -> MessageEvaluator:
    """Sequential evaluator over the weather data schema."""
    return MessageEvaluator(data_schema)


@pytest.fixture
def forecast() -> Forecast:
    """Four hourly entries: +1h, +2h, +3h and +6h."""
    return Forecast(hours=[
        HourlyForecast(time=NOW + timedelta(hours=1), temperature=12.0, rain=0.0, uv_value=1.0),
        HourlyForecast(time=NOW + timedelta(hours=2), temperature=14.5, rain=0.5, uv_value=2.5,
                       feels_like=13.0, precipitation_probability=0.4),
        HourlyForecast(time=NOW + timedelta(hours=3), temperature=16.0, rain=1.5, uv_value=3.0,
                       wind_speed=7.5, precipitation_probability=0.8),
        HourlyForecast(time=NOW + timedelta(hours=6), temperature=9.0, snow=2.0, wind_speed=3.0),
    ])


@pytest.fixture
def make_env(forecast: Forecast) -> Callable[..., Dict[str, Any]]:
    """Factory for data environments; keyword args override EvaluationData fields."""
    def _make(**overrides: Any) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"current_temp": 15.0, "current_time": NOW, "forecast": forecast}
        fields.update(overrides)
        return build_environment(EvaluationData(**fields))

    return _make
