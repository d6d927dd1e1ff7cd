"""Weather snapshot models.

An ``EvaluationData`` snapshot holds the current conditions plus an hourly
forecast. It is produced by whatever fetches weather data and is read-only for
the evaluator. Snapshots can be stored as JSON:

    {
      "current_temp": 12.5,
      "rain_1h": 0.4,
      "current_time": "2026-10-19T07:00:00+02:00",
      "forecast": {"hours": [{"time": "2026-10-19T08:00:00+02:00", "temperature": 13.1}]}
    }
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from whattowear.core.exceptions import ConfigurationError


# -----------------------------------------------------------------------------
# Snapshot models
# -----------------------------------------------------------------------------


class HourlyForecast(BaseModel):
    """Forecast for one hour."""
    time: datetime
    temperature: float
    feels_like: Optional[float] = None
    rain: float = 0.0
    snow: float = 0.0
    uv_value: float = 0.0
    wind_speed: float = 0.0
    cloudiness: int = 0
    precipitation_probability: float = Field(default=0.0, ge=0.0, le=1.0)


class Forecast(BaseModel):
    """Hourly forecast, ordered by time."""
    hours: List[HourlyForecast] = Field(default_factory=list)

    @field_validator("hours")
    @classmethod
    def sort_hours(cls, v: List[HourlyForecast]) -> List[HourlyForecast]:
        return sorted(v, key=lambda entry: entry.time)


class EvaluationData(BaseModel):
    """Current weather conditions at evaluation time."""
    current_temp: float = 0.0
    temp_min: float = 0.0
    temp_max: float = 0.0
    feels_like: float = 0.0
    rain_1h: float = 0.0
    rain_3h: float = 0.0
    snow_1h: float = 0.0
    snow_3h: float = 0.0
    uv_value: float = 0.0
    cloudiness: int = 0
    wind_speed: float = 0.0
    current_time: datetime = Field(default_factory=lambda: datetime.now().astimezone())
    forecast: Forecast = Field(default_factory=Forecast)

    @model_validator(mode="after")
    def validate_timezones(self) -> "EvaluationData":
        aware = self.current_time.tzinfo is not None
        for entry in self.forecast.hours:
            if (entry.time.tzinfo is not None) != aware:
                raise ValueError(
                    "forecast times and current_time must all be timezone-aware or all naive"
                )
        return self


def load_evaluation_data(path: Union[str, Path]) -> EvaluationData:
    """Load a JSON weather snapshot.

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Could not read weather snapshot: {e}",
            context={"path": str(path)},
        )
    try:
        return EvaluationData.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid weather snapshot: {e}",
            context={"path": str(path)},
        )


# -----------------------------------------------------------------------------
# Forecast lookups
# -----------------------------------------------------------------------------


class ForecastWindow:
    """Forecast lookups relative to the evaluation time.

    Aggregates consider entries in ``(now, now + hours]``. Lookups raise
    ValueError when no entry qualifies.
    """

    def __init__(self, forecast: Forecast, now: datetime):
        self.forecast = forecast
        self.now = now

    def entries_within(self, hours: float) -> List[HourlyForecast]:
        if hours < 0:
            raise ValueError(f"hours must be non-negative, got {hours}")
        end = self.now + timedelta(hours=hours)
        return [entry for entry in self.forecast.hours if self.now < entry.time <= end]

    def at(self, hours: float) -> HourlyForecast:
        """Entry closest to ``now + hours``."""
        if hours < 0:
            raise ValueError(f"hours must be non-negative, got {hours}")
        if not self.forecast.hours:
            raise ValueError("No forecast data available")
        target = self.now + timedelta(hours=hours)
        return min(self.forecast.hours, key=lambda entry: abs(entry.time - target))

    def temperature_in(self, hours: float) -> float:
        return self.at(hours).temperature

    def feels_like_in(self, hours: float) -> float:
        entry = self.at(hours)
        return entry.feels_like if entry.feels_like is not None else entry.temperature

    def min_temperature(self, hours: float) -> float:
        return self._aggregate(hours, min, lambda e: e.temperature)

    def max_temperature(self, hours: float) -> float:
        return self._aggregate(hours, max, lambda e: e.temperature)

    def total_rain(self, hours: float) -> float:
        return self._aggregate(hours, sum, lambda e: e.rain)

    def total_snow(self, hours: float) -> float:
        return self._aggregate(hours, sum, lambda e: e.snow)

    def max_wind_speed(self, hours: float) -> float:
        return self._aggregate(hours, max, lambda e: e.wind_speed)

    def max_uv(self, hours: float) -> float:
        return self._aggregate(hours, max, lambda e: e.uv_value)

    def max_precipitation_probability(self, hours: float) -> float:
        return self._aggregate(hours, max, lambda e: e.precipitation_probability)

    def _aggregate(
        self,
        hours: float,
        reducer: Callable[[List[float]], float],
        pick: Callable[[HourlyForecast], float],
    ) -> float:
        entries = self.entries_within(hours)
        if not entries:
            raise ValueError(f"No forecast data within the next {hours} hours")
        return reducer([pick(entry) for entry in entries])
