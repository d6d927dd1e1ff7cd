"""Data schema and environment for weather expressions.

``build_data_schema()`` describes every name conditions and choice guards can
use; it needs no live data, so messages can be compiled at startup.
``build_environment(data)`` resolves the same names against a snapshot.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

from whattowear.expressions.schema import (
    Binding,
    EnvironmentSchema,
    FunctionSignature,
    ValueKind,
)
from whattowear.weather.data import EvaluationData, ForecastWindow

NUMBER = ValueKind.NUMBER

# %v is the "default format" verb used by existing configurations
_VALUE_VERB = re.compile(r"(?<!%)((?:%%)*)%v")


def sprintf(fmt: str, *args: Any) -> str:
    """printf-style formatting: sprintf('%.1f°C', 12.345) -> '12.3°C'."""
    fmt = _VALUE_VERB.sub(r"\1%s", fmt)
    return fmt % tuple(args)


def round_number(value: float, digits: float = 0) -> float:
    """Round half away from zero; integral result when digits is 0."""
    if digits != int(digits) or digits < 0:
        raise ValueError(f"digits must be a non-negative integer, got {digits}")
    quantum = Decimal(1).scaleb(-int(digits))
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def hour_of(timestamp: datetime) -> int:
    return timestamp.hour


def _number(accessor, description: str) -> Binding:
    return Binding.value(NUMBER, accessor=accessor, description=description)


def _forecast_lookup(method: str, description: str) -> Binding:
    return Binding.function(
        FunctionSignature(params=(NUMBER,), returns=NUMBER),
        accessor=lambda window: getattr(window, method),
        description=description,
    )


FORECAST_FIELDS = {
    "temperatureIn": _forecast_lookup("temperature_in", "Temperature N hours from now"),
    "feelsLikeIn": _forecast_lookup("feels_like_in", "Felt temperature N hours from now"),
    "minTemperature": _forecast_lookup("min_temperature", "Lowest temperature in the next N hours"),
    "maxTemperature": _forecast_lookup("max_temperature", "Highest temperature in the next N hours"),
    "totalRain": _forecast_lookup("total_rain", "Rain volume (mm) in the next N hours"),
    "totalSnow": _forecast_lookup("total_snow", "Snow volume (mm) in the next N hours"),
    "maxWindSpeed": _forecast_lookup("max_wind_speed", "Highest wind speed in the next N hours"),
    "maxUV": _forecast_lookup("max_uv", "Highest UV index in the next N hours"),
    "maxPrecipitationProbability": _forecast_lookup(
        "max_precipitation_probability", "Highest chance of precipitation (0-1) in the next N hours"
    ),
}


def build_data_schema() -> EnvironmentSchema:
    """Schema of the weather data environment."""
    return EnvironmentSchema({
        "temperature": _number(lambda d: d.current_temp, "Current temperature"),
        "tempMin": _number(lambda d: d.temp_min, "Minimum temperature today"),
        "tempMax": _number(lambda d: d.temp_max, "Maximum temperature today"),
        "feelsLike": _number(lambda d: d.feels_like, "Felt temperature"),
        "rain1h": _number(lambda d: d.rain_1h, "Rain volume in the last hour (mm)"),
        "rain3h": _number(lambda d: d.rain_3h, "Rain volume in the last 3 hours (mm)"),
        "snow1h": _number(lambda d: d.snow_1h, "Snow volume in the last hour (mm)"),
        "snow3h": _number(lambda d: d.snow_3h, "Snow volume in the last 3 hours (mm)"),
        "uvValue": _number(lambda d: d.uv_value, "Current UV index"),
        "cloudiness": _number(lambda d: d.cloudiness, "Cloudiness (%)"),
        "windSpeed": _number(lambda d: d.wind_speed, "Wind speed (m/s)"),
        "currentTime": Binding.value(
            ValueKind.TIMESTAMP, accessor=lambda d: d.current_time, description="Evaluation time"
        ),
        "forecast": Binding.record(
            FORECAST_FIELDS,
            accessor=lambda d: ForecastWindow(d.forecast, d.current_time),
            description="Hourly forecast lookups",
        ),
        "sprintf": Binding.function(
            FunctionSignature(params=(ValueKind.STRING,), returns=ValueKind.STRING, variadic=ValueKind.ANY),
            accessor=lambda d: sprintf,
            description="printf-style formatting",
        ),
        "round": Binding.function(
            FunctionSignature(params=(NUMBER, NUMBER), returns=NUMBER, required=1),
            accessor=lambda d: round_number,
            description="Round half away from zero",
        ),
        "hour": Binding.function(
            FunctionSignature(params=(ValueKind.TIMESTAMP,), returns=NUMBER),
            accessor=lambda d: hour_of,
            description="Hour of day (0-23)",
        ),
    })


DATA_SCHEMA = build_data_schema()


def build_environment(data: EvaluationData) -> Dict[str, Any]:
    """Concrete values for every name in the data schema."""
    return DATA_SCHEMA.bind(data)
