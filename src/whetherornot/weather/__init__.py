"""Weather provider integrations."""

from .base import WeatherProvider
from .models import (
    CurrentConditions,
    DailyEntry,
    DailyFeelsLike,
    DailyTemperature,
    HourlyEntry,
    WeatherCondition,
    WeatherSnapshot,
)
from .openweather import OpenWeatherProvider

__all__ = [
    "CurrentConditions",
    "DailyEntry",
    "DailyFeelsLike",
    "DailyTemperature",
    "HourlyEntry",
    "OpenWeatherProvider",
    "WeatherCondition",
    "WeatherProvider",
    "WeatherSnapshot",
]
