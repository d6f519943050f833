"""Shared payload builders for OpenWeatherMap responses."""

from __future__ import annotations

from typing import Any

import pytest


def _condition(code: int = 800, main: str = "Clear", description: str = "clear sky") -> dict:
    return {"id": code, "main": main, "description": description, "icon": "01d"}


def build_forecast_payload(lat: float = 34.09, lon: float = -118.41) -> dict[str, Any]:
    return {
        "lat": lat,
        "lon": lon,
        "timezone": "America/Los_Angeles",
        "timezone_offset": -25200,
        "current": {
            "dt": 1760900000,
            "sunrise": 1760881000,
            "sunset": 1760922000,
            "temp": 72.4,
            "feels_like": 71.8,
            "pressure": 1015,
            "humidity": 48,
            "dew_point": 51.2,
            "uvi": 4.1,
            "clouds": 0,
            "visibility": 10000,
            "wind_speed": 5.75,
            "wind_deg": 250,
            "weather": [_condition()],
        },
        "hourly": [
            {
                "dt": 1760900000 + hour * 3600,
                "temp": 72.0 - hour,
                "feels_like": 71.0 - hour,
                "pressure": 1015,
                "humidity": 50,
                "dew_point": 51.0,
                "uvi": 3.0,
                "clouds": 10,
                "visibility": 10000,
                "wind_speed": 4.5,
                "wind_deg": 240,
                "wind_gust": 8.1,
                "weather": [_condition(801, "Clouds", "few clouds")],
                "pop": 0.1,
            }
            for hour in range(3)
        ],
        "daily": [
            {
                "dt": 1760900000 + day * 86400,
                "sunrise": 1760881000,
                "sunset": 1760922000,
                "moonrise": 1760870000,
                "moonset": 1760915000,
                "moon_phase": 0.93,
                "summary": "Expect a day of partly cloudy with clear spells",
                "temp": {
                    "day": 74.1,
                    "min": 58.3,
                    "max": 78.9,
                    "night": 61.0,
                    "eve": 68.2,
                    "morn": 59.4,
                },
                "feels_like": {"day": 73.5, "night": 60.2, "eve": 67.9, "morn": 58.8},
                "pressure": 1014,
                "humidity": 44,
                "dew_point": 49.9,
                "wind_speed": 7.2,
                "wind_deg": 255,
                "weather": [_condition(500, "Rain", "light rain")],
                "clouds": 20,
                "pop": 0.35,
                "uvi": 5.2,
            }
            for day in range(2)
        ],
    }


def build_geocode_payload(
    zip_code: str = "90210",
    name: str = "Beverly Hills",
    lat: float = 34.09,
    lon: float = -118.41,
    country: str = "US",
) -> dict[str, Any]:
    return {"zip": zip_code, "name": name, "lat": lat, "lon": lon, "country": country}


@pytest.fixture
def forecast_payload() -> dict[str, Any]:
    return build_forecast_payload()


@pytest.fixture
def geocode_payload() -> dict[str, Any]:
    return build_geocode_payload()
