"""Tests for OpenWeatherMap geocoding/forecast requests and failure mapping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from pydantic import ValidationError

from whetherornot.exceptions import WeatherProviderError
from whetherornot.models import Failure, Location
from whetherornot.weather.models import WeatherSnapshot
from whetherornot.weather.openweather import OpenWeatherProvider

API_KEY = "test-key-123"
FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _make_settings(**overrides: Any) -> Any:
    defaults = {
        "openweather_api_key": API_KEY,
        "base_url": "https://api.openweathermap.org",
        "weather_timeout_seconds": 5.0,
        "weather_user_agent": "whetherornot-tests/0.1",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _make_provider(handler: Callable[[httpx.Request], httpx.Response]) -> OpenWeatherProvider:
    return OpenWeatherProvider(
        settings=_make_settings(),
        logger=logging.getLogger("test_openweather_provider"),
        transport=httpx.MockTransport(handler),
        now_provider=lambda: FIXED_NOW,
    )


def _resolve(handler: Callable[[httpx.Request], httpx.Response], zip_code: str = "90210") -> Any:
    async def scenario() -> Any:
        async with _make_provider(handler) as provider:
            return await provider.resolve_zip(zip_code, "us")

    return asyncio.run(scenario())


def _fetch(handler: Callable[[httpx.Request], httpx.Response], lat: float, lon: float) -> Any:
    async def scenario() -> Any:
        async with _make_provider(handler) as provider:
            return await provider.fetch_weather(lat, lon)

    return asyncio.run(scenario())


def test_resolve_zip_sends_zip_country_query_and_returns_location(
    geocode_payload: dict[str, Any],
) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=geocode_payload)

    result = _resolve(handler)

    assert len(requests) == 1
    assert requests[0].url.host == "api.openweathermap.org"
    assert requests[0].url.path == "/geo/1.0/zip"
    assert requests[0].url.params["zip"] == "90210,US"
    assert requests[0].url.params["appid"] == API_KEY
    assert isinstance(result, Location)
    assert result.zip == "90210"
    assert result.name == "Beverly Hills"
    assert result.country == "US"
    assert result.lat == 34.09
    assert result.lon == -118.41
    assert result.is_favorite is False
    assert result.searched_at == int(FIXED_NOW.timestamp() * 1000)


def test_resolve_zip_404_is_not_found_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"cod": "404", "message": "not found"})

    result = _resolve(handler, zip_code="00000")

    assert isinstance(result, Failure)
    assert result.kind == "not-found"
    assert result.status_code == 404
    assert "not found" in result.message


def test_resolve_zip_429_is_rate_limited_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"cod": 429, "message": "Too many requests"})

    result = _resolve(handler)

    assert isinstance(result, Failure)
    assert result.kind == "rate-limited"
    assert result.status_code == 429


def test_server_error_is_http_error_with_body_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "service unavailable"})

    result = _resolve(handler)

    assert isinstance(result, Failure)
    assert result.kind == "http-error"
    assert result.status_code == 503
    assert "service unavailable" in result.message


def test_in_band_error_code_on_success_status_is_mapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"cod": "404", "message": "city not found"})

    result = _resolve(handler)

    assert isinstance(result, Failure)
    assert result.kind == "not-found"


def test_connect_error_is_network_failure_without_api_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"connection refused for {request.url}", request=request)

    result = _resolve(handler)

    assert isinstance(result, Failure)
    assert result.kind == "network-error"
    assert result.status_code is None
    assert API_KEY not in result.message
    assert "[REDACTED]" in result.message


def test_timeout_is_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    result = _fetch(handler, 34.09, -118.41)

    assert isinstance(result, Failure)
    assert result.kind == "network-error"
    assert "timed out" in result.message


def test_geocode_payload_missing_coordinates_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"zip": "90210", "name": "Beverly Hills"})

    result = _resolve(handler)

    assert isinstance(result, Failure)
    assert result.kind == "malformed-response"


def test_fetch_weather_requests_imperial_without_minutely_or_alerts(
    forecast_payload: dict[str, Any],
) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=forecast_payload)

    result = _fetch(handler, 34.09, -118.41)

    assert len(requests) == 1
    params = requests[0].url.params
    assert requests[0].url.path == "/data/3.0/onecall"
    assert params["lat"] == "34.09"
    assert params["lon"] == "-118.41"
    assert params["exclude"] == "minutely,alerts"
    assert params["units"] == "imperial"
    assert params["appid"] == API_KEY

    assert isinstance(result, WeatherSnapshot)
    assert result.timezone == "America/Los_Angeles"
    assert result.current is not None
    assert result.current.temp == 72.4
    assert result.current.wind_gust is None
    assert result.current.primary_condition is not None
    assert result.current.primary_condition.main == "Clear"
    assert len(result.hourly) == 3
    assert result.hourly[0].pop == 0.1
    assert result.hourly[0].wind_gust == 8.1
    assert len(result.daily) == 2
    assert result.daily[0].temp.max == 78.9
    assert result.daily[0].feels_like.morn == 58.8
    assert result.daily[0].moon_phase == 0.93
    assert result.daily[0].primary_condition is not None
    assert result.daily[0].primary_condition.description == "light rain"


def test_fetch_weather_unparsable_body_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway says hi</html>")

    result = _fetch(handler, 34.09, -118.41)

    assert isinstance(result, Failure)
    assert result.kind == "malformed-response"


def test_fetch_weather_schema_mismatch_is_malformed(forecast_payload: dict[str, Any]) -> None:
    del forecast_payload["current"]["temp"]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=forecast_payload)

    result = _fetch(handler, 34.09, -118.41)

    assert isinstance(result, Failure)
    assert result.kind == "malformed-response"


def test_fetch_weather_non_object_json_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    result = _fetch(handler, 34.09, -118.41)

    assert isinstance(result, Failure)
    assert result.kind == "malformed-response"


def test_fetch_weather_accepts_null_hourly_and_daily(forecast_payload: dict[str, Any]) -> None:
    forecast_payload["hourly"] = None
    forecast_payload["daily"] = None

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=forecast_payload)

    result = _fetch(handler, 34.09, -118.41)

    assert isinstance(result, WeatherSnapshot)
    assert result.hourly == ()
    assert result.daily == ()


def test_invalid_coordinates_raise_before_any_request() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={})

    with pytest.raises(WeatherProviderError, match="Invalid latitude"):
        _fetch(handler, 91.0, 0.0)
    with pytest.raises(WeatherProviderError, match="Invalid longitude"):
        _fetch(handler, 0.0, -181.0)
    assert calls == 0


def test_snapshot_is_immutable(forecast_payload: dict[str, Any]) -> None:
    snapshot = WeatherSnapshot.model_validate(forecast_payload)

    with pytest.raises(ValidationError):
        snapshot.timezone = "UTC"  # type: ignore[misc]
    assert '"timezone":"America/Los_Angeles"' in snapshot.to_json()


def test_polar_forecast_without_current_sunrise_or_sunset_is_accepted(
    forecast_payload: dict[str, Any],
) -> None:
    # Tromsø in midnight sun: One Call omits current sunrise/sunset.
    forecast_payload.update({"lat": 69.65, "lon": 18.96, "timezone": "Europe/Oslo"})
    del forecast_payload["current"]["sunrise"]
    del forecast_payload["current"]["sunset"]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=forecast_payload)

    result = _fetch(handler, 69.65, 18.96)

    assert isinstance(result, WeatherSnapshot)
    assert result.current is not None
    assert result.current.sunrise is None
    assert result.current.sunset is None
    assert result.current.temp == 72.4


def test_forecast_units_are_always_imperial(forecast_payload: dict[str, Any]) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=forecast_payload)

    async def scenario() -> Any:
        provider = OpenWeatherProvider(
            settings=_make_settings(weather_units="metric"),
            logger=logging.getLogger("test_openweather_provider"),
            transport=httpx.MockTransport(handler),
        )
        async with provider:
            return await provider.fetch_weather(34.09, -118.41)

    assert isinstance(asyncio.run(scenario()), WeatherSnapshot)
    assert requests[0].url.params["units"] == "imperial"
