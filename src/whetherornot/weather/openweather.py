"""OpenWeatherMap (api.openweathermap.org) geocoding + One Call provider."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import Settings
from ..exceptions import WeatherProviderError
from ..models import Failure, Location
from ..redaction import sanitize_text
from .base import WeatherProvider
from .models import WeatherSnapshot


class _GeocodeResponse(BaseModel):
    """Body of ``GET /geo/1.0/zip``."""

    model_config = ConfigDict(extra="ignore")

    zip: str | None = None
    name: str
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    country: str | None = None


class OpenWeatherProvider(WeatherProvider):
    """Resolves zip codes and fetches One Call 3.0 forecasts.

    No retries and no caching: every HTTP, transport or schema problem is
    reported once, as a ``Failure``.
    """

    provider_name = "openweather"
    geocode_path = "/geo/1.0/zip"
    forecast_path = "/data/3.0/onecall"
    forecast_exclude = "minutely,alerts"
    # Display code formats temperatures in °F and wind in mph.
    forecast_units = "imperial"

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self._api_key = settings.openweather_api_key
        self._timeout = settings.weather_timeout_seconds
        self._now_provider = now_provider or (lambda: datetime.now(UTC))
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=self._timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.weather_user_agent,
            },
            transport=transport,
        )

    async def __aenter__(self) -> OpenWeatherProvider:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def resolve_zip(self, zip_code: str, country_code: str) -> Location | Failure:
        """Geocode ``"{zip},{country}"`` into a fresh, non-favorite Location."""
        zip_value = zip_code.strip()
        country_value = country_code.strip().upper()
        if not zip_value:
            raise WeatherProviderError("Zip code must not be empty.")
        if not country_value:
            raise WeatherProviderError("Country code must not be empty.")

        context = "geocoding"
        try:
            payload = await self._request_json(
                self.geocode_path,
                params={"zip": f"{zip_value},{country_value}"},
                context=context,
            )
            location = self._normalize_location(
                payload, zip_code=zip_value, country_code=country_value
            )
        except WeatherProviderError as exc:
            return self._failure_from(exc, context=context)

        self.logger.info(
            "Resolved zip %s,%s to %s (%.4f, %.4f)",
            zip_value, country_value, location.name, location.lat, location.lon,
        )
        return location

    async def fetch_weather(self, lat: float, lon: float) -> WeatherSnapshot | Failure:
        """Fetch current/hourly/daily forecast blocks for coordinates."""
        self._validate_coordinates(lat, lon)

        context = "forecast fetch"
        try:
            payload = await self._request_json(
                self.forecast_path,
                params={
                    "lat": lat,
                    "lon": lon,
                    "exclude": self.forecast_exclude,
                    "units": self.forecast_units,
                },
                context=context,
            )
            snapshot = self._normalize_snapshot(payload)
        except WeatherProviderError as exc:
            return self._failure_from(exc, context=context)

        self.logger.info(
            "Fetched forecast for (%.4f, %.4f): hourly=%d daily=%d",
            lat, lon, len(snapshot.hourly), len(snapshot.daily),
        )
        return snapshot

    @staticmethod
    def _validate_coordinates(lat: float, lon: float) -> None:
        if not (-90 <= lat <= 90):
            raise WeatherProviderError(f"Invalid latitude {lat}; expected between -90 and 90.")
        if not (-180 <= lon <= 180):
            raise WeatherProviderError(f"Invalid longitude {lon}; expected between -180 and 180.")

    async def _request_json(
        self, path: str, *, params: dict[str, Any], context: str
    ) -> dict[str, Any]:
        query = {**params, "appid": self._api_key}
        self.logger.debug("OpenWeather %s request %s", context, path)
        try:
            response = await self._client.get(path, params=query)
        except httpx.TimeoutException as exc:
            raise WeatherProviderError(
                f"OpenWeather {context} timed out after {self._timeout:g}s.",
                kind="network-error",
            ) from exc
        except httpx.HTTPError as exc:
            raise WeatherProviderError(
                f"OpenWeather {context} network error: "
                f"{type(exc).__name__}: {sanitize_text(str(exc))}",
                kind="network-error",
            ) from exc

        if not response.is_success:
            status = response.status_code
            raise WeatherProviderError(
                f"OpenWeather {context} failed with status {status}: "
                f"{self._error_message(response)}",
                kind=self._kind_for_status(status),
                status_code=status,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise WeatherProviderError(
                f"OpenWeather {context} returned non-JSON response.",
                kind="malformed-response",
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise WeatherProviderError(
                f"OpenWeather {context} returned unexpected payload type "
                f"{type(payload).__name__}.",
                kind="malformed-response",
                status_code=response.status_code,
            )

        # Some OpenWeather endpoints report errors in-band with a 200 status.
        cod = payload.get("cod")
        if cod is not None and str(cod) not in {"200", "0"}:
            status = int(cod) if str(cod).isdigit() else None
            message = sanitize_text(str(payload.get("message") or "unknown error"))
            raise WeatherProviderError(
                f"OpenWeather {context} reported error {cod}: {message}",
                kind=self._kind_for_status(status) if status is not None else "http-error",
                status_code=status,
            )
        return payload

    @staticmethod
    def _kind_for_status(status: int) -> str:
        if status == 404:
            return "not-found"
        if status == 429:
            return "rate-limited"
        return "http-error"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        message: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            message = str(body["message"])
        if not message:
            message = response.reason_phrase or response.text[:300] or "no message"
        return sanitize_text(message[:300])

    def _normalize_location(
        self, payload: dict[str, Any], *, zip_code: str, country_code: str
    ) -> Location:
        try:
            geocoded = _GeocodeResponse.model_validate(payload)
        except ValidationError as exc:
            raise WeatherProviderError(
                f"OpenWeather geocoding payload did not match expected shape "
                f"({exc.error_count()} errors).",
                kind="malformed-response",
            ) from exc

        return Location(
            zip=geocoded.zip or zip_code,
            name=geocoded.name,
            country=geocoded.country or country_code,
            lat=geocoded.lat,
            lon=geocoded.lon,
            searched_at=self._now_ms(),
            is_favorite=False,
        )

    @staticmethod
    def _normalize_snapshot(payload: dict[str, Any]) -> WeatherSnapshot:
        try:
            return WeatherSnapshot.model_validate(payload)
        except ValidationError as exc:
            raise WeatherProviderError(
                f"OpenWeather forecast payload did not match expected shape "
                f"({exc.error_count()} errors).",
                kind="malformed-response",
            ) from exc

    def _failure_from(self, exc: WeatherProviderError, *, context: str) -> Failure:
        message = sanitize_text(str(exc))
        self.logger.warning("OpenWeather %s failed: %s", context, message)
        return Failure(
            kind=exc.kind,  # type: ignore[arg-type]
            message=message,
            status_code=exc.status_code,
        )

    def _now_ms(self) -> int:
        return int(self._now_provider().timestamp() * 1000)
