"""Lookup orchestration: zip/coordinates -> forecast -> saved location."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import ValidationError

from .models import Failure, Location, LookupResult, LookupState
from .storage import LocationStore
from .weather.base import WeatherProvider

StateListener = Callable[[LookupState], None]

T = TypeVar("T")


class LookupOrchestrator:
    """Composes a weather provider with the saved-location store.

    Per request: IDLE -> RESOLVING -> FETCHING -> PERSISTING -> DONE, or
    FAILED after RESOLVING or FETCHING. The first failure aborts the request
    and is returned unchanged; nothing is retried.
    """

    def __init__(
        self,
        provider: WeatherProvider,
        store: LocationStore,
        logger: logging.Logger,
        *,
        default_location: Location | None = None,
        default_country_code: str = "US",
        state_listener: StateListener | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.logger = logger
        self.default_location = default_location
        self.default_country_code = default_country_code
        self._state_listener = state_listener

    async def lookup_by_coordinates(
        self, lat: float, lon: float, display_name: str
    ) -> LookupResult:
        """Fetch weather for raw coordinates; the result is never persisted."""
        self._transition(LookupState.IDLE)
        self._transition(LookupState.FETCHING)
        snapshot = await self._guarded(self.provider.fetch_weather(lat, lon), "forecast fetch")
        if isinstance(snapshot, Failure):
            return self._fail(snapshot)

        location = Location(zip=None, name=display_name, country="", lat=lat, lon=lon)
        self._transition(LookupState.DONE)
        return LookupResult.success(location, snapshot)

    async def lookup_by_zip(self, zip_code: str, country_code: str | None = None) -> LookupResult:
        """Resolve a zip, fetch its forecast and record the search.

        The location is only saved after both calls succeed, so a zip whose
        forecast could not be fetched is never cached.
        """
        country = country_code or self.default_country_code
        self._transition(LookupState.IDLE)
        self._transition(LookupState.RESOLVING)
        resolved = await self._guarded(
            self.provider.resolve_zip(zip_code, country), "geocoding"
        )
        if isinstance(resolved, Failure):
            return self._fail(resolved)

        self._transition(LookupState.FETCHING)
        snapshot = await self._guarded(
            self.provider.fetch_weather(resolved.lat, resolved.lon), "forecast fetch"
        )
        if isinstance(snapshot, Failure):
            return self._fail(snapshot)

        self._transition(LookupState.PERSISTING)
        # Runs as a single transaction in a worker thread; cancelling this
        # coroutine cannot leave a partially written row.
        stored = await asyncio.to_thread(self.store.save_or_update, resolved)
        self._transition(LookupState.DONE)
        return LookupResult.success(stored, snapshot)

    async def lookup_default(self) -> LookupResult:
        """Coordinate lookup of the configured fallback location."""
        if self.default_location is None:
            raise ValueError("No default location configured.")
        location = self.default_location
        return await self.lookup_by_coordinates(location.lat, location.lon, location.name)

    async def _guarded(
        self, call: Awaitable[T | Failure], context: str
    ) -> T | Failure:
        try:
            return await call
        except (ValidationError, ValueError, TypeError, KeyError) as exc:
            self.logger.warning("Lookup %s produced an unparseable response: %s", context, exc)
            return Failure(
                kind="malformed-response",
                message=f"Could not parse {context} response: {type(exc).__name__}",
            )

    def _fail(self, failure: Failure) -> LookupResult:
        self.logger.warning("Lookup failed: %s", failure)
        self._transition(LookupState.FAILED)
        return LookupResult.failed(failure)

    def _transition(self, state: LookupState) -> None:
        self.logger.debug("Lookup state -> %s", state.value)
        if self._state_listener is not None:
            self._state_listener(state)

