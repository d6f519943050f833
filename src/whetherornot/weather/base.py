"""Provider-agnostic weather interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Failure, Location
from .models import WeatherSnapshot


class WeatherProvider(ABC):
    """Base contract for geocoding + forecast providers used by lookups.

    Both operations return a ``Failure`` value rather than raising for any
    HTTP, transport or parsing problem.
    """

    @abstractmethod
    async def resolve_zip(self, zip_code: str, country_code: str) -> Location | Failure:
        """Resolve a postal code to a Location."""

    @abstractmethod
    async def fetch_weather(self, lat: float, lon: float) -> WeatherSnapshot | Failure:
        """Fetch and normalize a forecast snapshot for coordinates."""

    @abstractmethod
    async def close(self) -> None:
        """Release provider resources."""
