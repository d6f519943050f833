"""Shared typed models: saved locations, failures and lookup outcomes."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FailureKind = Literal[
    "network-error",
    "http-error",
    "malformed-response",
    "not-found",
    "rate-limited",
]


class Location(BaseModel):
    """A resolved place; rows of the saved-locations table are keyed by zip."""

    model_config = ConfigDict(frozen=True)

    zip: str | None = Field(description="Postal code; None for coordinate-only lookups")
    name: str = Field(description="Display name returned by the geocoder")
    country: str = Field(default="", description="ISO country code")
    lat: float
    lon: float
    searched_at: int = Field(default=0, description="Last search time, epoch milliseconds")
    is_favorite: bool = False


class Failure(BaseModel):
    """Explicit failure value returned instead of raising past the client boundary."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind} ({self.status_code}): {self.message}"
        return f"{self.kind}: {self.message}"


class LookupState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class LookupResult(BaseModel):
    """Tagged success/failure outcome of one lookup request."""

    model_config = ConfigDict(frozen=True)

    state: LookupState
    location: Location | None = None
    snapshot: WeatherSnapshot | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.snapshot is not None

    @classmethod
    def success(cls, location: Location, snapshot: WeatherSnapshot) -> LookupResult:
        return cls(state=LookupState.DONE, location=location, snapshot=snapshot)

    @classmethod
    def failed(cls, failure: Failure) -> LookupResult:
        return cls(state=LookupState.FAILED, failure=failure)


# Imported late: the weather package itself depends on Location and Failure.
from .weather.models import WeatherSnapshot  # noqa: E402

LookupResult.model_rebuild()
