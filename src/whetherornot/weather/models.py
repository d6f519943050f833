"""Typed models for OpenWeatherMap One Call 3.0 forecast snapshots."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class WeatherCondition(_FrozenModel):
    """Short condition descriptor (e.g. 800 / Clear / clear sky / 01d)."""

    id: int
    main: str = Field(description="Condition category")
    description: str
    icon: str = Field(description="Provider icon code")


class _ConditionsMixin(_FrozenModel):
    weather: list[WeatherCondition] = Field(default_factory=list)

    @property
    def primary_condition(self) -> WeatherCondition | None:
        return self.weather[0] if self.weather else None


class CurrentConditions(_ConditionsMixin):
    dt: int
    sunrise: int | None = None
    sunset: int | None = None
    temp: float
    feels_like: float
    pressure: int
    humidity: int
    dew_point: float
    uvi: float
    clouds: int
    visibility: int | None = None
    wind_speed: float
    wind_deg: float
    wind_gust: float | None = None


class HourlyEntry(_ConditionsMixin):
    dt: int
    temp: float
    feels_like: float
    pressure: int
    humidity: int
    dew_point: float
    uvi: float
    clouds: int
    visibility: int | None = None
    wind_speed: float
    wind_deg: float
    wind_gust: float | None = None
    pop: float = Field(description="Probability of precipitation, 0..1")


class DailyTemperature(_FrozenModel):
    day: float
    min: float
    max: float
    night: float
    eve: float
    morn: float


class DailyFeelsLike(_FrozenModel):
    day: float
    night: float
    eve: float
    morn: float


class DailyEntry(_ConditionsMixin):
    dt: int
    sunrise: int
    sunset: int
    moonrise: int
    moonset: int
    moon_phase: float
    summary: str | None = None
    temp: DailyTemperature
    feels_like: DailyFeelsLike
    pressure: int
    humidity: int
    dew_point: float
    wind_speed: float
    wind_deg: float
    wind_gust: float | None = None
    clouds: int
    pop: float
    uvi: float


class WeatherSnapshot(_FrozenModel):
    """Immutable forecast for one coordinate pair at lookup time."""

    lat: float
    lon: float
    timezone: str
    timezone_offset: int
    current: CurrentConditions | None = None
    hourly: tuple[HourlyEntry, ...] = ()
    daily: tuple[DailyEntry, ...] = ()

    @field_validator("hourly", "daily", mode="before")
    @classmethod
    def null_blocks_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ()
        return value

    def to_json(self, *, indent: int | None = None) -> str:
        """Re-serialize the snapshot in the provider's wire shape."""
        return self.model_dump_json(indent=indent)
