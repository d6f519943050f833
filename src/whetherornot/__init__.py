"""Weather lookup core: OpenWeatherMap client, saved locations, lookups."""

__version__ = "0.1.0"
