"""CLI: look up weather by zip or coordinates and manage saved locations."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import UTC, datetime

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ConfigError, JournalError, LocationStoreError, WeatherProviderError
from .journal import JournalWriter
from .log_setup import setup_logger
from .lookup import LookupOrchestrator
from .models import Location, LookupResult
from .storage import LocationStore
from .weather.models import WeatherSnapshot
from .weather.openweather import OpenWeatherProvider


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="whetherornot",
        description="Weather lookup by zip code or coordinates with saved locations.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    lookup = sub.add_parser("lookup", help="Fetch the forecast for a zip or coordinates.")
    lookup.add_argument("--zip", dest="zip_code", default=None, help="Postal code to geocode.")
    lookup.add_argument("--country", default=None, help="Country code for --zip (default US).")
    lookup.add_argument("--lat", type=float, default=None, help="Latitude.")
    lookup.add_argument("--lon", type=float, default=None, help="Longitude.")
    lookup.add_argument("--name", default=None, help="Display name for a coordinate lookup.")
    lookup.add_argument(
        "--max-print",
        type=int,
        default=None,
        help="Number of hourly/daily rows to print.",
    )
    lookup.add_argument("--json", action="store_true", help="Print the forecast as JSON.")

    saved = sub.add_parser("saved", help="List saved locations.")
    group = saved.add_mutually_exclusive_group()
    group.add_argument("--favorites", action="store_true", help="Only favorites, by name.")
    group.add_argument("--recent", action="store_true", help="Only the most recent searches.")
    group.add_argument("--search", default=None, help="Filter by name fragment.")

    favorite = sub.add_parser("favorite", help="Mark or unmark a saved location as favorite.")
    favorite.add_argument("zip_code", help="Saved zip code.")
    favorite.add_argument("--off", action="store_true", help="Clear the favorite flag.")

    remove = sub.add_parser("delete", help="Delete one saved location.")
    remove.add_argument("zip_code", help="Saved zip code.")

    clear = sub.add_parser("clear", help="Delete non-favorite saved locations.")
    clear.add_argument("--all", action="store_true", help="Delete favorites too.")

    return parser.parse_args(argv)


def _validate_lookup_input(args: argparse.Namespace) -> None:
    if args.max_print is not None and args.max_print <= 0:
        raise WeatherProviderError("--max-print must be > 0 when provided.")
    has_coords = args.lat is not None or args.lon is not None
    if args.zip_code and has_coords:
        raise WeatherProviderError("Use either --zip or --lat/--lon, not both.")
    if args.zip_code is not None and not args.zip_code.strip():
        raise WeatherProviderError("--zip must not be empty.")
    if has_coords:
        if args.lat is None or args.lon is None:
            raise WeatherProviderError("Provide both --lat and --lon.")
        if not (-90 <= args.lat <= 90):
            raise WeatherProviderError(f"Invalid latitude {args.lat}; expected between -90 and 90.")
        if not (-180 <= args.lon <= 180):
            raise WeatherProviderError(
                f"Invalid longitude {args.lon}; expected between -180 and 180."
            )


def _default_location(settings: Settings) -> Location:
    return Location(
        zip=None,
        name=settings.default_location_name,
        lat=settings.default_lat,
        lon=settings.default_lon,
    )


def _format_epoch(seconds: int, offset: int) -> str:
    return datetime.fromtimestamp(seconds + offset, tz=UTC).strftime("%a %H:%M")


def _print_snapshot(
    console: Console, location: Location, snapshot: WeatherSnapshot, max_print: int
) -> None:
    label = location.name
    if location.zip:
        label = f"{location.name} {location.zip}, {location.country}"
    console.print(f"Weather for {label} ({snapshot.lat:.4f}, {snapshot.lon:.4f})")

    current = snapshot.current
    if current is not None:
        condition = current.primary_condition
        console.print(
            f"Now: {current.temp:.0f}° (feels {current.feels_like:.0f}°) "
            f"{condition.description if condition else '-'} | "
            f"humidity {current.humidity}% wind {current.wind_speed:g} @ {current.wind_deg:.0f}°"
        )

    if snapshot.hourly:
        hourly = Table(title="Hourly")
        hourly.add_column("Time")
        hourly.add_column("Temp")
        hourly.add_column("Precip %")
        hourly.add_column("Conditions", overflow="fold")
        for entry in snapshot.hourly[:max_print]:
            condition = entry.primary_condition
            hourly.add_row(
                _format_epoch(entry.dt, snapshot.timezone_offset),
                f"{entry.temp:.0f}°",
                f"{entry.pop * 100:.0f}",
                condition.description if condition else "-",
            )
        console.print(hourly)

    if snapshot.daily:
        daily = Table(title="Daily")
        daily.add_column("Day")
        daily.add_column("Low")
        daily.add_column("High")
        daily.add_column("Precip %")
        daily.add_column("Conditions", overflow="fold")
        for entry in snapshot.daily[:max_print]:
            condition = entry.primary_condition
            daily.add_row(
                _format_epoch(entry.dt, snapshot.timezone_offset),
                f"{entry.temp.min:.0f}°",
                f"{entry.temp.max:.0f}°",
                f"{entry.pop * 100:.0f}",
                condition.description if condition else "-",
            )
        console.print(daily)


def _print_locations(console: Console, title: str, locations: list[Location]) -> None:
    if not locations:
        console.print("No saved locations.")
        return
    table = Table(title=title)
    table.add_column("Zip")
    table.add_column("Name", overflow="fold")
    table.add_column("Country")
    table.add_column("Lat/Lon")
    table.add_column("Last searched (UTC)")
    table.add_column("Fav")
    for location in locations:
        searched = datetime.fromtimestamp(location.searched_at / 1000, tz=UTC)
        table.add_row(
            location.zip or "-",
            location.name,
            location.country or "-",
            f"{location.lat:.4f}, {location.lon:.4f}",
            searched.strftime("%Y-%m-%d %H:%M"),
            "*" if location.is_favorite else "",
        )
    console.print(table)


async def _run_lookup(
    args: argparse.Namespace, settings: Settings, store: LocationStore, logger: logging.Logger
) -> LookupResult:
    async with OpenWeatherProvider(settings=settings, logger=logger) as provider:
        orchestrator = LookupOrchestrator(
            provider,
            store,
            logger,
            default_location=_default_location(settings),
            default_country_code=settings.default_country_code,
        )
        if args.zip_code:
            return await orchestrator.lookup_by_zip(args.zip_code.strip(), args.country)
        if args.lat is not None and args.lon is not None:
            name = args.name or f"({args.lat:.4f}, {args.lon:.4f})"
            return await orchestrator.lookup_by_coordinates(args.lat, args.lon, name)
        return await orchestrator.lookup_default()


def _handle_lookup(
    args: argparse.Namespace,
    settings: Settings,
    store: LocationStore,
    console: Console,
    journal: JournalWriter | None,
    logger: logging.Logger,
) -> int:
    _validate_lookup_input(args)
    if journal is not None:
        journal.write_event(
            "lookup_start",
            payload={
                "zip": args.zip_code,
                "country": args.country,
                "lat": args.lat,
                "lon": args.lon,
            },
        )

    result = asyncio.run(_run_lookup(args, settings, store, logger))
    if not result.ok or result.snapshot is None or result.location is None:
        failure = result.failure
        console.print(f"[red]Lookup failed:[/red] {failure}")
        if journal is not None and failure is not None:
            journal.write_event("lookup_failure", payload=failure.model_dump(mode="json"))
        return 4

    if journal is not None:
        payload: dict[str, object] = {
            "location": result.location.model_dump(mode="json"),
            "hourly_count": len(result.snapshot.hourly),
            "daily_count": len(result.snapshot.daily),
        }
        if settings.journal_raw_payloads:
            name = f"forecast_{result.location.zip or 'coords'}"
            payload["snapshot_path"] = str(
                journal.write_raw_snapshot(name, result.snapshot.model_dump(mode="json"))
            )
        journal.write_event("lookup_success", payload=payload)

    if args.json:
        console.print_json(result.snapshot.to_json())
    else:
        max_print = args.max_print or settings.max_print
        _print_snapshot(console, result.location, result.snapshot, max_print)
    return 0


def _handle_saved(args: argparse.Namespace, store: LocationStore, console: Console) -> int:
    if args.favorites:
        _print_locations(console, "Favorite locations", store.get_favorites())
    elif args.recent:
        _print_locations(console, "Recent locations", store.get_recent())
    elif args.search:
        _print_locations(
            console, f"Locations matching '{args.search}'", store.search_by_name(args.search)
        )
    else:
        _print_locations(console, "Saved locations", store.get_all())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run one CLI command; returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logger()
    console = Console()
    session_id = uuid.uuid4().hex[:12]

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2
    logger.setLevel(settings.log_level)

    journal: JournalWriter | None = None
    if settings.journal_enabled:
        try:
            journal = JournalWriter(
                journal_dir=settings.journal_dir,
                raw_payload_dir=settings.raw_payload_dir,
                session_id=session_id,
            )
            journal.write_event(
                "startup",
                payload=settings.safe_summary(),
                metadata={"command": args.command},
            )
        except JournalError as exc:
            logger.error("Failed to initialize journal: %s", exc)
            return 3

    store = LocationStore.from_settings(settings, logger)
    exit_code = 0
    try:
        store.init()
        if args.command == "lookup":
            exit_code = _handle_lookup(args, settings, store, console, journal, logger)
        elif args.command == "saved":
            exit_code = _handle_saved(args, store, console)
        elif args.command == "favorite":
            if store.set_favorite(args.zip_code, not args.off):
                console.print(f"{args.zip_code}: favorite={'off' if args.off else 'on'}")
            else:
                console.print(f"No saved location for {args.zip_code}.")
        elif args.command == "delete":
            removed = store.delete_by_zip(args.zip_code)
            if removed:
                console.print(f"Deleted {args.zip_code}.")
            else:
                console.print(f"No saved location for {args.zip_code}.")
        elif args.command == "clear":
            removed = store.delete_all() if args.all else store.delete_non_favorites()
            console.print(f"Removed {removed} saved location(s).")
    except (WeatherProviderError, LocationStoreError, JournalError) as exc:
        exit_code = 4
        logger.error("Command %s failed: %s", args.command, exc)
    except Exception as exc:  # pragma: no cover
        exit_code = 99
        logger.exception("Unexpected CLI failure: %s", exc)
    finally:
        store.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
