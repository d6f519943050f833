"""Durable saved-location store with favorite/recency semantics."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings
from ..exceptions import LocationStoreError
from ..models import Location
from .db import Base, SavedLocationRow, create_store_engine

LocationObserver = Callable[[list[Location]], None]


class LocationSubscription:
    """Handle for a live query; delivers the current list on every write."""

    def __init__(
        self,
        store: LocationStore,
        loader: Callable[[], list[Location]],
        observer: LocationObserver,
    ) -> None:
        self._store = store
        self._loader = loader
        self._observer = observer
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop delivery; safe to call more than once."""
        if self._active:
            self._active = False
            self._store._remove_subscription(self)

    def __enter__(self) -> LocationSubscription:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.cancel()

    def _deliver(self) -> None:
        if not self._active:
            return
        items = self._loader()
        if self._active:
            self._observer(items)


class LocationStore:
    """Single writer of truth for the ``saved_locations`` table.

    Every mutation runs in one transaction while holding the store lock, so a
    ``save_or_update`` and a ``set_favorite`` on the same zip cannot
    interleave: the favorite flag is re-read inside the writing transaction.
    """

    def __init__(
        self,
        engine: Engine,
        logger: logging.Logger,
        *,
        recent_limit: int = 10,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self.logger = logger
        self.recent_limit = recent_limit
        self._now_provider = now_provider or (lambda: datetime.now(UTC))
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._lock = threading.RLock()
        self._subscriptions: list[LocationSubscription] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        logger: logging.Logger,
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> LocationStore:
        return cls(
            create_store_engine(settings.database_url),
            logger,
            recent_limit=settings.recent_locations_limit,
            now_provider=now_provider,
        )

    def init(self) -> None:
        """Create the schema if missing; safe to call repeatedly."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise LocationStoreError(f"Failed initializing location store: {exc}") from exc
        self.logger.debug("Location store initialized at %s", self._engine.url)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()
        self._engine.dispose()

    def __enter__(self) -> LocationStore:
        self.init()
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    # Queries

    def get_all(self) -> list[Location]:
        """All saved locations, most recently searched first."""
        stmt = select(SavedLocationRow).order_by(
            SavedLocationRow.searched_at.desc(), SavedLocationRow.zip
        )
        return self._select(stmt)

    def get_favorites(self) -> list[Location]:
        """Favorite locations ordered by name."""
        stmt = (
            select(SavedLocationRow)
            .where(SavedLocationRow.is_favorite.is_(True))
            .order_by(SavedLocationRow.name, SavedLocationRow.zip)
        )
        return self._select(stmt)

    def get_recent(self, limit: int | None = None) -> list[Location]:
        limit = self.recent_limit if limit is None else limit
        if limit <= 0:
            raise LocationStoreError("Recent locations limit must be > 0.")
        stmt = (
            select(SavedLocationRow)
            .order_by(SavedLocationRow.searched_at.desc(), SavedLocationRow.zip)
            .limit(limit)
        )
        return self._select(stmt)

    def search_by_name(self, fragment: str) -> list[Location]:
        """Case-insensitive substring match on the display name."""
        stmt = (
            select(SavedLocationRow)
            .where(SavedLocationRow.name.icontains(fragment.strip(), autoescape=True))
            .order_by(SavedLocationRow.name, SavedLocationRow.zip)
        )
        return self._select(stmt)

    def get_by_zip(self, zip_code: str) -> Location | None:
        with self._read() as session:
            row = session.get(SavedLocationRow, zip_code)
            return row.to_location() if row is not None else None

    def exists(self, zip_code: str) -> bool:
        return self.get_by_zip(zip_code) is not None

    def count(self) -> int:
        return self._count()

    def favorite_count(self) -> int:
        return self._count(SavedLocationRow.is_favorite.is_(True))

    # Mutations

    def upsert(self, location: Location) -> None:
        """Insert, or replace every column of an existing row (no merge)."""
        self.upsert_many([location])

    def upsert_many(self, locations: Iterable[Location]) -> None:
        rows = [SavedLocationRow.from_location(self._require_zip(item)) for item in locations]
        if not rows:
            return
        with self._transaction() as session:
            for row in rows:
                session.merge(row)
        self.logger.debug("Upserted %d saved location(s)", len(rows))
        self._notify()

    def save_or_update(self, location: Location) -> Location:
        """Record a search, keeping the stored favorite flag for known zips.

        New zips are inserted as given. Known zips get name, coordinates and
        country from ``location``, a refreshed ``searched_at`` and the
        favorite flag read from the existing row in the same transaction.
        """
        zip_code = self._require_zip(location).zip
        with self._transaction() as session:
            existing = session.get(SavedLocationRow, zip_code, with_for_update=True)
            if existing is None:
                row = SavedLocationRow.from_location(location)
                session.add(row)
            else:
                existing.name = location.name
                existing.lat = location.lat
                existing.lon = location.lon
                existing.country = location.country
                existing.searched_at = self._next_timestamp(existing.searched_at)
                row = existing
            session.flush()
            stored = row.to_location()
        self.logger.info(
            "Saved location %s (%s) favorite=%s", stored.zip, stored.name, stored.is_favorite
        )
        self._notify()
        return stored

    def touch(self, zip_code: str) -> bool:
        """Refresh only ``searched_at``; returns False when the zip is absent."""
        with self._transaction() as session:
            row = session.get(SavedLocationRow, zip_code, with_for_update=True)
            if row is None:
                return False
            row.searched_at = self._next_timestamp(row.searched_at)
        self._notify()
        return True

    def set_favorite(self, zip_code: str, is_favorite: bool) -> bool:
        """Update only the favorite flag; an absent zip is a no-op."""
        stmt = (
            update(SavedLocationRow)
            .where(SavedLocationRow.zip == zip_code)
            .values(is_favorite=is_favorite)
        )
        changed = self._execute_write(stmt)
        if changed:
            self.logger.info("Set favorite=%s for %s", is_favorite, zip_code)
        return changed > 0

    def delete(self, location: Location) -> bool:
        if location.zip is None:
            return False
        return self.delete_by_zip(location.zip)

    def delete_by_zip(self, zip_code: str) -> bool:
        stmt = delete(SavedLocationRow).where(SavedLocationRow.zip == zip_code)
        return self._execute_write(stmt) > 0

    def delete_non_favorites(self) -> int:
        stmt = delete(SavedLocationRow).where(SavedLocationRow.is_favorite.is_(False))
        removed = self._execute_write(stmt)
        self.logger.info("Removed %d non-favorite location(s)", removed)
        return removed

    def delete_all(self) -> int:
        removed = self._execute_write(delete(SavedLocationRow))
        self.logger.info("Removed all %d saved location(s)", removed)
        return removed

    # Observation

    def observe_all(self, observer: LocationObserver) -> LocationSubscription:
        """Subscribe to ``get_all``; the current list is delivered immediately."""
        return self._subscribe(self.get_all, observer)

    def observe_favorites(self, observer: LocationObserver) -> LocationSubscription:
        """Subscribe to ``get_favorites``; the current list is delivered immediately."""
        return self._subscribe(self.get_favorites, observer)

    def observe_recent(
        self, observer: LocationObserver, limit: int | None = None
    ) -> LocationSubscription:
        limit = self.recent_limit if limit is None else limit
        if limit <= 0:
            raise LocationStoreError("Recent locations limit must be > 0.")
        return self._subscribe(lambda: self.get_recent(limit), observer)

    def observe_search(self, observer: LocationObserver, fragment: str) -> LocationSubscription:
        """Live ``search_by_name`` for a fixed fragment."""
        return self._subscribe(lambda: self.search_by_name(fragment), observer)

    def _subscribe(
        self, loader: Callable[[], list[Location]], observer: LocationObserver
    ) -> LocationSubscription:
        subscription = LocationSubscription(self, loader, observer)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription._deliver()
        return subscription

    def _remove_subscription(self, subscription: LocationSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            try:
                subscription._deliver()
            except Exception:
                # Write already committed; keep delivering to the remaining observers.
                self.logger.exception("Saved-location observer failed")

    # Internals

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                with session.begin():
                    yield session
            except SQLAlchemyError as exc:
                raise LocationStoreError(f"Location store write failed: {exc}") from exc
            finally:
                session.close()

    @contextmanager
    def _read(self) -> Iterator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            except SQLAlchemyError as exc:
                raise LocationStoreError(f"Location store read failed: {exc}") from exc
            finally:
                session.close()

    def _select(self, stmt: Any) -> list[Location]:
        with self._read() as session:
            return [row.to_location() for row in session.scalars(stmt)]

    def _count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(SavedLocationRow)
        if criteria:
            stmt = stmt.where(*criteria)
        with self._read() as session:
            return int(session.scalar(stmt) or 0)

    def _execute_write(self, stmt: Any) -> int:
        with self._transaction() as session:
            result = session.execute(stmt)
            changed = result.rowcount or 0
        if changed:
            self._notify()
        return changed

    def _next_timestamp(self, previous: int) -> int:
        # Refreshed timestamps must move forward even within one millisecond.
        return max(self._now_ms(), previous + 1)

    def _now_ms(self) -> int:
        return int(self._now_provider().timestamp() * 1000)

    @staticmethod
    def _require_zip(location: Location) -> Location:
        if not location.zip:
            raise LocationStoreError(
                "Only zip-resolved locations can be saved; coordinate lookups have no zip."
            )
        return location
