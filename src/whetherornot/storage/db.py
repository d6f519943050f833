"""SQLAlchemy schema and engine setup for the saved-locations table."""

from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, Boolean, Engine, Float, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from ..models import Location


class Base(DeclarativeBase):
    pass


class SavedLocationRow(Base):
    """One previously resolved location; ``zip`` is the only uniqueness constraint."""

    __tablename__ = "saved_locations"

    zip: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    country: Mapped[str] = mapped_column(String, nullable=False, default="")
    searched_at: Mapped[int] = mapped_column(
        "searchedAt", BigInteger, nullable=False, index=True
    )
    is_favorite: Mapped[bool] = mapped_column(
        "isFavorite", Boolean, nullable=False, default=False
    )

    @classmethod
    def from_location(cls, location: Location) -> SavedLocationRow:
        return cls(
            zip=location.zip,
            name=location.name,
            lat=location.lat,
            lon=location.lon,
            country=location.country,
            searched_at=location.searched_at,
            is_favorite=location.is_favorite,
        )

    def to_location(self) -> Location:
        return Location(
            zip=self.zip,
            name=self.name,
            country=self.country,
            lat=self.lat,
            lon=self.lon,
            searched_at=self.searched_at,
            is_favorite=self.is_favorite,
        )

    def __repr__(self) -> str:
        return (
            f"SavedLocationRow(zip={self.zip!r}, name={self.name!r}, "
            f"searched_at={self.searched_at!r}, is_favorite={self.is_favorite!r})"
        )


def create_store_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections may be used from worker threads."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        # A single shared connection keeps an in-memory database alive.
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, **kwargs)
