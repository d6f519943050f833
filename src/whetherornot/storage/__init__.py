"""Saved-location persistence."""

from .db import Base, SavedLocationRow, create_store_engine
from .store import LocationObserver, LocationStore, LocationSubscription

__all__ = [
    "Base",
    "LocationObserver",
    "LocationStore",
    "LocationSubscription",
    "SavedLocationRow",
    "create_store_engine",
]
