"""Store layout: canonical paths and seed data."""

from household_store.schema import paths
from household_store.schema.defaults import (
    CATEGORY_IDS,
    DEFAULT_CATEGORIES,
    DEFAULT_INVENTORY_LOCATION,
    DEFAULT_UNITS,
    UNIT_IDS,
)

__all__ = [
    "paths",
    "CATEGORY_IDS",
    "DEFAULT_CATEGORIES",
    "DEFAULT_INVENTORY_LOCATION",
    "DEFAULT_UNITS",
    "UNIT_IDS",
]
