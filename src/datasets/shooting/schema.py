"""
NYC Shooting Insights - Shooting Category Schema

Declared, versioned category sets for every categorical field the pipeline
encodes. The classification feature layout is derived from this schema, never
from the values observed in a particular dataset, so a category that is absent
from training data still owns a (zero) column at prediction time.

Bump SCHEMA_VERSION whenever a category set changes.
"""

from __future__ import annotations

from dataclasses import dataclass

SCHEMA_VERSION = "1.0.0"

UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class CategoricalField:
    """An enumerated categorical field."""

    name: str
    categories: tuple[str | int, ...]

    @property
    def has_unknown(self) -> bool:
        return UNKNOWN in self.categories

    def column_names(self) -> list[str]:
        """One-hot column names in layout order."""
        return [f"{self.name}={c}" for c in self.categories]


BOROUGH = CategoricalField(
    "borough",
    ("BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND", UNKNOWN),
)

VIC_AGE_GROUP = CategoricalField(
    "vic_age_group",
    ("<18", "18-24", "25-44", "45-64", "65+", UNKNOWN),
)

VIC_SEX = CategoricalField("vic_sex", ("F", "M", UNKNOWN))

VIC_RACE = CategoricalField(
    "vic_race",
    ("ASIAN / PACIFIC ISLANDER", "BLACK", "HISPANIC", "WHITE", "OTHER", UNKNOWN),
)

# Calendar fields are derived from parsed dates, so they never need UNKNOWN
OCCUR_MONTH = CategoricalField(
    "occur_month",
    (
        "January",
        "February",
        "March",
        "April",
        "May",
        "June",
        "July",
        "August",
        "September",
        "October",
        "November",
        "December",
    ),
)

OCCUR_WEEKDAY = CategoricalField(
    "occur_weekday",
    ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
)

OCCUR_HOUR = CategoricalField("occur_hour", tuple(range(24)))

# Fields cleaned by the normalizer (sentinels, recodes, vocabulary clamp)
RECORD_FIELDS: tuple[CategoricalField, ...] = (BOROUGH, VIC_AGE_GROUP, VIC_SEX, VIC_RACE)

# Fields one-hot encoded for classification, in layout order
CLASSIFICATION_FIELDS: tuple[CategoricalField, ...] = (
    BOROUGH,
    VIC_AGE_GROUP,
    VIC_SEX,
    VIC_RACE,
    OCCUR_MONTH,
    OCCUR_WEEKDAY,
    OCCUR_HOUR,
)
