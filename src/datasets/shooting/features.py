"""
NYC Shooting Insights - Shooting Feature Deriver

Derives calendar features from canonical shooting records and encodes them,
together with the cleaned demographic and spatial fields, into the fixed
classification feature layout.

Derived columns (appended, never replacing source fields):
    - occur_hour     (0-23, from occur_time)
    - occur_year     (from occur_date)
    - occur_month    (month name)
    - occur_weekday  (weekday name)

Usage:
    from src.datasets.shooting.features import FeatureLayout, derive_features

    enriched = derive_features(records)
    rows = FeatureLayout().encode(enriched)
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from src.datasets.base import BaseFeatureBuilder, FeatureDefinition
from src.datasets.shooting.schema import (
    CLASSIFICATION_FIELDS,
    SCHEMA_VERSION,
    UNKNOWN,
    CategoricalField,
)
from src.shared.config import Settings, get_config

logger = logging.getLogger(__name__)


def derive_features(df: pd.DataFrame) -> pd.DataFrame:
    """
    Append calendar features to canonical records.

    Pure and total over canonical records: the input is not modified and
    every source column is carried through unchanged.
    """
    enriched = df.copy()
    dates = pd.to_datetime(enriched["occur_date"])

    enriched["occur_hour"] = enriched["occur_time"].map(lambda t: t.hour).astype("int64")
    enriched["occur_year"] = dates.dt.year.astype("int64")
    enriched["occur_month"] = dates.dt.month_name()
    enriched["occur_weekday"] = dates.dt.day_name()

    return enriched


class ShootingFeatureBuilder(BaseFeatureBuilder):
    """Feature deriver for canonical shooting records."""

    def __init__(self, config: Settings | None = None):
        """Initialize shooting feature builder."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "shooting"

    def get_entity_key(self) -> str:
        """Return entity key."""
        return "incident_key"

    def get_feature_definitions(self) -> list[FeatureDefinition]:
        """Return feature definitions."""
        return [
            FeatureDefinition(
                name="occur_hour",
                description="Hour of day the incident occurred",
                dtype="int",
                source_columns=["occur_time"],
                min_value=0,
                max_value=23,
            ),
            FeatureDefinition(
                name="occur_year",
                description="Calendar year of occurrence",
                dtype="int",
                source_columns=["occur_date"],
            ),
            FeatureDefinition(
                name="occur_month",
                description="Month name of occurrence",
                dtype="string",
                source_columns=["occur_date"],
            ),
            FeatureDefinition(
                name="occur_weekday",
                description="Weekday name of occurrence",
                dtype="string",
                source_columns=["occur_date"],
            ),
        ]

    def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Append calendar features to canonical records."""
        logger.info(f"Deriving calendar features for {len(df)} records")
        return derive_features(df)


class FeatureLayout:
    """
    Fixed classification feature layout derived from the category schema.

    Every categorical field contributes one ``field=value`` column per declared
    category, in schema order, whether or not the value occurs in the data.
    The calendar year enters as a single numeric column relative to a
    configured origin year. Identifier, coordinates, precinct and raw
    timestamps are never part of the layout.
    """

    YEAR_COLUMN = "years_since_origin"

    def __init__(
        self,
        config: Settings | None = None,
        fields: tuple[CategoricalField, ...] = CLASSIFICATION_FIELDS,
    ):
        self.config = config or get_config()
        self.fields = fields
        self.label_field = self.config.features.label_field
        self.year_origin = self.config.features.year_origin
        self.version = SCHEMA_VERSION

    @property
    def feature_names(self) -> list[str]:
        names: list[str] = []
        for spec in self.fields:
            names.extend(spec.column_names())
        names.append(self.YEAR_COLUMN)
        return names

    def encode(self, enriched: pd.DataFrame) -> pd.DataFrame:
        """
        Encode enriched records into feature rows.

        Returns:
            DataFrame with exactly ``feature_names`` columns (in order) plus the
            label column as 0/1, indexed like the input.
        """
        blocks = [self._one_hot(enriched, spec) for spec in self.fields]

        years = (enriched["occur_year"].astype("int64") - self.year_origin).astype("float64")
        blocks.append(years.rename(self.YEAR_COLUMN).to_frame())

        rows = pd.concat(blocks, axis=1)
        rows = rows.reindex(columns=self.feature_names, fill_value=0)
        rows[self.label_field] = enriched[self.label_field].astype(bool).astype("int64")

        logger.debug(
            f"Encoded {len(rows)} rows into {len(self.feature_names)} features "
            f"(schema {self.version})"
        )
        return rows

    def _one_hot(self, df: pd.DataFrame, spec: CategoricalField) -> pd.DataFrame:
        values = df[spec.name]
        if spec.has_unknown:
            values = values.where(values.isin(spec.categories), UNKNOWN)

        categorical = pd.Categorical(values, categories=list(spec.categories))
        unmapped = int(pd.isna(categorical).sum())
        if unmapped:
            raise ValueError(f"{unmapped} '{spec.name}' values are outside the declared categories")

        dummies = pd.get_dummies(
            pd.Series(categorical, index=df.index),
            prefix=spec.name,
            prefix_sep="=",
            dtype=np.uint8,
        )
        return dummies
