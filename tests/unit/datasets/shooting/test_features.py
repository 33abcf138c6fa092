"""
Unit tests for the shooting feature deriver and feature layout.
"""

from datetime import time

import numpy as np
import pandas as pd
import pytest

from src.datasets.shooting.features import FeatureLayout, ShootingFeatureBuilder, derive_features
from src.datasets.shooting.schema import CLASSIFICATION_FIELDS, SCHEMA_VERSION


@pytest.fixture
def records():
    """Two canonical records with known calendar values."""
    return pd.DataFrame(
        {
            "incident_key": ["1", "2"],
            "occur_date": pd.to_datetime(["2021-01-15", "2006-07-04"]),
            "occur_time": [time(14, 30), time(0, 5)],
            "borough": ["BRONX", "UNKNOWN"],
            "precinct": pd.array([44, pd.NA], dtype="Int64"),
            "is_fatal": [False, True],
            "vic_age_group": ["25-44", "<18"],
            "vic_sex": ["M", "F"],
            "vic_race": ["BLACK", "HISPANIC"],
            "latitude": [40.83, np.nan],
            "longitude": [-73.91, np.nan],
        }
    )


class TestDeriveFeatures:
    """Test cases for derive_features."""

    def test_calendar_features(self, records):
        """Test hour, year, month name and weekday name derivation."""
        enriched = derive_features(records)

        assert enriched["occur_hour"].tolist() == [14, 0]
        assert enriched["occur_year"].tolist() == [2021, 2006]
        assert enriched["occur_month"].tolist() == ["January", "July"]
        assert enriched["occur_weekday"].tolist() == ["Friday", "Tuesday"]

    def test_schema_superset(self, canonical_records):
        """Test every source column survives unchanged."""
        enriched = derive_features(canonical_records)

        assert set(canonical_records.columns) <= set(enriched.columns)
        for col in canonical_records.columns:
            pd.testing.assert_series_equal(enriched[col], canonical_records[col])

    def test_input_is_not_mutated(self, records):
        """Test derivation is pure."""
        original = records.copy(deep=True)

        derive_features(records)

        pd.testing.assert_frame_equal(records, original)


class TestShootingFeatureBuilder:
    """Test cases for ShootingFeatureBuilder class."""

    @pytest.fixture
    def builder(self, test_config):
        """Create a ShootingFeatureBuilder instance."""
        return ShootingFeatureBuilder(test_config)

    def test_get_dataset_name(self, builder):
        """Test dataset name is correct."""
        assert builder.get_dataset_name() == "shooting"

    def test_get_entity_key(self, builder):
        """Test entity key is the incident identifier."""
        assert builder.get_entity_key() == "incident_key"

    def test_run_success(self, builder, canonical_records):
        """Test successful feature build run."""
        result = builder.run(canonical_records, execution_date="2024-01-15")

        assert result.success
        assert result.rows_input == len(canonical_records)
        assert result.rows_output == len(canonical_records)
        assert result.features_computed == 4
        assert result.feature_stats["occur_hour"]["min"] >= 0
        assert result.feature_stats["occur_hour"]["max"] <= 23

    def test_get_data(self, builder, canonical_records):
        """Test built features are retrievable."""
        builder.run(canonical_records, execution_date="2024-01-15")
        df = builder.get_data()

        assert {"occur_hour", "occur_year", "occur_month", "occur_weekday"} <= set(df.columns)

    def test_run_failure_returns_result(self, builder, canonical_records):
        """Test missing source columns produce a failed result."""
        result = builder.run(
            canonical_records.drop(columns=["occur_time"]), execution_date="2024-01-15"
        )

        assert not result.success
        assert builder.get_data() is None

    def test_builder_that_drops_columns_fails(self, builder, canonical_records, mocker):
        """Test a build that removes a source column is rejected."""
        mocker.patch.object(
            builder,
            "build_features",
            side_effect=lambda df: derive_features(df).drop(columns=["latitude"]),
        )

        result = builder.run(canonical_records, execution_date="2024-01-15")

        assert not result.success
        assert "dropped source columns" in result.error_message

    def test_builder_that_rewrites_keys_fails(self, builder, canonical_records, mocker):
        """Test a build that changes entity keys is rejected."""
        def rewrite_keys(df):
            enriched = derive_features(df)
            enriched["incident_key"] = "X"
            return enriched

        mocker.patch.object(builder, "build_features", side_effect=rewrite_keys)

        result = builder.run(canonical_records, execution_date="2024-01-15")

        assert not result.success
        assert "entity keys" in result.error_message


class TestFeatureLayout:
    """Test cases for FeatureLayout class."""

    @pytest.fixture
    def layout(self, test_config):
        """Create a FeatureLayout instance."""
        return FeatureLayout(test_config)

    def test_feature_names_follow_schema(self, layout):
        """Test the layout is derived from the declared categories."""
        names = layout.feature_names
        expected_one_hot = sum(len(f.categories) for f in CLASSIFICATION_FIELDS)

        assert len(names) == expected_one_hot + 1
        assert names[0] == "borough=BRONX"
        assert "occur_hour=23" in names
        assert "vic_race=UNKNOWN" in names
        assert names[-1] == FeatureLayout.YEAR_COLUMN
        assert layout.version == SCHEMA_VERSION

    def test_excluded_fields(self, layout):
        """Test identifier, coordinates, precinct and timestamps are not features."""
        names = set(layout.feature_names)

        for excluded in ("incident_key", "latitude", "longitude", "precinct", "occur_date"):
            assert excluded not in names

    def test_encode(self, layout, records):
        """Test one-hot encoding, year offset and label."""
        rows = layout.encode(derive_features(records))

        assert list(rows.columns) == layout.feature_names + ["is_fatal"]
        assert rows.loc[0, "borough=BRONX"] == 1
        assert rows.loc[0, "borough=UNKNOWN"] == 0
        assert rows.loc[1, "borough=UNKNOWN"] == 1
        assert rows.loc[0, "occur_hour=14"] == 1
        assert rows.loc[1, "occur_month=July"] == 1
        assert rows.loc[0, FeatureLayout.YEAR_COLUMN] == 15.0
        assert rows.loc[1, FeatureLayout.YEAR_COLUMN] == 0.0
        assert rows["is_fatal"].tolist() == [0, 1]

    def test_one_hot_blocks_sum_to_one(self, layout, canonical_records):
        """Test exactly one category is set per field."""
        rows = layout.encode(derive_features(canonical_records))

        for field in CLASSIFICATION_FIELDS:
            block = rows[field.column_names()]
            assert (block.sum(axis=1) == 1).all()

    def test_absent_categories_still_have_columns(self, layout, records):
        """Test categories missing from the data keep a zero column."""
        rows = layout.encode(derive_features(records))

        assert "borough=STATEN ISLAND" in rows.columns
        assert rows["borough=STATEN ISLAND"].sum() == 0

    def test_unlisted_value_clamps_to_unknown(self, layout, records):
        """Test unexpected values in UNKNOWN-capable fields encode as UNKNOWN."""
        enriched = derive_features(records)
        enriched.loc[0, "vic_sex"] = "X"

        rows = layout.encode(enriched)

        assert rows.loc[0, "vic_sex=UNKNOWN"] == 1
