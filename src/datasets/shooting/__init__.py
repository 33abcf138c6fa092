"""
NYC Shooting Insights - Shooting Dataset

NYPD shooting incident records, from raw export rows to classification
feature rows and monthly count series.

Components:
    - ShootingPreprocessor: Normalizes raw rows into canonical records
    - ShootingFeatureBuilder: Appends calendar features
    - FeatureLayout: Encodes enriched records into fixed feature rows
    - aggregate_counts: Buckets records into contiguous count series

Data Source:
    NYPD Shooting Incident Data (Historic)
    https://data.cityofnewyork.us/Public-Safety/NYPD-Shooting-Incident-Data-Historic-/833y-fsy8

Usage:
    from src.datasets.shooting import (
        FeatureLayout,
        ShootingPreprocessor,
        aggregate_counts,
        derive_features,
    )

    preprocessor = ShootingPreprocessor()
    result = preprocessor.run(raw_df, execution_date="2024-01-15")
    records = preprocessor.get_data()

    enriched = derive_features(records)
    rows = FeatureLayout().encode(enriched)
    series = aggregate_counts(enriched, grain="month", outcome_filter="positive_only")
"""

from src.datasets.shooting.aggregate import (
    OutcomeFilter,
    TimeGrain,
    aggregate_counts,
    compute_borough_rates,
)
from src.datasets.shooting.features import FeatureLayout, ShootingFeatureBuilder, derive_features
from src.datasets.shooting.preprocess import ShootingPreprocessor, normalize_incidents

__all__ = [
    "ShootingPreprocessor",
    "ShootingFeatureBuilder",
    "FeatureLayout",
    "OutcomeFilter",
    "TimeGrain",
    "normalize_incidents",
    "derive_features",
    "aggregate_counts",
    "compute_borough_rates",
]
