"""
NYC Shooting Insights - Temporal Aggregator

Buckets shooting records into contiguous count series for the forecaster, and
joins borough counts with population for per-capita rates.

Usage:
    from src.datasets.shooting.aggregate import OutcomeFilter, aggregate_counts

    series = aggregate_counts(enriched, grain="month", outcome_filter=OutcomeFilter.POSITIVE_ONLY)
"""

from __future__ import annotations

import logging
from enum import StrEnum

import pandas as pd

from src.datasets.shooting.schema import UNKNOWN

logger = logging.getLogger(__name__)


class OutcomeFilter(StrEnum):
    """Which records count toward a bucket."""

    ALL = "all"
    POSITIVE_ONLY = "positive_only"
    NEGATIVE_ONLY = "negative_only"


class TimeGrain(StrEnum):
    """Truncation unit for bucketing occurrence dates."""

    MONTH = "month"
    YEAR = "year"

    @property
    def period_freq(self) -> str:
        return {"month": "M", "year": "Y"}[self.value]

    @property
    def bucket_freq(self) -> str:
        return {"month": "MS", "year": "YS"}[self.value]


def _filter_outcome(
    df: pd.DataFrame, outcome_filter: OutcomeFilter, outcome_col: str
) -> pd.DataFrame:
    if outcome_filter == OutcomeFilter.ALL:
        return df
    flags = df[outcome_col].astype(bool)
    if outcome_filter == OutcomeFilter.POSITIVE_ONLY:
        return df[flags]
    return df[~flags]


def aggregate_counts(
    df: pd.DataFrame,
    grain: TimeGrain | str = TimeGrain.MONTH,
    outcome_filter: OutcomeFilter | str = OutcomeFilter.ALL,
    date_col: str = "occur_date",
    outcome_col: str = "is_fatal",
) -> pd.Series:
    """
    Count records per time bucket.

    The bucket range spans the earliest to latest occurrence date over all
    input records (before the outcome filter is applied), and every bucket in
    that range is present, with 0 where no record matched.

    Args:
        df: Enriched (or canonical) records
        grain: Bucket truncation unit
        outcome_filter: Which records to count
        date_col: Occurrence date column
        outcome_col: Binary outcome column

    Returns:
        Series named ``incident_count`` indexed by bucket start (ascending,
        with ``freq`` set)
    """
    grain = TimeGrain(grain)
    outcome_filter = OutcomeFilter(outcome_filter)

    if df.empty:
        empty_index = pd.DatetimeIndex([], name="bucket_start")
        return pd.Series([], index=empty_index, dtype="int64", name="incident_count")

    dates = pd.to_datetime(df[date_col])
    buckets = dates.dt.to_period(grain.period_freq).dt.to_timestamp()

    full_range = pd.date_range(
        buckets.min(), buckets.max(), freq=grain.bucket_freq, name="bucket_start"
    )

    selected = _filter_outcome(df, outcome_filter, outcome_col)
    observed = buckets.loc[selected.index].value_counts()
    counts = pd.Series(
        observed.reindex(full_range, fill_value=0).to_numpy(dtype="int64"),
        index=full_range,
        name="incident_count",
    )

    logger.info(
        f"Aggregated {len(selected)} of {len(df)} records into {len(counts)} "
        f"{grain.value} buckets ({outcome_filter.value})",
        extra={
            "grain": grain.value,
            "outcome_filter": outcome_filter.value,
            "buckets": len(counts),
            "zero_buckets": int((counts == 0).sum()),
        },
    )
    return counts


def compute_borough_rates(
    df: pd.DataFrame,
    population: pd.DataFrame,
    outcome_filter: OutcomeFilter | str = OutcomeFilter.ALL,
    outcome_col: str = "is_fatal",
    per: int = 100_000,
) -> pd.DataFrame:
    """
    Incidents per ``per`` residents for each borough.

    Args:
        df: Canonical records (borough already cleaned)
        population: Table with ``Borough`` and ``Population`` columns
            (column names matched case-insensitively)
        outcome_filter: Which records to count
        outcome_col: Binary outcome column
        per: Rate denominator

    Returns:
        DataFrame with borough, incidents, population, rate columns, one row
        per borough in the population table
    """
    outcome_filter = OutcomeFilter(outcome_filter)

    pop = population.rename(columns=str.lower)
    missing = {"borough", "population"} - set(pop.columns)
    if missing:
        raise ValueError(f"Population table is missing columns: {sorted(missing)}")

    pop = pop[["borough", "population"]].copy()
    pop["borough"] = pop["borough"].astype(str).str.strip().str.upper()
    pop["population"] = pd.to_numeric(pop["population"], errors="raise")

    selected = _filter_outcome(df, outcome_filter, outcome_col)
    unknown_count = int((selected["borough"] == UNKNOWN).sum())
    if unknown_count:
        logger.info(f"Excluding {unknown_count} records with unknown borough from rates")

    counts = (
        selected.loc[selected["borough"] != UNKNOWN, "borough"]
        .value_counts()
        .rename("incidents")
    )

    rates = pop.merge(counts, left_on="borough", right_index=True, how="left")
    rates["incidents"] = rates["incidents"].fillna(0).astype("int64")
    rates["rate"] = rates["incidents"] / rates["population"] * per

    return rates[["borough", "incidents", "population", "rate"]].reset_index(drop=True)
