"""
NYC Shooting Insights - Shooting Record Normalizer

Turns raw NYPD shooting incident rows into the canonical record set.

Transformations:
    - Column renaming to canonical names
    - Rejection of rows without an identifier
    - Deduplication by incident key (first occurrence wins)
    - Date/time/outcome parsing (failures collected as MalformedRecord)
    - Sentinel resolution and categorical recoding
    - Coordinate bounds validation

Usage:
    from src.datasets.shooting.preprocess import ShootingPreprocessor

    preprocessor = ShootingPreprocessor()
    result = preprocessor.run(raw_df, execution_date="2024-01-15")
    records = preprocessor.get_data()
"""

from __future__ import annotations

import logging
from datetime import date, time

import pandas as pd

from src.datasets.base import BasePreprocessor, MalformedRecord
from src.datasets.shooting.schema import RECORD_FIELDS, UNKNOWN
from src.shared.config import Settings
from src.shared.errors import NormalizationError

logger = logging.getLogger(__name__)


class ShootingPreprocessor(BasePreprocessor):
    """
    Record normalizer for NYPD shooting incident data.

    Row-level parse failures never abort the batch: the offending rows are
    skipped and reported in ``PreprocessingResult.malformed_records``.
    """

    COLUMN_MAPPINGS = {
        "INCIDENT_KEY": "incident_key",
        "OCCUR_DATE": "occur_date",
        "OCCUR_TIME": "occur_time",
        "BORO": "borough",
        "PRECINCT": "precinct",
        "STATISTICAL_MURDER_FLAG": "is_fatal",
        "VIC_AGE_GROUP": "vic_age_group",
        "VIC_SEX": "vic_sex",
        "VIC_RACE": "vic_race",
        "Latitude": "latitude",
        "Longitude": "longitude",
    }

    DTYPE_MAPPINGS = {
        "incident_key": "string",
        "precinct": "int",
        "latitude": "float",
        "longitude": "float",
    }

    REQUIRED_COLUMNS = [
        "incident_key",
        "occur_date",
        "occur_time",
        "borough",
        "is_fatal",
        "vic_age_group",
        "vic_sex",
        "vic_race",
    ]

    OUTPUT_COLUMNS = [
        "incident_key",
        "occur_date",
        "occur_time",
        "borough",
        "precinct",
        "is_fatal",
        "vic_age_group",
        "vic_sex",
        "vic_race",
        "latitude",
        "longitude",
    ]

    def __init__(self, config: Settings | None = None):
        """Initialize shooting preprocessor."""
        super().__init__(config)
        self.rules = self.config.normalization

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "shooting"

    def get_required_columns(self) -> list[str]:
        """Return required input columns (after renaming)."""
        return self.REQUIRED_COLUMNS

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply shooting-specific transformations.

        Args:
            df: Raw DataFrame with renamed columns

        Returns:
            Canonical record set
        """
        df = self._reject_missing_keys(df)
        df = self._parse_occur_date(df)
        df = self._parse_occur_time(df)
        df = self._parse_outcome_flag(df)
        # First valid occurrence per key wins
        df = self.drop_duplicates(df, subset=["incident_key"], keep="first")
        df = self._resolve_categories(df)
        df = self._ensure_optional_columns(df)
        df = self.nullify_out_of_bounds(df)
        df = self._select_output_columns(df)
        return df

    def _reject_missing_keys(self, df: pd.DataFrame) -> pd.DataFrame:
        """Identifiers are required for deduplication."""
        keys = df["incident_key"]
        missing = keys.isna() | (keys == "")
        return self.reject_rows(
            df, missing.fillna(True), "incident_key", keys, "missing identifier", "incident_key"
        )

    @staticmethod
    def _is_blank(raw: pd.Series) -> pd.Series:
        """Missing values and empty strings."""
        if pd.api.types.is_datetime64_any_dtype(raw):
            return raw.isna()
        blank = raw.map(lambda v: isinstance(v, str) and not v.strip())
        return (raw.isna() | blank).astype(bool)

    def _parse_occur_date(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse occurrence dates; rows lacking one are rejected, never defaulted."""
        raw = df["occur_date"]

        if pd.api.types.is_datetime64_any_dtype(raw):
            parsed = raw.dt.tz_localize(None) if raw.dt.tz is not None else raw
        else:
            parsed = pd.to_datetime(
                raw.astype("string").str.strip().astype(object),
                format=self.rules.date_format,
                errors="coerce",
            )

        missing = self._is_blank(raw)
        df = self.reject_rows(df, missing, "occur_date", raw, "missing date", "incident_key")
        df = self.reject_rows(
            df, parsed.isna() & ~missing, "occur_date", raw, "unparseable date", "incident_key"
        )

        df["occur_date"] = parsed.loc[df.index].dt.normalize()
        self.log_transformation("parse_occur_date")
        return df

    def _parse_occur_time(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse time-of-day values into ``datetime.time`` objects."""
        raw = df["occur_time"]
        already_parsed = raw.map(lambda v: isinstance(v, time)).astype(bool)

        text = raw.where(~already_parsed).astype("string").str.strip().astype(object)
        parsed = pd.to_datetime(text, format=self.rules.time_format, errors="coerce")
        times = pd.Series(
            [v.time() if not pd.isna(v) else None for v in parsed],
            index=raw.index,
            dtype=object,
        )
        times = times.where(~already_parsed, raw)

        missing = self._is_blank(raw)
        df = self.reject_rows(df, missing, "occur_time", raw, "missing time", "incident_key")
        df = self.reject_rows(
            df, times.isna() & ~missing, "occur_time", raw, "unparseable time", "incident_key"
        )

        df["occur_time"] = times.loc[df.index]
        self.log_transformation("parse_occur_time")
        return df

    def _parse_outcome_flag(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse the fatal/non-fatal flag from its textual tokens."""
        raw = df["is_fatal"]
        tokens = raw.astype("string").str.strip().str.upper()

        truthy = tokens.isin(self.rules.truthy_tokens).fillna(False).astype(bool)
        falsy = tokens.isin(self.rules.falsy_tokens).fillna(False).astype(bool)

        df = self.reject_rows(
            df, ~(truthy | falsy), "is_fatal", raw, "unrecognized outcome flag", "incident_key"
        )
        df["is_fatal"] = truthy.loc[df.index]
        self.log_transformation("parse_outcome_flag")
        return df

    def _resolve_categories(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Clean every enumerated field against the category schema.

        Order matters: sentinel tokens resolve to UNKNOWN first, then the recode
        map collapses near-duplicate labels, then anything still outside the
        vocabulary resolves to UNKNOWN.
        """
        for spec in RECORD_FIELDS:
            col = spec.name
            values = df[col].astype("string").str.strip().str.upper()

            sentinels = {s.upper() for s in self.rules.sentinels.get(col, [])}
            is_sentinel = (values.isna() | values.isin(sentinels)).astype(bool)
            self.log_substitutions(
                col, int((is_sentinel & values.ne(UNKNOWN).fillna(True)).sum())
            )
            values = values.mask(is_sentinel, UNKNOWN)

            recode = self.rules.recodes.get(col)
            if recode:
                recoded = values.isin(list(recode)).astype(bool)
                self.log_substitutions(f"{col}_recoded", int(recoded.sum()))
                values = values.replace(recode)

            out_of_vocabulary = (~values.isin(list(spec.categories))).astype(bool)
            if out_of_vocabulary.any():
                logger.warning(
                    f"Resolved {int(out_of_vocabulary.sum())} out-of-vocabulary "
                    f"'{col}' values to {UNKNOWN}",
                    extra={"column": col, "values": sorted(set(values[out_of_vocabulary]))},
                )
                self.log_substitutions(f"{col}_out_of_vocabulary", int(out_of_vocabulary.sum()))
            values = values.mask(out_of_vocabulary, UNKNOWN)

            df[col] = values.astype(object)

        self.log_transformation("resolve_categories")
        return df

    def _ensure_optional_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Optional fields are always present in the canonical schema."""
        if "precinct" not in df.columns:
            df["precinct"] = pd.Series(pd.NA, index=df.index, dtype="Int64")
        for col in ("latitude", "longitude"):
            if col not in df.columns:
                df[col] = float("nan")
        return df

    def _select_output_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Select and order output columns."""
        df = df[self.OUTPUT_COLUMNS].copy()
        self.log_transformation("select_output_columns")
        return df


# =============================================================================
# Convenience Functions
# =============================================================================


def normalize_incidents(
    df: pd.DataFrame,
    config: Settings | None = None,
    execution_date: str | None = None,
) -> tuple[pd.DataFrame, int, list[MalformedRecord]]:
    """
    Normalize raw shooting rows.

    Returns:
        (canonical records, duplicates removed, malformed row manifest)

    Raises:
        NormalizationError: If the batch as a whole cannot be normalized
    """
    preprocessor = ShootingPreprocessor(config)
    result = preprocessor.run(df, execution_date or date.today().isoformat())

    if not result.success:
        raise NormalizationError(result)

    return preprocessor.get_data(), result.duplicates_removed, result.malformed_records
