"""
NYC Shooting Insights - Base Preprocessor

Abstract base class for dataset preprocessors. Provides a consistent interface
for record normalization with:
- Column standardization
- Data type conversion
- Identity-key deduplication
- Row-level failure collection (malformed record manifest)

Usage:
    class ShootingPreprocessor(BasePreprocessor):
        def transform(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
        def get_column_mappings(self) -> dict[str, str]:
            return {"INCIDENT_KEY": "incident_key"}
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

import pandas as pd

from src.shared.config import Settings, get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MalformedRecord:
    """A raw row that failed to parse and was skipped."""

    row_number: int
    incident_key: str | None
    field: str
    raw_value: Any
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PreprocessingResult:
    """Result of a preprocessing operation."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    rows_dropped: int
    columns_input: int
    columns_output: int
    duplicates_removed: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    transformations_applied: list[str] = field(default_factory=list)
    drop_reasons: dict[str, int] = field(default_factory=dict)
    value_substitutions: dict[str, int] = field(default_factory=dict)
    malformed_records: list[MalformedRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "rows_dropped": self.rows_dropped,
            "columns_input": self.columns_input,
            "columns_output": self.columns_output,
            "duplicates_removed": self.duplicates_removed,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "transformations_applied": self.transformations_applied,
            "drop_reasons": self.drop_reasons,
            "value_substitutions": self.value_substitutions,
            "malformed_count": len(self.malformed_records),
        }


class BasePreprocessor(ABC):
    """
    Abstract base class for dataset preprocessing.

    Subclasses must implement:
    - transform(): Apply dataset-specific transformations
    - get_dataset_name(): Return the dataset name
    - get_required_columns(): Return list of required output columns
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the preprocessor.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self._transformations: list[str] = []
        self._drop_reasons: dict[str, int] = {}
        self._substitutions: dict[str, int] = {}
        self._malformed: list[MalformedRecord] = []
        self._duplicates_removed = 0

    @abstractmethod
    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply dataset-specific transformations.

        Args:
            df: Raw DataFrame with renamed columns

        Returns:
            Transformed DataFrame
        """
        pass

    @abstractmethod
    def get_dataset_name(self) -> str:
        """
        Get the dataset name.

        Returns:
            Dataset name (e.g., "shooting")
        """
        pass

    @abstractmethod
    def get_required_columns(self) -> list[str]:
        """
        Get list of required columns in the output.

        Returns:
            List of column names that must be present after preprocessing
        """
        pass

    def get_column_mappings(self) -> dict[str, str]:
        """
        Get column name mappings (old -> new).

        Override this method to rename columns during preprocessing.
        """
        return {}

    def get_dtype_mappings(self) -> dict[str, str]:
        """
        Get data type mappings for columns.

        Override this method to specify target data types.
        """
        return {}

    def run(
        self,
        df: pd.DataFrame,
        execution_date: str,
    ) -> PreprocessingResult:
        """
        Run the preprocessing pipeline.

        The input DataFrame is never modified.

        Args:
            df: Raw DataFrame to preprocess
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            PreprocessingResult with details about the preprocessing
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        rows_input = len(df)
        columns_input = len(df.columns)

        logger.info(
            f"Starting preprocessing for {dataset_name}",
            extra={
                "dataset": dataset_name,
                "execution_date": execution_date,
                "rows_input": rows_input,
            },
        )

        try:
            # Reset tracking
            self._transformations = []
            self._drop_reasons = {}
            self._substitutions = {}
            self._malformed = []
            self._duplicates_removed = 0

            df = df.reset_index(drop=True)
            df = self._apply_column_mappings(df)
            self._validate_required_columns(df)
            df = self._apply_dtype_conversions(df)
            df = self.transform(df)

            duration = time.time() - start_time
            rows_output = len(df)

            result = PreprocessingResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=rows_output,
                rows_dropped=rows_input - rows_output,
                columns_input=columns_input,
                columns_output=len(df.columns),
                duplicates_removed=self._duplicates_removed,
                duration_seconds=duration,
                success=True,
                transformations_applied=self._transformations,
                drop_reasons=self._drop_reasons,
                value_substitutions=self._substitutions,
                malformed_records=self._malformed,
            )

            logger.info(
                f"Preprocessing complete for {dataset_name}: {rows_input} -> {rows_output} rows "
                f"({self._duplicates_removed} duplicates, {len(self._malformed)} malformed)",
                extra=result.to_dict(),
            )

            self._data = df

            return result

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Preprocessing failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=True,
            )
            self._data = None

            return PreprocessingResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=0,
                rows_dropped=rows_input,
                columns_input=columns_input,
                columns_output=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
            )

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently processed data."""
        return getattr(self, "_data", None)

    def _apply_column_mappings(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply column name mappings."""
        mappings = {k: v for k, v in self.get_column_mappings().items() if k in df.columns}
        if mappings:
            df = df.rename(columns=mappings)
            self._transformations.append(f"renamed_columns: {list(mappings.keys())}")
        return df

    def _apply_dtype_conversions(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply coercing data type conversions (invalid values become missing)."""
        for col, dtype in self.get_dtype_mappings().items():
            if col not in df.columns:
                continue
            if dtype == "int":
                df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
            elif dtype == "float":
                df[col] = pd.to_numeric(df[col], errors="coerce").astype("float64")
            elif dtype == "string":
                df[col] = df[col].astype("string").str.strip()
            else:
                df[col] = df[col].astype(dtype)
            self._transformations.append(f"converted_{col}_to_{dtype}")
        return df

    def _validate_required_columns(self, df: pd.DataFrame) -> None:
        """Validate that all required columns are present."""
        required = set(self.get_required_columns())
        missing = required - set(df.columns)

        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")

    def log_transformation(self, name: str) -> None:
        """Log a transformation that was applied."""
        self._transformations.append(name)

    def log_dropped_rows(self, reason: str, count: int) -> None:
        """Log rows that were dropped."""
        self._drop_reasons[reason] = self._drop_reasons.get(reason, 0) + count

    def log_substitutions(self, column: str, count: int) -> None:
        """Log values replaced in place (rows are kept)."""
        if count > 0:
            self._substitutions[column] = self._substitutions.get(column, 0) + count

    # ==========================================================================
    # Common Preprocessing Utilities
    # ==========================================================================

    def reject_rows(
        self,
        df: pd.DataFrame,
        mask: pd.Series,
        field_name: str,
        raw_values: pd.Series,
        reason: str,
        key_col: str,
    ) -> pd.DataFrame:
        """
        Remove rows flagged by ``mask`` and record each one as a MalformedRecord.

        ``mask`` is aligned on the index. Row numbers are positions in the original input.
        """
        mask = mask.reindex(df.index, fill_value=False).astype(bool)
        rejected = df.index[mask.to_numpy()]
        for idx in rejected:
            key = df.at[idx, key_col]
            self._malformed.append(
                MalformedRecord(
                    row_number=int(idx),
                    incident_key=None if pd.isna(key) else str(key),
                    field=field_name,
                    raw_value=None if pd.isna(raw_values.at[idx]) else raw_values.at[idx],
                    reason=reason,
                )
            )

        if len(rejected) > 0:
            self.log_dropped_rows(f"malformed_{field_name}", len(rejected))
            logger.warning(f"Rejected {len(rejected)} rows with {reason} in '{field_name}'")

        return df[~mask.to_numpy()].copy()

    def drop_duplicates(
        self,
        df: pd.DataFrame,
        subset: list[str] | None = None,
        keep: str = "first",
    ) -> pd.DataFrame:
        """Drop duplicate rows, keeping the first occurrence in input order."""
        before_count = len(df)
        df = df.drop_duplicates(subset=subset, keep=keep)
        dropped = before_count - len(df)

        self._duplicates_removed += dropped
        if dropped > 0:
            self.log_dropped_rows("duplicates", dropped)
            self.log_transformation("drop_duplicates")
            logger.info(f"Removed {dropped} duplicate rows by {subset}")

        return df

    def nullify_out_of_bounds(
        self,
        df: pd.DataFrame,
        lat_col: str = "latitude",
        lon_col: str = "longitude",
    ) -> pd.DataFrame:
        """
        Null geographic coordinates that fall outside the configured bounds.

        Records are kept; coordinates are optional.
        """
        bounds = self.config.validation.geo_bounds

        out_of_bounds = (
            (df[lat_col] < bounds.min_lat)
            | (df[lat_col] > bounds.max_lat)
            | (df[lon_col] < bounds.min_lon)
            | (df[lon_col] > bounds.max_lon)
        )
        count = int(out_of_bounds.sum())

        if count > 0:
            logger.warning(f"Found {count} records with coordinates outside bounds")
            df.loc[out_of_bounds, [lat_col, lon_col]] = float("nan")
            self.log_substitutions(lat_col, count)

        self.log_transformation("validate_coordinates")
        return df
