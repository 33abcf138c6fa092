"""
NYC Shooting Insights - Base Feature Builder

Abstract base class for dataset feature builders. Provides a consistent
interface for feature derivation with:
- Declared feature definitions
- Source preservation checks (rows, columns, entity keys)
- Feature statistics and range warnings

Builders only append columns: every source column survives unchanged.

Usage:
    class ShootingFeatureBuilder(BaseFeatureBuilder):
        def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
        def get_feature_definitions(self) -> list[FeatureDefinition]:
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from src.shared.config import Settings, get_config

logger = logging.getLogger(__name__)


@dataclass
class FeatureDefinition:
    """Definition of a derived feature."""

    name: str
    description: str
    dtype: str
    source_columns: list[str]
    nullable: bool = False
    min_value: float | None = None
    max_value: float | None = None


@dataclass
class FeatureBuildResult:
    """Result of a feature building operation."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    features_computed: int
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    feature_stats: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "features_computed": self.features_computed,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "feature_stats": self.feature_stats,
        }


class BaseFeatureBuilder(ABC):
    """
    Abstract base class for feature building.

    Subclasses must implement:
    - build_features(): Derive features from canonical records
    - get_dataset_name(): Return the dataset name
    - get_feature_definitions(): Return list of feature definitions
    - get_entity_key(): Return the entity key column(s)
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the feature builder.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self._feature_stats: dict[str, dict[str, Any]] = {}

    @abstractmethod
    def build_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Build features from canonical records.

        Args:
            df: Canonical DataFrame

        Returns:
            DataFrame with derived feature columns appended
        """
        pass

    @abstractmethod
    def get_dataset_name(self) -> str:
        """Get the dataset name."""
        pass

    @abstractmethod
    def get_feature_definitions(self) -> list[FeatureDefinition]:
        """
        Get list of feature definitions.

        Returns:
            List of FeatureDefinition objects describing each derived feature
        """
        pass

    @abstractmethod
    def get_entity_key(self) -> str | list[str]:
        """
        Get the entity key column(s).

        Returns:
            Column name or list of column names
        """
        pass

    def run(
        self,
        df: pd.DataFrame,
        execution_date: str,
    ) -> FeatureBuildResult:
        """
        Run the feature building pipeline.

        Args:
            df: Canonical DataFrame
            execution_date: Execution date in YYYY-MM-DD format

        Returns:
            FeatureBuildResult with details about the feature building
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        rows_input = len(df)

        logger.info(
            f"Starting feature building for {dataset_name}",
            extra={
                "dataset": dataset_name,
                "execution_date": execution_date,
                "rows_input": rows_input,
            },
        )

        try:
            self._feature_stats = {}

            features_df = self.build_features(df)

            self._check_source_preserved(df, features_df)
            self._compute_feature_stats(features_df)
            self._validate_features(features_df)

            duration = time.time() - start_time

            result = FeatureBuildResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=len(features_df),
                features_computed=len(self.get_feature_definitions()),
                duration_seconds=duration,
                success=True,
                feature_stats=self._feature_stats,
            )

            logger.info(
                f"Feature building complete for {dataset_name}: "
                f"{len(features_df)} rows, {result.features_computed} features",
                extra=result.to_dict(),
            )

            self._data = features_df

            return result

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Feature building failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=True,
            )
            self._data = None

            return FeatureBuildResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=0,
                features_computed=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
            )

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently built features."""
        return getattr(self, "_data", None)

    def _check_source_preserved(self, source: pd.DataFrame, built: pd.DataFrame) -> None:
        """Builders only append: rows, source columns and entity keys must survive."""
        dropped = [c for c in source.columns if c not in built.columns]
        if dropped:
            raise ValueError(f"Feature building dropped source columns: {dropped}")
        if len(built) != len(source):
            raise ValueError(f"Feature building changed row count: {len(source)} -> {len(built)}")

        key = self.get_entity_key()
        keys = [key] if isinstance(key, str) else list(key)
        if not built[keys].equals(source[keys]):
            raise ValueError(f"Feature building changed entity keys {keys}")

    def _compute_feature_stats(self, df: pd.DataFrame) -> None:
        """Compute statistics for each derived feature."""
        for defn in self.get_feature_definitions():
            if defn.name not in df.columns:
                continue
            col = df[defn.name]
            stats: dict[str, Any] = {
                "dtype": str(col.dtype),
                "null_count": int(col.isna().sum()),
                "null_ratio": float(col.isna().mean()) if len(col) else 0.0,
            }

            if pd.api.types.is_numeric_dtype(col):
                non_null = col.dropna()
                if len(non_null) > 0:
                    stats.update(
                        {
                            "mean": float(non_null.mean()),
                            "min": float(non_null.min()),
                            "max": float(non_null.max()),
                        }
                    )
            else:
                stats["unique_count"] = int(col.nunique())

            self._feature_stats[defn.name] = stats

    def _validate_features(self, df: pd.DataFrame) -> None:
        """Validate derived features against their definitions."""
        for defn in self.get_feature_definitions():
            if defn.name not in df.columns:
                raise ValueError(f"Declared feature '{defn.name}' was not built")

            col = df[defn.name]

            if not defn.nullable and col.isna().any():
                logger.warning(f"Feature '{defn.name}' has null values but is marked as non-nullable")

            if pd.api.types.is_numeric_dtype(col):
                if defn.min_value is not None and (col < defn.min_value).any():
                    logger.warning(f"Feature '{defn.name}' has values below minimum {defn.min_value}")
                if defn.max_value is not None and (col > defn.max_value).any():
                    logger.warning(f"Feature '{defn.name}' has values above maximum {defn.max_value}")
