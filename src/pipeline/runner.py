"""
NYC Shooting Insights - Analysis Pipeline

Wires the stages together for one batch of raw shooting incident rows:

    normalize -> derive features -> aggregate -> decompose -> forecast
                                 -> encode -> (balance) train/evaluate per model kind

Forecast-stage errors propagate. Classification errors that are fatal to one
model kind (insufficient data, non-convergence, search timeout) are recorded
and the remaining kinds still run.

Usage:
    from src.pipeline.runner import ShootingAnalysisPipeline

    result = ShootingAnalysisPipeline().run(raw_df, population_df=population)
    print(result.forecast.point_forecast.head())
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pandas as pd

from src.datasets.base import PreprocessingResult
from src.datasets.shooting.aggregate import aggregate_counts, compute_borough_rates
from src.datasets.shooting.features import FeatureLayout, ShootingFeatureBuilder
from src.datasets.shooting.preprocess import ShootingPreprocessor
from src.modeling.classifier import ClassificationReport, ClassifierTrainer, ModelKind
from src.modeling.forecaster import DecompositionResult, Forecaster, ForecastResult
from src.shared.config import Settings, get_config
from src.shared.errors import (
    InsufficientDataError,
    NonConvergentFitError,
    NormalizationError,
    PipelineError,
    SearchTimeoutError,
)

logger = logging.getLogger(__name__)

# Errors that stop one model kind without stopping the run
MODEL_ERRORS = (InsufficientDataError, NonConvergentFitError, SearchTimeoutError)


@dataclass
class AnalysisResult:
    """Everything one pipeline run produced."""

    execution_date: str
    normalization: PreprocessingResult
    records: pd.DataFrame
    enriched: pd.DataFrame
    series: pd.Series
    decomposition: DecompositionResult
    forecast: ForecastResult
    borough_rates: pd.DataFrame | None = None
    classifiers: dict[str, ClassificationReport] = field(default_factory=dict)
    classifier_errors: dict[str, PipelineError] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "execution_date": self.execution_date,
            "normalization": self.normalization.to_dict(),
            "series_points": len(self.series),
            "series_start": str(self.series.index[0].date()) if len(self.series) else None,
            "series_end": str(self.series.index[-1].date()) if len(self.series) else None,
            "decomposition": self.decomposition.to_dict(),
            "forecast": self.forecast.to_dict(),
            "borough_rates": (
                self.borough_rates.to_dict("records") if self.borough_rates is not None else None
            ),
            "classifiers": {kind: r.to_dict() for kind, r in self.classifiers.items()},
            "classifier_errors": {kind: str(e) for kind, e in self.classifier_errors.items()},
            "duration_seconds": self.duration_seconds,
        }


class ShootingAnalysisPipeline:
    """Runs the full forecasting and classification pipeline on raw rows."""

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()

    def run(
        self,
        raw_df: pd.DataFrame,
        population_df: pd.DataFrame | None = None,
        execution_date: str | None = None,
        model_kinds: tuple[ModelKind, ...] = (ModelKind.LOGISTIC, ModelKind.BAGGED_TREES),
    ) -> AnalysisResult:
        """
        Run every stage on a batch of raw rows.

        Args:
            raw_df: Raw incident rows (export column names)
            population_df: Optional borough population table for per-capita rates
            execution_date: Execution date in YYYY-MM-DD format (defaults to today)
            model_kinds: Classifier kinds to train

        Raises:
            NormalizationError: If the batch cannot be normalized
            InvalidSeriesError: If the count series cannot be decomposed/forecast
            NonConvergentFitError: If no forecast order converges
        """
        start_time = time.time()
        execution_date = execution_date or date.today().isoformat()
        forecast_settings = self.config.forecast
        seed = self.config.classification.random_seed

        logger.info(
            f"Starting shooting analysis for {execution_date}",
            extra={"execution_date": execution_date, "rows_input": len(raw_df)},
        )

        # Normalize
        preprocessor = ShootingPreprocessor(self.config)
        normalization = preprocessor.run(raw_df, execution_date)
        if not normalization.success:
            raise NormalizationError(normalization)
        records = preprocessor.get_data()

        # Derive
        builder = ShootingFeatureBuilder(self.config)
        feature_result = builder.run(records, execution_date)
        if not feature_result.success:
            raise RuntimeError(f"Feature derivation failed: {feature_result.error_message}")
        enriched = builder.get_data()

        # Forecast
        series = aggregate_counts(
            enriched, grain="month", outcome_filter=forecast_settings.outcome_filter
        )
        forecaster = Forecaster(self.config)
        decomposition = forecaster.decompose(series)
        forecast = forecaster.forecast(series)

        borough_rates = None
        if population_df is not None:
            borough_rates = compute_borough_rates(
                records, population_df, outcome_filter=forecast_settings.outcome_filter
            )

        # Classify
        rows = FeatureLayout(self.config).encode(enriched)
        trainer = ClassifierTrainer(self.config)
        classifiers: dict[str, ClassificationReport] = {}
        classifier_errors: dict[str, PipelineError] = {}

        for kind in model_kinds:
            kind = ModelKind(kind)
            try:
                classifiers[kind.value] = trainer.train_and_evaluate(
                    rows, seed=seed, model_kind=kind
                )
            except MODEL_ERRORS as e:
                logger.error(
                    f"{kind.value} classifier failed: {e}",
                    extra={"model_kind": kind.value, "stage": e.stage, "context": e.context},
                )
                classifier_errors[kind.value] = e

        result = AnalysisResult(
            execution_date=execution_date,
            normalization=normalization,
            records=records,
            enriched=enriched,
            series=series,
            decomposition=decomposition,
            forecast=forecast,
            borough_rates=borough_rates,
            classifiers=classifiers,
            classifier_errors=classifier_errors,
            duration_seconds=time.time() - start_time,
        )

        logger.info(
            f"Shooting analysis complete: {len(records)} records, "
            f"{len(classifiers)}/{len(model_kinds)} classifiers trained",
            extra=result.to_dict(),
        )
        return result


# =============================================================================
# Convenience Functions
# =============================================================================


def run_shooting_analysis(
    raw_df: pd.DataFrame,
    population_df: pd.DataFrame | None = None,
    execution_date: str | None = None,
    config: Settings | None = None,
) -> AnalysisResult:
    """Run the full shooting analysis pipeline."""
    return ShootingAnalysisPipeline(config).run(
        raw_df, population_df=population_df, execution_date=execution_date
    )
