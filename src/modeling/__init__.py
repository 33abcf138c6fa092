"""
NYC Shooting Insights - Modeling

Time-series forecasting of monthly outcome counts and supervised
classification of the per-incident outcome.

Usage:
    from src.modeling import ClassifierTrainer, Forecaster, ModelKind

    forecast = Forecaster().forecast(series)
    report = ClassifierTrainer().train_and_evaluate(rows, model_kind=ModelKind.BAGGED_TREES)
"""

from src.modeling.balancer import ClassBalancer, balance_classes
from src.modeling.classifier import (
    ClassificationReport,
    ClassifierTrainer,
    ModelArtifact,
    ModelKind,
    train_and_evaluate,
)
from src.modeling.forecaster import (
    DecompositionResult,
    Forecaster,
    ForecastResult,
    PortmanteauResult,
    decompose_series,
    forecast_counts,
)
from src.modeling.metrics import ConfusionMatrix, confusion_from_predictions

__all__ = [
    "ClassBalancer",
    "ClassifierTrainer",
    "ClassificationReport",
    "ConfusionMatrix",
    "DecompositionResult",
    "ForecastResult",
    "Forecaster",
    "ModelArtifact",
    "ModelKind",
    "PortmanteauResult",
    "balance_classes",
    "confusion_from_predictions",
    "decompose_series",
    "forecast_counts",
    "train_and_evaluate",
]
