"""
NYC Shooting Insights - Classifier Trainer/Evaluator

Trains and evaluates a binary outcome classifier on encoded feature rows.

Protocol:
    1. Stratified train/test split with the supplied seed
    2. Training partition balanced by undersampling (test partition untouched)
    3. Stratified k-fold cross-validated sweep over the hyperparameter grid
    4. Best configuration (mean CV accuracy) refit on the full training partition
    5. Single evaluation on the held-out test partition

Model kinds:
    - logistic:      scikit-learn LogisticRegression, grid over C
    - bagged_trees:  scikit-learn RandomForestClassifier, grid over max_features

Usage:
    from src.modeling.classifier import ClassifierTrainer, ModelKind

    trainer = ClassifierTrainer()
    report = trainer.train_and_evaluate(rows, model_kind=ModelKind.LOGISTIC)
    print(report.kappa)
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import ParameterGrid, StratifiedKFold, cross_validate, train_test_split

from src.modeling.balancer import ClassBalancer
from src.modeling.metrics import ConfusionMatrix, confusion_from_predictions
from src.shared.config import Settings, get_config
from src.shared.errors import InsufficientDataError, NonConvergentFitError, SearchTimeoutError

logger = logging.getLogger(__name__)


class ModelKind(StrEnum):
    """Supported classifier kinds."""

    LOGISTIC = "logistic"
    BAGGED_TREES = "bagged_trees"


@dataclass(frozen=True)
class ModelArtifact:
    """A trained estimator and the metadata needed to reproduce it."""

    kind: ModelKind
    estimator: Any
    feature_names: tuple[str, ...]
    n_folds: int
    hyperparameter_grid: dict[str, list[Any]]
    best_params: dict[str, Any]
    cv_accuracy: float
    seed: int
    cv_results: list[dict[str, Any]] = field(default_factory=list)

    def _matrix(self, rows: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.feature_names if c not in rows.columns]
        if missing:
            raise KeyError(f"Feature rows are missing {len(missing)} columns, e.g. {missing[:3]}")
        return rows[list(self.feature_names)]

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        """Predicted 0/1 outcome per row."""
        return np.asarray(self.estimator.predict(self._matrix(rows))).astype(int)

    def predict_proba(self, rows: pd.DataFrame) -> np.ndarray:
        """Positive-class probability per row."""
        probabilities = self.estimator.predict_proba(self._matrix(rows))
        positive = list(self.estimator.classes_).index(1)
        return probabilities[:, positive]


@dataclass(frozen=True)
class ClassificationReport:
    """Held-out evaluation of one trained model."""

    model: ModelArtifact
    confusion_matrix: ConfusionMatrix
    train_rows: int
    test_rows: int

    @property
    def accuracy(self) -> float:
        return self.confusion_matrix.accuracy

    @property
    def sensitivity(self) -> float:
        return self.confusion_matrix.sensitivity

    @property
    def specificity(self) -> float:
        return self.confusion_matrix.specificity

    @property
    def kappa(self) -> float:
        return self.confusion_matrix.kappa

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for logging."""
        return {
            "model_kind": str(self.model.kind),
            "best_params": self.model.best_params,
            "cv_accuracy": self.model.cv_accuracy,
            "n_folds": self.model.n_folds,
            "seed": self.model.seed,
            "train_rows": self.train_rows,
            "test_rows": self.test_rows,
            **self.confusion_matrix.to_dict(),
        }


class ClassifierTrainer:
    """
    Trains a classifier with cross-validated hyperparameter selection and
    evaluates it once on a held-out stratified test partition.

    All randomness (split, balancing, fold assignment, forest bootstrap) is
    derived from the ``seed`` argument; no global random state is touched.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()
        self.settings = self.config.classification
        self.balancer = ClassBalancer(self.config)

    def train_and_evaluate(
        self,
        rows: pd.DataFrame,
        label_field: str | None = None,
        split_ratio: float | None = None,
        seed: int | None = None,
        model_kind: ModelKind | str = ModelKind.LOGISTIC,
        hyperparameters: dict[str, Any] | None = None,
        balance_training: bool | None = None,
    ) -> ClassificationReport:
        """
        Train and evaluate one model kind.

        Args:
            rows: Encoded feature rows including the 0/1 label column
            label_field: Label column (defaults to config)
            split_ratio: Training fraction (defaults to config)
            seed: Seed for every random step (defaults to config)
            model_kind: "logistic" or "bagged_trees"
            hyperparameters: Grid overriding the configured one; scalar values
                are treated as single-value grids
            balance_training: Undersample the training partition (defaults to config)

        Returns:
            ClassificationReport with the trained ModelArtifact

        Raises:
            InsufficientDataError: If a class is too small to split or fold
            NonConvergentFitError: If the logistic fit hits its iteration budget
            SearchTimeoutError: If the grid search exceeds its time budget
        """
        kind = ModelKind(model_kind)
        label_field = label_field or self.config.features.label_field
        split_ratio = self.settings.split_ratio if split_ratio is None else split_ratio
        seed = self.settings.random_seed if seed is None else seed
        balance_training = (
            self.settings.balance_training if balance_training is None else balance_training
        )
        n_folds = self.settings.cv_folds

        if not 0.0 < split_ratio < 1.0:
            raise ValueError(f"split_ratio must be in (0, 1), got {split_ratio}")
        if label_field not in rows.columns:
            raise KeyError(f"Label column '{label_field}' not found")

        features = rows.drop(columns=[label_field])
        labels = rows[label_field].astype(int)
        self._check_class_counts(labels, minimum=2, where="input")

        try:
            X_train, X_test, y_train, y_test = train_test_split(
                features,
                labels,
                train_size=split_ratio,
                stratify=labels,
                random_state=seed,
            )
        except ValueError as e:
            raise InsufficientDataError(
                f"Stratified split failed: {e}",
                rows=len(rows),
                split_ratio=split_ratio,
            ) from e

        self._check_class_counts(y_train, minimum=1, where="train")
        self._check_class_counts(y_test, minimum=1, where="test")

        if balance_training:
            train = self.balancer.balance(
                pd.concat([X_train, y_train], axis=1), label_field=label_field, seed=seed
            )
            X_train, y_train = train.drop(columns=[label_field]), train[label_field]

        self._check_class_counts(y_train, minimum=n_folds, where="cross-validation")

        grid = self._resolve_grid(kind, hyperparameters, n_features=features.shape[1])
        best_params, cv_accuracy, cv_results = self._search(
            kind, grid, X_train, y_train, n_folds, seed
        )

        estimator = self._fit(kind, best_params, X_train, y_train, seed)
        confusion = confusion_from_predictions(y_test, estimator.predict(X_test))

        artifact = ModelArtifact(
            kind=kind,
            estimator=estimator,
            feature_names=tuple(features.columns),
            n_folds=n_folds,
            hyperparameter_grid=grid,
            best_params=best_params,
            cv_accuracy=cv_accuracy,
            seed=seed,
            cv_results=cv_results,
        )
        report = ClassificationReport(
            model=artifact,
            confusion_matrix=confusion,
            train_rows=len(X_train),
            test_rows=len(X_test),
        )

        logger.info(
            f"{kind.value} evaluated on {len(X_test)} held-out rows: "
            f"accuracy={report.accuracy:.3f}, kappa={report.kappa:.3f}",
            extra=report.to_dict(),
        )
        return report

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _search(
        self,
        kind: ModelKind,
        grid: dict[str, list[Any]],
        X: pd.DataFrame,
        y: pd.Series,
        n_folds: int,
        seed: int,
    ) -> tuple[dict[str, Any], float, list[dict[str, Any]]]:
        """
        Cross-validate every grid point; the first best mean accuracy wins.

        Candidates with any non-converged fold fit are recorded but cannot win.
        """
        candidates = list(ParameterGrid(grid))
        folds = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
        timeout = self.settings.search_timeout_seconds

        results: list[dict[str, Any]] = []
        best_params: dict[str, Any] = {}
        best_score = -np.inf
        start = time.perf_counter()

        for params in candidates:
            estimator = self._build(kind, params, seed)
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", category=ConvergenceWarning)
                cv = cross_validate(
                    estimator,
                    X,
                    y,
                    cv=folds,
                    scoring="accuracy",
                    n_jobs=self.settings.n_jobs,
                    error_score="raise",
                    return_estimator=True,
                )

            scores = cv["test_score"]
            converged = all(self._converged(kind, fold_fit) for fold_fit in cv["estimator"])
            mean_score = float(np.mean(scores))
            results.append(
                {
                    "params": params,
                    "mean_accuracy": mean_score,
                    "fold_accuracy": scores.tolist(),
                    "converged": converged,
                }
            )
            if not converged:
                logger.warning(
                    f"{kind.value} candidate {params} did not converge in every fold; skipped",
                    extra={"model_kind": kind.value, "params": params},
                )
            elif mean_score > best_score:
                best_params, best_score = params, mean_score

            elapsed = time.perf_counter() - start
            if timeout is not None and elapsed > timeout:
                raise SearchTimeoutError(
                    f"{kind.value} hyperparameter search exceeded {timeout}s",
                    elapsed_seconds=elapsed,
                    evaluated=len(results),
                    total=len(candidates),
                )

        if not any(r["converged"] for r in results):
            raise NonConvergentFitError(
                f"No {kind.value} candidate converged in cross-validation",
                iterations=self.settings.logistic_max_iter,
                candidates=len(candidates),
            )

        logger.info(
            f"{kind.value} search selected {best_params} "
            f"(mean CV accuracy {best_score:.3f} over {n_folds} folds)",
            extra={
                "model_kind": kind.value,
                "candidates": len(candidates),
                "best_params": best_params,
            },
        )
        return best_params, best_score, results

    def _resolve_grid(
        self,
        kind: ModelKind,
        hyperparameters: dict[str, Any] | None,
        n_features: int,
    ) -> dict[str, list[Any]]:
        if hyperparameters is None:
            source = (
                self.settings.logistic_grid
                if kind == ModelKind.LOGISTIC
                else self.settings.forest_grid
            )
        else:
            source = hyperparameters

        grid = {
            name: list(values) if isinstance(values, (list, tuple)) else [values]
            for name, values in source.items()
        }

        # Integer feature subsample sizes cannot exceed the feature count
        if kind == ModelKind.BAGGED_TREES and "max_features" in grid:
            resolved: list[Any] = []
            for value in grid["max_features"]:
                if isinstance(value, int) and not isinstance(value, bool):
                    value = min(value, n_features)
                if value not in resolved:
                    resolved.append(value)
            grid["max_features"] = resolved

        return grid

    # -------------------------------------------------------------------------
    # Estimators
    # -------------------------------------------------------------------------

    def _build(self, kind: ModelKind, params: dict[str, Any], seed: int):
        if kind == ModelKind.LOGISTIC:
            return LogisticRegression(
                max_iter=self.settings.logistic_max_iter,
                random_state=seed,
                **params,
            )
        return RandomForestClassifier(
            n_estimators=self.settings.forest_estimators,
            bootstrap=True,
            random_state=seed,
            n_jobs=self.settings.n_jobs,
            **params,
        )

    def _fit(
        self,
        kind: ModelKind,
        params: dict[str, Any],
        X: pd.DataFrame,
        y: pd.Series,
        seed: int,
    ):
        """Refit the selected configuration on the full training partition."""
        estimator = self._build(kind, params, seed)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", category=ConvergenceWarning)
            estimator.fit(X, y)

        warned = any(issubclass(w.category, ConvergenceWarning) for w in caught)
        if (kind == ModelKind.LOGISTIC and warned) or not self._converged(kind, estimator):
            raise NonConvergentFitError(
                "Logistic regression did not converge",
                iterations=self.settings.logistic_max_iter,
                params=params,
            )

        return estimator

    def _converged(self, kind: ModelKind, estimator) -> bool:
        """Logistic fits converge when they stop short of the iteration budget."""
        if kind != ModelKind.LOGISTIC:
            return True
        return bool(np.all(np.asarray(estimator.n_iter_) < self.settings.logistic_max_iter))

    def _check_class_counts(self, labels: pd.Series, minimum: int, where: str) -> None:
        counts = labels.value_counts()
        present = {int(k): int(v) for k, v in counts.items()}
        for label in (0, 1):
            if present.get(label, 0) < minimum:
                raise InsufficientDataError(
                    f"Class {label} has too few rows for {where}",
                    class_counts=present,
                    required=minimum,
                )


# =============================================================================
# Convenience Functions
# =============================================================================


def train_and_evaluate(
    rows: pd.DataFrame,
    label_field: str | None = None,
    split_ratio: float | None = None,
    seed: int | None = None,
    model_kind: ModelKind | str = ModelKind.LOGISTIC,
    hyperparameters: dict[str, Any] | None = None,
    config: Settings | None = None,
) -> ClassificationReport:
    """Train and evaluate one classifier kind on encoded feature rows."""
    return ClassifierTrainer(config).train_and_evaluate(
        rows,
        label_field=label_field,
        split_ratio=split_ratio,
        seed=seed,
        model_kind=model_kind,
        hyperparameters=hyperparameters,
    )
