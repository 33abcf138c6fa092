"""
NYC Shooting Insights - Classification Metrics

2x2 confusion matrix for the binary outcome, with the derived accuracy,
sensitivity (positive-class recall), specificity and Cohen's kappa.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from sklearn.metrics import cohen_kappa_score, confusion_matrix


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else float("nan")


@dataclass(frozen=True)
class ConfusionMatrix:
    """Counts of a binary classifier's predictions against true labels."""

    tp: int
    fp: int
    fn: int
    tn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.fn + self.tn

    @property
    def accuracy(self) -> float:
        return _ratio(self.tp + self.tn, self.total)

    @property
    def sensitivity(self) -> float:
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def specificity(self) -> float:
        return _ratio(self.tn, self.tn + self.fp)

    @property
    def kappa(self) -> float:
        """Cohen's kappa: observed agreement corrected for chance agreement."""
        total = self.total
        if not total:
            return float("nan")
        # Chance agreement is certain when every label and prediction is one class
        if total in (self.tp, self.tn):
            return 1.0
        y_true, y_pred = self.label_arrays()
        return float(cohen_kappa_score(y_true, y_pred, labels=[0, 1]))

    def label_arrays(self) -> tuple[np.ndarray, np.ndarray]:
        """Expand the cell counts back into 0/1 label and prediction arrays."""
        counts = [self.tp, self.fp, self.fn, self.tn]
        y_true = np.repeat([1, 0, 1, 0], counts)
        y_pred = np.repeat([1, 1, 0, 0], counts)
        return y_true, y_pred

    def to_dict(self) -> dict[str, Any]:
        return {
            "tp": self.tp,
            "fp": self.fp,
            "fn": self.fn,
            "tn": self.tn,
            "accuracy": self.accuracy,
            "sensitivity": self.sensitivity,
            "specificity": self.specificity,
            "kappa": self.kappa,
        }


def confusion_from_predictions(y_true, y_pred) -> ConfusionMatrix:
    """Build a ConfusionMatrix from 0/1 (or bool) labels and predictions."""
    matrix = confusion_matrix(
        np.asarray(y_true).astype(int), np.asarray(y_pred).astype(int), labels=[0, 1]
    )
    tn, fp, fn, tp = (int(v) for v in matrix.ravel())
    return ConfusionMatrix(tp=tp, fp=fp, fn=fn, tn=tn)
