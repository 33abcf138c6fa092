"""
Unit tests for confusion matrix metrics.
"""

import math

import numpy as np
import pytest
from sklearn.metrics import cohen_kappa_score

from src.modeling.metrics import ConfusionMatrix, confusion_from_predictions


class TestConfusionMatrix:
    """Test cases for ConfusionMatrix."""

    def test_derived_metrics(self):
        """Test accuracy, sensitivity and specificity."""
        cm = ConfusionMatrix(tp=40, fp=10, fn=20, tn=30)

        assert cm.total == 100
        assert cm.accuracy == pytest.approx(0.70)
        assert cm.sensitivity == pytest.approx(40 / 60)
        assert cm.specificity == pytest.approx(30 / 40)

    def test_kappa(self):
        """Test Cohen's kappa against a hand-computed value."""
        cm = ConfusionMatrix(tp=40, fp=10, fn=20, tn=30)

        # p_o = 0.7, p_e = (50*60 + 50*40) / 100^2 = 0.5
        assert cm.kappa == pytest.approx(0.4)

    def test_perfect_agreement(self):
        """Test kappa is 1 for perfect predictions."""
        cm = ConfusionMatrix(tp=5, fp=0, fn=0, tn=5)

        assert cm.accuracy == 1.0
        assert cm.kappa == pytest.approx(1.0)

    def test_single_class_agreement(self):
        """Test kappa is 1 when labels and predictions are all one class."""
        assert ConfusionMatrix(tp=0, fp=0, fn=0, tn=4).kappa == 1.0
        assert math.isnan(ConfusionMatrix(tp=0, fp=0, fn=0, tn=0).kappa)

    def test_label_arrays(self):
        """Test cell counts expand back into labels and predictions."""
        y_true, y_pred = ConfusionMatrix(tp=2, fp=1, fn=1, tn=3).label_arrays()

        assert len(y_true) == 7
        assert int(((y_true == 1) & (y_pred == 1)).sum()) == 2
        assert int(((y_true == 0) & (y_pred == 1)).sum()) == 1
        assert int(((y_true == 1) & (y_pred == 0)).sum()) == 1

    def test_zero_division_is_nan(self):
        """Test undefined rates are NaN rather than errors."""
        cm = ConfusionMatrix(tp=0, fp=0, fn=0, tn=4)

        assert math.isnan(cm.sensitivity)
        assert cm.specificity == 1.0

    def test_frozen(self):
        """Test confusion matrices are immutable."""
        cm = ConfusionMatrix(tp=1, fp=0, fn=0, tn=1)

        with pytest.raises(AttributeError):
            cm.tp = 2

    def test_to_dict(self):
        """Test serialization includes counts and metrics."""
        result = ConfusionMatrix(tp=1, fp=1, fn=1, tn=1).to_dict()

        assert result["tp"] == 1
        assert result["accuracy"] == pytest.approx(0.5)
        assert "kappa" in result


class TestConfusionFromPredictions:
    """Test cases for confusion_from_predictions."""

    def test_counts(self):
        """Test cell counts from label arrays."""
        y_true = np.array([1, 1, 0, 0, 1, 0])
        y_pred = np.array([1, 0, 0, 1, 1, 0])

        cm = confusion_from_predictions(y_true, y_pred)

        assert (cm.tp, cm.fp, cm.fn, cm.tn) == (2, 1, 1, 2)
        assert cm.kappa == pytest.approx(cohen_kappa_score(y_true, y_pred))

    def test_boolean_labels(self):
        """Test True is the positive class."""
        cm = confusion_from_predictions([True, False], [True, True])

        assert (cm.tp, cm.fp, cm.fn, cm.tn) == (1, 1, 0, 0)

    def test_single_class_predictions(self):
        """Test the matrix stays 2x2 when one class is never predicted."""
        cm = confusion_from_predictions([0, 0, 1], [0, 0, 0])

        assert (cm.tp, cm.fp, cm.fn, cm.tn) == (0, 0, 1, 2)
