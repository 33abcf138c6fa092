"""
Unit tests for ClassBalancer.
"""

import numpy as np
import pandas as pd
import pytest

from src.modeling.balancer import ClassBalancer, balance_classes
from src.shared.errors import EmptyMinorityClassError


class TestClassBalancer:
    """Test cases for ClassBalancer class."""

    @pytest.fixture
    def balancer(self, test_config):
        """Create a ClassBalancer instance."""
        return ClassBalancer(test_config)

    @pytest.fixture
    def imbalanced_rows(self):
        """90 negatives and 10 positives with a shuffled, non-default index."""
        rng = np.random.default_rng(3)
        labels = np.array([1] * 10 + [0] * 90)
        rng.shuffle(labels)
        return pd.DataFrame(
            {"x": np.arange(100, dtype=float), "is_fatal": labels},
            index=rng.permutation(np.arange(1000, 1100)),
        )

    def test_classes_are_equal_size(self, balancer, imbalanced_rows):
        """Test every class ends at the minority size."""
        balanced = balancer.balance(imbalanced_rows, "is_fatal", seed=42)

        counts = balanced["is_fatal"].value_counts()
        assert counts[0] == 10
        assert counts[1] == 10

    def test_minority_kept_in_full(self, balancer, imbalanced_rows):
        """Test all minority rows survive."""
        balanced = balancer.balance(imbalanced_rows, "is_fatal", seed=42)

        minority = imbalanced_rows[imbalanced_rows["is_fatal"] == 1]
        assert set(minority.index) <= set(balanced.index)

    def test_sampled_without_replacement(self, balancer, imbalanced_rows):
        """Test no row appears twice."""
        balanced = balancer.balance(imbalanced_rows, "is_fatal", seed=42)

        assert balanced.index.is_unique

    def test_input_order_preserved(self, balancer, imbalanced_rows):
        """Test output rows keep their relative input order."""
        balanced = balancer.balance(imbalanced_rows, "is_fatal", seed=42)

        assert balanced["x"].is_monotonic_increasing

    def test_deterministic_for_seed(self, balancer, imbalanced_rows):
        """Test the same seed selects the same rows."""
        first = balancer.balance(imbalanced_rows, "is_fatal", seed=7)
        second = balancer.balance(imbalanced_rows, "is_fatal", seed=7)

        pd.testing.assert_frame_equal(first, second)

    def test_seed_changes_selection(self, balancer, imbalanced_rows):
        """Test different seeds select different majority rows."""
        first = balancer.balance(imbalanced_rows, "is_fatal", seed=1)
        second = balancer.balance(imbalanced_rows, "is_fatal", seed=2)

        assert not first.index.equals(second.index)

    def test_input_is_not_mutated(self, balancer, imbalanced_rows):
        """Test balancing never modifies its input."""
        original = imbalanced_rows.copy(deep=True)

        balancer.balance(imbalanced_rows, "is_fatal", seed=42)

        pd.testing.assert_frame_equal(imbalanced_rows, original)

    def test_already_balanced_is_unchanged(self, balancer):
        """Test balanced input passes through."""
        rows = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "is_fatal": [0, 1, 1, 0]})

        balanced = balancer.balance(rows, "is_fatal", seed=42)

        pd.testing.assert_frame_equal(balanced, rows)

    def test_empty_minority_raises_without_mutation(self, balancer):
        """Test a single-class frame is rejected and left untouched."""
        rows = pd.DataFrame({"x": [1.0, 2.0, 3.0], "is_fatal": [0, 0, 0]})
        original = rows.copy(deep=True)

        with pytest.raises(EmptyMinorityClassError) as exc_info:
            balancer.balance(rows, "is_fatal", seed=42)

        assert exc_info.value.stage == "balance"
        assert exc_info.value.context["rows"] == 3
        pd.testing.assert_frame_equal(rows, original)

    def test_empty_frame_raises(self, balancer):
        """Test an empty frame has no minority class."""
        rows = pd.DataFrame({"x": pd.Series([], dtype=float), "is_fatal": pd.Series([], dtype=int)})

        with pytest.raises(EmptyMinorityClassError):
            balancer.balance(rows, "is_fatal", seed=42)

    def test_missing_label_column(self, balancer, imbalanced_rows):
        """Test an unknown label column is rejected."""
        with pytest.raises(KeyError):
            balancer.balance(imbalanced_rows, "label", seed=42)

    def test_defaults_from_config(self, test_config, imbalanced_rows):
        """Test label field and seed default to configuration."""
        balanced = balance_classes(imbalanced_rows, config=test_config)
        explicit = balance_classes(
            imbalanced_rows,
            label_field=test_config.features.label_field,
            seed=test_config.classification.random_seed,
            config=test_config,
        )

        pd.testing.assert_frame_equal(balanced, explicit)
