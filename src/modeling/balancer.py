"""
NYC Shooting Insights - Class Balancer

Random undersampling of majority classes down to the minority class size.

Usage:
    from src.modeling.balancer import ClassBalancer

    balanced = ClassBalancer().balance(train_rows, label_field="is_fatal", seed=42)
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from src.shared.config import Settings, get_config
from src.shared.errors import EmptyMinorityClassError

logger = logging.getLogger(__name__)


class ClassBalancer:
    """
    Undersamples every majority class to the size of the minority class.

    The minority partition is kept in full; each majority partition is sampled
    without replacement using the supplied seed. Output rows keep their input
    index and are restored to input order. The input frame is never modified.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()

    def balance(
        self,
        df: pd.DataFrame,
        label_field: str | None = None,
        seed: int | None = None,
    ) -> pd.DataFrame:
        """
        Balance feature rows by label.

        Args:
            df: Feature rows including the label column
            label_field: Label column (defaults to config)
            seed: Sampling seed (defaults to the classification seed)

        Returns:
            New DataFrame with equal row counts per label

        Raises:
            EmptyMinorityClassError: If fewer than two label values are present
        """
        label_field = label_field or self.config.features.label_field
        seed = self.config.classification.random_seed if seed is None else seed

        if label_field not in df.columns:
            raise KeyError(f"Label column '{label_field}' not found")

        counts = df[label_field].value_counts(dropna=True)
        if len(counts) < 2:
            raise EmptyMinorityClassError(
                "Cannot balance: minority class is empty",
                rows=len(df),
                classes={str(k): int(v) for k, v in counts.items()},
            )

        minority_label = counts.idxmin()
        minority_size = int(counts.min())

        labels = df[label_field].to_numpy()
        keep: list[np.ndarray] = []
        for label, size in counts.items():
            positions = pd.Series(np.flatnonzero(labels == label))
            if size > minority_size:
                positions = positions.sample(n=minority_size, replace=False, random_state=seed)
            keep.append(positions.to_numpy())

        balanced = df.iloc[np.sort(np.concatenate(keep))].copy()

        logger.info(
            f"Balanced {len(df)} rows to {len(balanced)} "
            f"({len(counts)} classes x {minority_size})",
            extra={
                "rows_input": len(df),
                "rows_output": len(balanced),
                "minority_label": str(minority_label),
                "minority_size": minority_size,
                "class_counts": {str(k): int(v) for k, v in counts.items()},
            },
        )
        return balanced


# =============================================================================
# Convenience Functions
# =============================================================================


def balance_classes(
    df: pd.DataFrame,
    label_field: str | None = None,
    seed: int | None = None,
    config: Settings | None = None,
) -> pd.DataFrame:
    """Undersample majority classes to the minority class size."""
    return ClassBalancer(config).balance(df, label_field=label_field, seed=seed)
