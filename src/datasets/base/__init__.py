"""
NYC Shooting Insights - Base Classes for Datasets

Abstract base classes that dataset implementations inherit from.
These provide a consistent interface for:
- Record normalization (BasePreprocessor)
- Feature building (BaseFeatureBuilder)

Usage:
    from src.datasets.base import BasePreprocessor, BaseFeatureBuilder

    class ShootingPreprocessor(BasePreprocessor):
        def transform(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
"""

from src.datasets.base.feature_builder import (
    BaseFeatureBuilder,
    FeatureBuildResult,
    FeatureDefinition,
)
from src.datasets.base.preprocessor import (
    BasePreprocessor,
    MalformedRecord,
    PreprocessingResult,
)

__all__ = [
    "BasePreprocessor",
    "PreprocessingResult",
    "MalformedRecord",
    "BaseFeatureBuilder",
    "FeatureBuildResult",
    "FeatureDefinition",
]
