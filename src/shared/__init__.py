from src.shared.config import Settings, get_config, reload_config
from src.shared.errors import (
    EmptyMinorityClassError,
    InsufficientDataError,
    InvalidSeriesError,
    NonConvergentFitError,
    NormalizationError,
    PipelineError,
    SearchTimeoutError,
)

__all__ = [
    "get_config",
    "reload_config",
    "Settings",
    "PipelineError",
    "NormalizationError",
    "InvalidSeriesError",
    "EmptyMinorityClassError",
    "InsufficientDataError",
    "NonConvergentFitError",
    "SearchTimeoutError",
]
