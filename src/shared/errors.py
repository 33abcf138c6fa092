"""
NYC Shooting Insights - Pipeline Error Taxonomy

Stage-level failures raised by the modeling pipeline. Every error carries the
stage that failed and the counts/values involved so a failure can be diagnosed
from the message alone.

Row-level problems are not exceptions: they are collected as MalformedRecord
entries by the record normalizer (see src.datasets.shooting.preprocess).
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for stage-level pipeline failures."""

    stage: str = "pipeline"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        details = ", ".join(f"{k}={v!r}" for k, v in context.items())
        suffix = f" ({details})" if details else ""
        super().__init__(f"[{self.stage}] {message}{suffix}")


class NormalizationError(PipelineError):
    """Raised when record normalization fails as a whole."""

    stage = "normalize"

    def __init__(self, result: Any):
        self.result = result
        super().__init__(
            result.error_message or "normalization failed",
            rows_input=result.rows_input,
        )


class InvalidSeriesError(PipelineError):
    """Raised when a count series fails a decomposition/forecast precondition."""

    stage = "forecast"


class EmptyMinorityClassError(PipelineError):
    """Raised when there is no minority class to balance against."""

    stage = "balance"


class InsufficientDataError(PipelineError):
    """Raised when a split or fold would be missing a class."""

    stage = "classification"


class NonConvergentFitError(PipelineError):
    """Raised when a model fit does not converge within its iteration budget."""

    stage = "fit"

    def __init__(self, message: str, iterations: int, **context: Any):
        self.iterations = iterations
        super().__init__(message, iterations=iterations, **context)


class SearchTimeoutError(PipelineError):
    """Raised when a hyperparameter search exceeds its wall-clock budget."""

    stage = "search"

    def __init__(self, message: str, elapsed_seconds: float, evaluated: int, total: int):
        self.elapsed_seconds = elapsed_seconds
        self.evaluated = evaluated
        self.total = total
        super().__init__(
            message,
            elapsed_seconds=round(elapsed_seconds, 3),
            evaluated=evaluated,
            total=total,
        )
