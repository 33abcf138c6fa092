"""
NYC Shooting Insights - Forecaster

Seasonal decomposition and seasonal ARIMA forecasting of monthly count series.

Features:
    - Classical decomposition (additive or multiplicative) with the trend
      extrapolated to both ends
    - Exhaustive (p, d, q) x (P, D, Q, s) order search scored by AIC or BIC
    - Gaussian prediction intervals with non-decreasing half-width
    - Ljung-Box residual diagnostics

Usage:
    from src.modeling.forecaster import Forecaster

    forecaster = Forecaster()
    components = forecaster.decompose(series)
    result = forecaster.forecast(series, horizon=120, level=0.95)
"""

from __future__ import annotations

import itertools
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from scipy.stats import norm
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.seasonal import seasonal_decompose
from statsmodels.tsa.statespace.sarimax import SARIMAX

from src.shared.config import Settings, get_config
from src.shared.errors import InvalidSeriesError, NonConvergentFitError

logger = logging.getLogger(__name__)

MONTH_START = "MS"


@dataclass(frozen=True)
class DecompositionResult:
    """Trend, seasonal and residual components of a count series."""

    trend: pd.Series
    seasonal: pd.Series
    residual: pd.Series
    model: str
    period: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "period": self.period,
            "points": len(self.trend),
            "seasonal_amplitude": float(self.seasonal.max() - self.seasonal.min()),
        }


@dataclass(frozen=True)
class PortmanteauResult:
    """Ljung-Box statistic and p-value at one lag."""

    lag: int
    statistic: float
    p_value: float


@dataclass(frozen=True)
class ForecastResult:
    """Point forecast, prediction interval and diagnostics of the selected model."""

    point_forecast: pd.Series
    lower_bound: pd.Series
    upper_bound: pd.Series
    order: tuple[int, int, int]
    seasonal_order: tuple[int, int, int, int]
    information_criterion: str
    criterion_value: float
    confidence_level: float
    residual_diagnostics: list[PortmanteauResult] = field(default_factory=list)
    candidates_evaluated: int = 0
    candidates_converged: int = 0

    @property
    def horizon(self) -> int:
        return len(self.point_forecast)

    def residuals_look_white(self, alpha: float = 0.05) -> bool:
        """True when no Ljung-Box p-value falls below ``alpha``."""
        return all(d.p_value >= alpha for d in self.residual_diagnostics)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "order": list(self.order),
            "seasonal_order": list(self.seasonal_order),
            "information_criterion": self.information_criterion,
            "criterion_value": self.criterion_value,
            "confidence_level": self.confidence_level,
            "horizon": self.horizon,
            "candidates_evaluated": self.candidates_evaluated,
            "candidates_converged": self.candidates_converged,
            "ljung_box": [
                {"lag": d.lag, "statistic": d.statistic, "p_value": d.p_value}
                for d in self.residual_diagnostics
            ],
        }


class Forecaster:
    """
    Decomposes and forecasts contiguous monthly count series.

    Input series must be indexed by a month-start ``DatetimeIndex`` with no
    gaps and no missing values, as produced by ``aggregate_counts``.
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()
        self.settings = self.config.forecast

    # -------------------------------------------------------------------------
    # Decomposition
    # -------------------------------------------------------------------------

    def decompose(
        self,
        series: pd.Series,
        model: str | None = None,
        period: int | None = None,
    ) -> DecompositionResult:
        """
        Split a series into trend, seasonal and residual components.

        Args:
            series: Contiguous monthly count series
            model: "additive" or "multiplicative" (defaults to config)
            period: Seasonal period (defaults to config, normally 12)

        Raises:
            InvalidSeriesError: On gaps, missing values, fewer than two full
                periods, or non-positive values for a multiplicative model
        """
        model = model or self.settings.decomposition_model
        period = period or self.settings.seasonal_period

        if model not in ("additive", "multiplicative"):
            raise ValueError(f"Unknown decomposition model: {model}")

        values = self._validate_series(series, period)
        if model == "multiplicative" and (values <= 0).any():
            raise InvalidSeriesError(
                "Multiplicative decomposition requires strictly positive values",
                non_positive=int((values <= 0).sum()),
            )

        decomposition = seasonal_decompose(
            values, model=model, period=period, extrapolate_trend=period
        )

        result = DecompositionResult(
            trend=decomposition.trend.rename("trend"),
            seasonal=decomposition.seasonal.rename("seasonal"),
            residual=decomposition.resid.rename("residual"),
            model=model,
            period=period,
        )
        logger.info(
            f"Decomposed {len(values)}-point series ({model}, period {period})",
            extra=result.to_dict(),
        )
        return result

    # -------------------------------------------------------------------------
    # Forecasting
    # -------------------------------------------------------------------------

    def forecast(
        self,
        series: pd.Series,
        horizon: int | None = None,
        level: float | None = None,
    ) -> ForecastResult:
        """
        Select a seasonal ARIMA order and forecast ``horizon`` months ahead.

        Args:
            series: Contiguous monthly count series
            horizon: Number of months to forecast (defaults to config)
            level: Prediction interval confidence level (defaults to config)

        Raises:
            InvalidSeriesError: If the series fails its preconditions
            NonConvergentFitError: If no candidate order converges
        """
        horizon = self.settings.horizon_months if horizon is None else horizon
        level = self.settings.confidence_level if level is None else level
        period = self.settings.seasonal_period

        if horizon < 1:
            raise ValueError(f"horizon must be at least 1, got {horizon}")
        if not 0.0 < level < 1.0:
            raise ValueError(f"level must be in (0, 1), got {level}")

        values = self._validate_series(series, period)
        fit, order, seasonal_order, score, evaluated, converged = self._select_order(values)

        prediction = fit.get_forecast(steps=horizon)
        mean = np.asarray(prediction.predicted_mean, dtype=float)
        variance = np.asarray(prediction.var_pred_mean, dtype=float)

        z = norm.ppf(0.5 + level / 2.0)
        half_width = np.maximum.accumulate(z * np.sqrt(np.clip(variance, 0.0, None)))

        index = pd.date_range(
            values.index[-1] + pd.offsets.MonthBegin(1),
            periods=horizon,
            freq=MONTH_START,
            name=values.index.name,
        )

        result = ForecastResult(
            point_forecast=pd.Series(mean, index=index, name="point_forecast"),
            lower_bound=pd.Series(mean - half_width, index=index, name="lower_bound"),
            upper_bound=pd.Series(mean + half_width, index=index, name="upper_bound"),
            order=order,
            seasonal_order=seasonal_order,
            information_criterion=self.settings.information_criterion,
            criterion_value=score,
            confidence_level=level,
            residual_diagnostics=self._residual_diagnostics(fit),
            candidates_evaluated=evaluated,
            candidates_converged=converged,
        )

        logger.info(
            f"Forecast {horizon} months with SARIMA{order}x{seasonal_order} "
            f"({result.information_criterion}={score:.2f})",
            extra=result.to_dict(),
        )

        alpha = self.settings.white_noise_alpha
        if not result.residuals_look_white(alpha):
            failing = [d.lag for d in result.residual_diagnostics if d.p_value < alpha]
            logger.warning(
                f"Residuals of SARIMA{order}x{seasonal_order} show autocorrelation "
                f"at lags {failing} (alpha={alpha})",
                extra={"lags": failing, "alpha": alpha},
            )

        return result

    def _select_order(self, values: pd.Series):
        """Fit every candidate order and keep the best-scoring converged fit."""
        bounds = self.settings.search
        period = self.settings.seasonal_period
        criterion = self.settings.information_criterion

        candidates = list(
            itertools.product(
                range(bounds.max_p + 1),
                range(bounds.max_d + 1),
                range(bounds.max_q + 1),
                range(bounds.max_seasonal_p + 1),
                range(bounds.max_seasonal_d + 1),
                range(bounds.max_seasonal_q + 1),
            )
        )

        best = None
        converged = 0
        for p, d, q, sp, sd, sq in candidates:
            order = (p, d, q)
            seasonal_order = (sp, sd, sq, period)
            fit = self._fit_candidate(values, order, seasonal_order)
            if fit is None:
                continue
            converged += 1
            score = float(getattr(fit, criterion))
            # Strict comparison keeps the earlier candidate on ties
            if best is None or score < best[3]:
                best = (fit, order, seasonal_order, score)

        if best is None:
            raise NonConvergentFitError(
                "No candidate SARIMA order converged",
                iterations=bounds.max_iterations,
                candidates=len(candidates),
            )

        logger.debug(
            f"Order search: {converged}/{len(candidates)} candidates converged",
            extra={"candidates": len(candidates), "converged": converged},
        )
        return (*best, len(candidates), converged)

    def _fit_candidate(self, values: pd.Series, order, seasonal_order):
        """Fit one SARIMAX candidate, returning None if it fails or does not converge."""
        trend = "c" if order[1] == 0 and seasonal_order[1] == 0 else None
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                fit = SARIMAX(
                    values,
                    order=order,
                    seasonal_order=seasonal_order,
                    trend=trend,
                    enforce_stationarity=False,
                    enforce_invertibility=False,
                ).fit(disp=False, maxiter=self.settings.search.max_iterations)
            except (ValueError, np.linalg.LinAlgError) as e:
                logger.debug(f"SARIMA{order}x{seasonal_order} failed: {e}")
                return None

        if any(issubclass(w.category, ConvergenceWarning) for w in caught):
            logger.debug(f"SARIMA{order}x{seasonal_order} did not converge")
            return None
        if not (fit.mle_retvals or {}).get("converged", True):
            return None
        scores = np.array([fit.aic, fit.bic], dtype=float)
        if not np.all(np.isfinite(scores)) or not np.all(np.isfinite(fit.params)):
            return None
        return fit

    def _residual_diagnostics(self, fit) -> list[PortmanteauResult]:
        """Ljung-Box test on residuals past the likelihood burn-in."""
        residuals = pd.Series(np.asarray(fit.resid, dtype=float))
        residuals = residuals.iloc[int(fit.loglikelihood_burn) :].dropna()

        lags = [lag for lag in self.settings.ljung_box_lags if 0 < lag < len(residuals)]
        if not lags:
            logger.warning("Too few residuals for Ljung-Box diagnostics")
            return []

        table = acorr_ljungbox(residuals, lags=lags, return_df=True)
        return [
            PortmanteauResult(
                lag=int(lag),
                statistic=float(row["lb_stat"]),
                p_value=float(row["lb_pvalue"]),
            )
            for lag, row in table.iterrows()
        ]

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate_series(self, series: pd.Series, period: int) -> pd.Series:
        if not isinstance(series.index, pd.DatetimeIndex):
            raise InvalidSeriesError("Series must be indexed by bucket start dates")

        missing = int(series.isna().sum())
        if missing:
            raise InvalidSeriesError("Series contains missing values", missing=missing)

        if len(series) < 2 * period:
            raise InvalidSeriesError(
                "Series is shorter than two full seasonal periods",
                points=len(series),
                required=2 * period,
            )

        expected = pd.date_range(series.index[0], periods=len(series), freq=MONTH_START)
        if not series.index.equals(expected):
            raise InvalidSeriesError(
                "Series is not a contiguous month-start sequence",
                points=len(series),
                expected_end=str(expected[-1].date()),
                actual_end=str(series.index[-1].date()),
            )

        values = series.astype("float64").copy()
        values.index = pd.DatetimeIndex(series.index, freq=MONTH_START, name=series.index.name)
        return values


# =============================================================================
# Convenience Functions
# =============================================================================


def decompose_series(
    series: pd.Series,
    model: str | None = None,
    config: Settings | None = None,
) -> DecompositionResult:
    """Decompose a monthly count series."""
    return Forecaster(config).decompose(series, model=model)


def forecast_counts(
    series: pd.Series,
    horizon: int | None = None,
    level: float | None = None,
    config: Settings | None = None,
) -> ForecastResult:
    """Forecast a monthly count series."""
    return Forecaster(config).forecast(series, horizon=horizon, level=level)
