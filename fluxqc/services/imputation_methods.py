"""
Imputation method catalog and fill functions.

Fill functions take a float Series (NaN = missing) and return a copy with the
gaps they can fill filled; gaps a method cannot reach stay NaN. Methods that
need an external runtime are filled with LINEAR instead.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from fluxqc.config import settings
from fluxqc.services.errors import MethodUnavailableError, ValidationError

FALLBACK_METHOD = "LINEAR"


@dataclass(frozen=True)
class ImputationMethod:
    id: str
    name: str
    category: str                     # basic | statistical | timeseries | ml | dl
    description: str
    requires_external_runtime: bool
    is_available: bool
    estimated_time: str               # fast | medium | slow
    accuracy: str                     # low | medium | high
    priority: int                     # higher is listed first
    default_params: Dict[str, Any] = field(default_factory=dict)


def _m(method_id, name, category, description, external, time, accuracy, priority,
       available=True, **default_params) -> ImputationMethod:
    return ImputationMethod(
        id=method_id,
        name=name,
        category=category,
        description=description,
        requires_external_runtime=external,
        is_available=available,
        estimated_time=time,
        accuracy=accuracy,
        priority=priority,
        default_params=default_params,
    )


IMPUTATION_METHODS = (
    # Basic
    _m("MEAN", "Mean", "basic", "Fill with the column mean", False, "fast", "low", 100),
    _m("MEDIAN", "Median", "basic", "Fill with the column median", False, "fast", "low", 99),
    _m("MODE", "Mode", "basic", "Fill with the most frequent value", False, "fast", "low", 98),
    _m("FORWARD_FILL", "Forward fill", "basic", "Carry the previous valid value forward",
       False, "fast", "low", 97),
    _m("BACKWARD_FILL", "Backward fill", "basic", "Carry the next valid value backward",
       False, "fast", "low", 96),
    # Statistical
    _m("LINEAR", "Linear interpolation", "statistical",
       "Interpolate linearly between neighbouring valid values", False, "fast", "medium", 90),
    _m("SPLINE", "Spline interpolation", "statistical", "Cubic spline through the valid values",
       True, "fast", "medium", 89, order=3),
    _m("POLYNOMIAL", "Polynomial fit", "statistical",
       "Least-squares polynomial over row index", False, "fast", "medium", 88, degree=2),
    _m("SEASONAL", "Seasonal decomposition", "statistical",
       "Fill from the diurnal/seasonal component", True, "medium", "high", 87, period=48),
    # Time series
    _m("ARIMA", "ARIMA", "timeseries", "Autoregressive integrated moving average",
       True, "medium", "high", 80, p=1, d=1, q=1),
    _m("SARIMA", "SARIMA", "timeseries", "Seasonal ARIMA",
       True, "medium", "high", 79, p=1, d=1, q=1, seasonal_period=48),
    _m("ETS", "Exponential smoothing", "timeseries", "Error/trend/seasonal smoothing",
       True, "medium", "high", 78, seasonal_period=48),
    # Machine learning
    _m("KNN", "K-nearest neighbours", "ml", "Average of the k most similar rows",
       True, "medium", "high", 70, n_neighbors=5),
    _m("RANDOM_FOREST", "Random forest", "ml", "Regress the column on the others with a forest",
       True, "slow", "high", 69, n_estimators=100),
    _m("MICE", "MICE", "ml", "Multiple imputation by chained equations",
       True, "slow", "high", 68, max_iter=10),
    _m("MISSFOREST", "MissForest", "ml", "Iterative random-forest imputation",
       True, "slow", "high", 67, max_iter=10),
    _m("GRADIENT_BOOSTING", "Gradient boosting", "ml", "Gradient-boosted regression imputation",
       True, "slow", "high", 66, available=False, n_estimators=100),
    # Deep learning
    _m("LSTM", "LSTM", "dl", "Recurrent network over the sequence",
       True, "slow", "high", 60, available=False, sequence_length=48),
    _m("GRU", "GRU", "dl", "Gated recurrent unit network",
       True, "slow", "high", 59, available=False, sequence_length=48),
    _m("TRANSFORMER", "Transformer", "dl", "Attention-based sequence model",
       True, "slow", "high", 58, available=False),
    _m("VAE", "Variational autoencoder", "dl", "Reconstruct gaps from a latent model",
       True, "slow", "high", 57, available=False),
    _m("GAIN", "GAIN", "dl", "Generative adversarial imputation network",
       True, "slow", "high", 56, available=False),
)

_BY_ID: Dict[str, ImputationMethod] = {m.id: m for m in IMPUTATION_METHODS}


def get_all_methods() -> List[ImputationMethod]:
    return sorted(IMPUTATION_METHODS, key=lambda m: m.priority, reverse=True)


def get_methods_by_category(category: str) -> List[ImputationMethod]:
    return [m for m in get_all_methods() if m.category == category]


def get_available_methods() -> List[ImputationMethod]:
    return [m for m in get_all_methods() if m.is_available]


def get_method(method_id: str) -> ImputationMethod:
    method = _BY_ID.get(method_id)
    if method is None:
        raise ValidationError(f"Unknown imputation method: {method_id}")
    return method


def applied_method_id(method: ImputationMethod) -> str:
    """The method that will actually fill gaps for a requested method."""
    if not method.is_available:
        raise MethodUnavailableError(method.id)
    if method.requires_external_runtime:
        return FALLBACK_METHOD
    return method.id


# ============================================================================
# FILL FUNCTIONS
# ============================================================================

def fill_mean(series: pd.Series, params: dict) -> pd.Series:
    valid = series.dropna()
    return series.copy() if valid.empty else series.fillna(valid.mean())


def fill_median(series: pd.Series, params: dict) -> pd.Series:
    valid = series.dropna()
    return series.copy() if valid.empty else series.fillna(valid.median())


def fill_mode(series: pd.Series, params: dict) -> pd.Series:
    """Most frequent value; ties go to the value seen first."""
    valid = series.dropna()
    if valid.empty:
        return series.copy()
    counts = valid.groupby(valid, sort=False).size()
    return series.fillna(float(counts.idxmax()))


def fill_forward(series: pd.Series, params: dict) -> pd.Series:
    return series.ffill()


def fill_backward(series: pd.Series, params: dict) -> pd.Series:
    return series.bfill()


def fill_linear(series: pd.Series, params: dict) -> pd.Series:
    """
    Interpolate over row position. Edge gaps take the nearest valid value and a
    single valid value fills everything.
    """
    values = series.to_numpy(dtype=float)
    valid = ~np.isnan(values)
    if not valid.any():
        return series.copy()
    positions = np.arange(len(values))
    filled = values.copy()
    filled[~valid] = np.interp(positions[~valid], positions[valid], values[valid])
    return pd.Series(filled, index=series.index)


def fill_polynomial(series: pd.Series, params: dict) -> pd.Series:
    values = series.to_numpy(dtype=float)
    valid = ~np.isnan(values)
    if not valid.any():
        return series.copy()
    positions = np.arange(len(values))
    degree = min(int(params.get("degree", 2)), int(valid.sum()) - 1)
    coefficients = np.polyfit(positions[valid], values[valid], degree)
    filled = values.copy()
    filled[~valid] = np.polyval(coefficients, positions[~valid])
    return pd.Series(filled, index=series.index)


FILL_FUNCTIONS: Dict[str, Callable[[pd.Series, dict], pd.Series]] = {
    "MEAN": fill_mean,
    "MEDIAN": fill_median,
    "MODE": fill_mode,
    "FORWARD_FILL": fill_forward,
    "BACKWARD_FILL": fill_backward,
    "LINEAR": fill_linear,
    "POLYNOMIAL": fill_polynomial,
}


def check_params(method_id: str, params: Optional[dict]) -> dict:
    params = dict(params or {})
    if method_id == "POLYNOMIAL" and "degree" in params:
        degree = params["degree"]
        if isinstance(degree, bool) or not isinstance(degree, int) or degree < 1:
            raise ValidationError("POLYNOMIAL.degree must be a positive integer")
    return params


def fill_column(method_id: str, series: pd.Series, params: Optional[dict] = None) -> pd.Series:
    return FILL_FUNCTIONS[method_id](series, params or {})


# ============================================================================
# CONFIDENCE
# ============================================================================

def method_weight(method_id: str) -> float:
    return settings.IMPUTATION_METHOD_WEIGHTS.get(method_id, settings.DEFAULT_METHOD_WEIGHT)


def confidence(imputed: float, pre_mean: float, pre_std: float, weight: float) -> float:
    """Gaussian closeness to the pre-fill mean, scaled by the method weight."""
    if not pre_std or math.isnan(pre_std):
        return 1.0
    z = abs(imputed - pre_mean) / pre_std
    return min(1.0, math.exp(-0.5 * z * z) * weight)
