"""
Detection method registry and outlier predicates.

The registry is plain data: each method lists its parameters with defaults and
ranges, which drives both parameter validation and the method picker.

Every in-process method reduces to a pair of bounds on the column; a numeric
cell is BELOW_MIN when it falls under the lower bound (checked first) and
ABOVE_MAX when it exceeds the upper bound. Non-numeric cells are never flagged.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from fluxqc.services.errors import MethodUnavailableError, ValidationError


# ============================================================================
# REGISTRY
# ============================================================================

THRESHOLD_STATIC = "THRESHOLD_STATIC"
ZSCORE = "ZSCORE"
MODIFIED_ZSCORE = "MODIFIED_ZSCORE"
IQR = "IQR"
DESPIKING_MAD = "DESPIKING_MAD"
ISOLATION_FOREST = "ISOLATION_FOREST"

BELOW_MIN = "BELOW_MIN"
ABOVE_MAX = "ABOVE_MAX"

# Scales MAD to the standard deviation of a normal distribution
MAD_SCALE = 1.4826


@dataclass(frozen=True)
class MethodParam:
    key: str
    label: str
    type: str                    # number | integer | boolean
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    tooltip: str = ""


@dataclass(frozen=True)
class DetectionMethod:
    id: str
    name: str
    category: str                # threshold | statistical | ml
    description: str
    requires_external_runtime: bool
    is_available: bool
    compute_cost: str            # fast | medium | slow
    params: Tuple[MethodParam, ...] = field(default_factory=tuple)


DETECTION_METHODS: Tuple[DetectionMethod, ...] = (
    DetectionMethod(
        id=THRESHOLD_STATIC,
        name="Static threshold",
        category="threshold",
        description="Flags values outside the configured min/max bounds of each column.",
        requires_external_runtime=False,
        is_available=True,
        compute_cost="fast",
        params=(
            MethodParam("min_value", "Minimum", "number", 0,
                        tooltip="Values below this bound are outliers"),
            MethodParam("max_value", "Maximum", "number", 100,
                        tooltip="Values above this bound are outliers"),
            MethodParam("include_boundary", "Include boundary", "boolean", True,
                        tooltip="Values equal to a bound count as normal"),
        ),
    ),
    DetectionMethod(
        id=ZSCORE,
        name="Z-score",
        category="statistical",
        description="Flags values more than k population standard deviations from the mean.",
        requires_external_runtime=False,
        is_available=True,
        compute_cost="fast",
        params=(
            MethodParam("threshold", "Z threshold", "number", 3, 1, 5, 0.5,
                        "Usually 3; lower is stricter"),
        ),
    ),
    DetectionMethod(
        id=MODIFIED_ZSCORE,
        name="Modified Z-score",
        category="statistical",
        description="Median/MAD based Z-score, robust to the outliers it is looking for.",
        requires_external_runtime=False,
        is_available=True,
        compute_cost="fast",
        params=(
            MethodParam("threshold", "Modified Z threshold", "number", 3.5, 2, 5, 0.5,
                        "Usually 3.5"),
        ),
    ),
    DetectionMethod(
        id=IQR,
        name="Interquartile range",
        category="statistical",
        description="Flags values outside [Q1 - k*IQR, Q3 + k*IQR].",
        requires_external_runtime=False,
        is_available=True,
        compute_cost="fast",
        params=(
            MethodParam("multiplier", "IQR multiplier", "number", 1.5, 1, 3, 0.5,
                        "1.5 for mild outliers, 3 for extreme ones"),
        ),
    ),
    DetectionMethod(
        id=DESPIKING_MAD,
        name="MAD despiking",
        category="statistical",
        description="Moving-window MAD despiking for eddy-covariance flux series.",
        requires_external_runtime=True,
        is_available=True,
        compute_cost="medium",
        params=(
            MethodParam("window_size", "Window size", "integer", 13, 5, 51, 2,
                        "Odd number of records in the moving window"),
            MethodParam("threshold", "Spike threshold", "number", 5.2, 3, 10, 0.1),
            MethodParam("max_iterations", "Max iterations", "integer", 10, 1, 20, 1),
        ),
    ),
    DetectionMethod(
        id=ISOLATION_FOREST,
        name="Isolation forest",
        category="ml",
        description="Tree-ensemble anomaly detection over the selected columns.",
        requires_external_runtime=True,
        is_available=False,
        compute_cost="slow",
        params=(
            MethodParam("contamination", "Contamination", "number", 0.1, 0.01, 0.5, 0.01,
                        "Expected share of outliers"),
            MethodParam("n_estimators", "Trees", "integer", 100, 50, 500, 10),
        ),
    ),
)

_BY_ID: Dict[str, DetectionMethod] = {m.id: m for m in DETECTION_METHODS}


def list_methods() -> List[DetectionMethod]:
    return list(DETECTION_METHODS)


def get_method(method_id: str) -> DetectionMethod:
    method = _BY_ID.get(method_id)
    if method is None:
        raise ValidationError(f"Unknown detection method: {method_id}")
    return method


def ensure_executable(method: DetectionMethod) -> None:
    if not method.is_available:
        raise MethodUnavailableError(method.id)
    if method.requires_external_runtime:
        raise MethodUnavailableError(method.id, "requires an external runtime")


# ============================================================================
# PARAMETER VALIDATION
# ============================================================================

def _check_value(method_id: str, param: MethodParam, value: Any) -> Any:
    if param.type == "boolean":
        if not isinstance(value, bool):
            raise ValidationError(f"{method_id}.{param.key} must be a boolean")
        return value

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{method_id}.{param.key} must be a number")
    if param.type == "integer" and float(value) != int(value):
        raise ValidationError(f"{method_id}.{param.key} must be an integer")
    if param.min is not None and value < param.min:
        raise ValidationError(f"{method_id}.{param.key} must be >= {param.min}")
    if param.max is not None and value > param.max:
        raise ValidationError(f"{method_id}.{param.key} must be <= {param.max}")
    return int(value) if param.type == "integer" else value


def check_params(method_id: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate the given parameters only; nothing is filled from defaults."""
    method = get_method(method_id)
    params = params or {}
    known = {p.key: p for p in method.params}

    unknown = sorted(set(params) - set(known))
    if unknown:
        raise ValidationError(f"Unknown parameters for {method_id}: {', '.join(unknown)}")

    checked = {key: _check_value(method_id, known[key], value) for key, value in params.items()}

    if method_id == THRESHOLD_STATIC and "min_value" in checked and "max_value" in checked:
        if checked["min_value"] > checked["max_value"]:
            raise ValidationError("min_value must not exceed max_value")
    return checked


def resolve_params(method_id: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Registry defaults overlaid with the validated caller parameters."""
    merged = {p.key: p.default for p in get_method(method_id).params}
    merged.update(check_params(method_id, params))
    return merged


# ============================================================================
# PREDICATES
# ============================================================================

@dataclass
class FlaggedCell:
    row_index: int
    value: float
    outlier_type: str
    threshold_value: Optional[float]


def zscore_bounds(values: pd.Series, threshold: float) -> Tuple[Optional[float], Optional[float]]:
    numeric = values.dropna()
    if numeric.empty:
        return None, None
    mean = numeric.mean()
    std = numeric.std(ddof=0)
    if std == 0 or np.isnan(std):
        return None, None
    return float(mean - threshold * std), float(mean + threshold * std)


def modified_zscore_bounds(values: pd.Series, threshold: float) -> Tuple[Optional[float], Optional[float]]:
    numeric = values.dropna()
    if numeric.empty:
        return None, None
    median = numeric.median()
    mad = (numeric - median).abs().median()
    if mad == 0 or np.isnan(mad):
        return None, None
    spread = threshold * MAD_SCALE * mad
    return float(median - spread), float(median + spread)


def iqr_bounds(values: pd.Series, multiplier: float) -> Tuple[Optional[float], Optional[float]]:
    numeric = values.dropna()
    if numeric.empty:
        return None, None
    q1 = numeric.quantile(0.25)
    q3 = numeric.quantile(0.75)
    iqr = q3 - q1
    return float(q1 - multiplier * iqr), float(q3 + multiplier * iqr)


def statistical_bounds(method_id: str, values: pd.Series,
                       params: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    if method_id == ZSCORE:
        return zscore_bounds(values, params["threshold"])
    if method_id == MODIFIED_ZSCORE:
        return modified_zscore_bounds(values, params["threshold"])
    if method_id == IQR:
        return iqr_bounds(values, params["multiplier"])
    raise MethodUnavailableError(method_id, "no in-process predicate")


def classify(values: pd.Series, lower: Optional[float], upper: Optional[float],
             include_boundary: bool = True) -> List[FlaggedCell]:
    """
    Flag numeric cells outside [lower, upper], in row order.

    ``values`` must already be numeric with NaN for missing/non-numeric cells.
    With include_boundary, a value equal to a bound is normal.
    """
    below = pd.Series(False, index=values.index)
    above = pd.Series(False, index=values.index)
    if lower is not None:
        below = values.le(lower) if not include_boundary else values.lt(lower)
    if upper is not None:
        above = values.ge(upper) if not include_boundary else values.gt(upper)
    above = above & ~below

    flagged = []
    for idx in values.index[below | above]:
        is_below = bool(below[idx])
        flagged.append(
            FlaggedCell(
                row_index=int(idx),
                value=float(values[idx]),
                outlier_type=BELOW_MIN if is_below else ABOVE_MAX,
                threshold_value=lower if is_below else upper,
            )
        )
    return flagged
