# -*- coding: utf-8 -*-
"""Ordinary least-squares linear regression."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

EPSILON = 1e-10
DEFAULT_MIN_POINTS = 14

Point = Tuple[float, float]


@dataclass
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "r_squared": self.r_squared,
        }


def _as_arrays(points: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    if not points:
        return np.zeros(0, dtype=float), np.zeros(0, dtype=float)
    arr = np.asarray(points, dtype=float).reshape(-1, 2)
    return arr[:, 0], arr[:, 1]


def compute_linear_regression(points: Sequence[Point]) -> RegressionResult:
    """Fit y = slope * x + intercept.

    Raises ValueError for fewer than two points or when every x is identical.
    """
    n = len(points)
    if n < 2:
        raise ValueError("Linear regression requires at least 2 points")

    x, y = _as_arrays(points)
    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float((x * y).sum())
    sum_x2 = float((x * x).sum())

    denominator = n * sum_x2 - sum_x * sum_x
    if abs(denominator) < EPSILON:
        raise ValueError("Cannot compute regression: all x values are identical")

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_total = float(((y - mean_y) ** 2).sum())
    ss_residual = float(((y - (slope * x + intercept)) ** 2).sum())

    if ss_total < EPSILON:
        # Flat series: a flat fit explains it perfectly.
        r_squared = 1.0 if abs(slope) < EPSILON else 0.0
    else:
        r_squared = 1.0 - ss_residual / ss_total

    return RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared)


def predict(x: float, regression: RegressionResult) -> float:
    return regression.slope * x + regression.intercept


def validate_regression_input(
    points: Sequence[Point],
    min_points: int = DEFAULT_MIN_POINTS,
) -> Tuple[bool, Optional[str]]:
    """Return (is_valid, error_message) for a prospective regression input."""
    if len(points) < min_points:
        return False, f"Insufficient data: need at least {min_points} points, got {len(points)}"

    for px, py in points:
        if not (math.isfinite(float(px)) and math.isfinite(float(py))):
            return False, "Invalid data: all values must be finite numbers"

    x, _ = _as_arrays(points)
    if float(x.max() - x.min()) < EPSILON:
        return False, "Invalid data: x values have no variance"

    return True, None


def remove_outliers(points: Sequence[Point]) -> List[Point]:
    """Drop points whose y lies outside 1.5 * IQR of the y quartiles."""
    if len(points) < 4:
        return list(points)

    ys = sorted(float(py) for _, py in points)
    n = len(ys)
    q1 = ys[n // 4]
    q3 = ys[(3 * n) // 4]
    iqr = q3 - q1
    lower = q1 - 1.5 * iqr
    upper = q3 + 1.5 * iqr
    return [(px, py) for px, py in points if lower <= py <= upper]
