# -*- coding: utf-8 -*-
"""Regression and rank-correlation primitives."""

from .regression import (
    RegressionResult,
    compute_linear_regression,
    predict,
    remove_outliers,
    validate_regression_input,
)
from .spearman import (
    SpearmanResult,
    calculate_p_value,
    classify_strength,
    is_significant,
    rank_data,
    spearman_correlation,
)

__all__ = [
    "RegressionResult",
    "SpearmanResult",
    "calculate_p_value",
    "classify_strength",
    "compute_linear_regression",
    "is_significant",
    "predict",
    "rank_data",
    "remove_outliers",
    "spearman_correlation",
    "validate_regression_input",
]
