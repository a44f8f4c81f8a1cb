# -*- coding: utf-8 -*-
"""Spearman rank correlation with a t-approximation p-value.

Ranks use average ranking for ties. The p-value is two-tailed, from Student's t
with n - 2 degrees of freedom.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

CorrelationStrength = Literal["strong", "moderate", "weak"]

STRONG_THRESHOLD = 0.7
MODERATE_THRESHOLD = 0.3
SIGNIFICANCE_ALPHA = 0.05
MIN_SAMPLE_FOR_P_VALUE = 10


@dataclass
class SpearmanResult:
    rho: float
    strength: CorrelationStrength
    sample_size: int
    p_value: float
    is_significant: bool

    def to_dict(self) -> dict:
        return {
            "rho": self.rho,
            "strength": self.strength,
            "sample_size": self.sample_size,
            "p_value": self.p_value,
            "is_significant": self.is_significant,
        }


def rank_data(values: Sequence[float]) -> List[float]:
    """1-based ranks; tied values share their average rank."""
    if len(values) == 0:
        return []
    ranks = pd.Series(list(values), dtype=float).rank(method="average")
    return [float(r) for r in ranks.tolist()]


def classify_strength(rho: float) -> CorrelationStrength:
    abs_rho = abs(rho)
    if abs_rho >= STRONG_THRESHOLD:
        return "strong"
    if abs_rho >= MODERATE_THRESHOLD:
        return "moderate"
    return "weak"


def spearman_correlation(x: Sequence[float], y: Sequence[float]) -> Optional[SpearmanResult]:
    """Spearman's rho between two paired series.

    Returns None when fewer than three pairs exist or either series is
    constant. Raises ValueError when the series lengths differ.
    """
    n = len(x)
    if n < 3:
        return None
    if len(x) != len(y):
        raise ValueError(
            f"Array length mismatch: x has {len(x)} elements, y has {len(y)} elements"
        )

    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if np.all(x_arr == x_arr[0]) or np.all(y_arr == y_arr[0]):
        return None

    diff = np.asarray(rank_data(x_arr), dtype=float) - np.asarray(rank_data(y_arr), dtype=float)
    sum_d2 = float((diff * diff).sum())
    rho = 1.0 - (6.0 * sum_d2) / (n * (n * n - 1))

    p_value = calculate_p_value(rho, n)
    return SpearmanResult(
        rho=rho,
        strength=classify_strength(rho),
        sample_size=n,
        p_value=p_value,
        is_significant=is_significant(p_value),
    )


def calculate_p_value(rho: float, n: int) -> float:
    if n < MIN_SAMPLE_FOR_P_VALUE:
        return 1.0
    if abs(rho) >= 1.0:
        return 0.0001

    t_stat = rho * math.sqrt((n - 2) / (1 - rho * rho))
    return float(2.0 * sp_stats.t.sf(abs(t_stat), n - 2))


def is_significant(p_value: float, alpha: float = SIGNIFICANCE_ALPHA) -> bool:
    return p_value < alpha

