# -*- coding: utf-8 -*-
"""Ordering and grouping of correlation insights.

Items are stored correlation dicts (``coefficient``, ``sample_size``, ``type``).
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

from .engine import CORRELATION_TYPES

DEFAULT_THRESHOLD = 0.3
DEFAULT_TOP = 5
STRONG_COEFFICIENT = 0.7

Insight = Dict[str, Any]


def calculate_priority_score(insight: Insight) -> float:
    """|rho| * ln(n); plain |rho| below two samples."""
    coefficient = abs(float(insight["coefficient"]))
    sample_size = int(insight["sample_size"])
    if sample_size < 2:
        return coefficient
    return coefficient * math.log(sample_size)


def sort_insights_by_priority(insights: Sequence[Insight]) -> List[Insight]:
    return sorted(
        insights,
        key=lambda i: (calculate_priority_score(i), abs(float(i["coefficient"]))),
        reverse=True,
    )


def group_insights_by_type(insights: Sequence[Insight]) -> Dict[str, List[Insight]]:
    grouped: Dict[str, List[Insight]] = {kind: [] for kind in CORRELATION_TYPES}
    for insight in insights:
        grouped.setdefault(insight["type"], []).append(insight)
    return grouped


def filter_weak_correlations(insights: Sequence[Insight], threshold: float = DEFAULT_THRESHOLD) -> List[Insight]:
    return [i for i in insights if abs(float(i["coefficient"])) >= threshold]


def get_top_insights(
    insights: Sequence[Insight],
    count: int = DEFAULT_TOP,
    threshold: float = DEFAULT_THRESHOLD,
) -> List[Insight]:
    return sort_insights_by_priority(filter_weak_correlations(insights, threshold))[:count]


def separate_strong_correlations(insights: Sequence[Insight]) -> Dict[str, List[Insight]]:
    strong = [i for i in insights if abs(float(i["coefficient"])) >= STRONG_COEFFICIENT]
    moderate = [i for i in insights if abs(float(i["coefficient"])) < STRONG_COEFFICIENT]
    return {
        "strong": sort_insights_by_priority(strong),
        "moderate": sort_insights_by_priority(moderate),
    }
