# -*- coding: utf-8 -*-
"""Three-factor confidence for window correlations."""

from __future__ import annotations

from typing import Literal

ConfidenceLevel = Literal["high", "medium", "low"]

HIGH_SAMPLE_SIZE = 5
MEDIUM_SAMPLE_SIZE = 3
HIGH_CONSISTENCY = 0.70
MEDIUM_CONSISTENCY = 0.50
HIGH_P_VALUE = 0.01
P_VALUE_THRESHOLD = 0.05

_RANK = {"low": 0, "medium": 1, "high": 2}


def _sample_tier(sample_size: int) -> ConfidenceLevel:
    if sample_size >= HIGH_SAMPLE_SIZE:
        return "high"
    if sample_size >= MEDIUM_SAMPLE_SIZE:
        return "medium"
    return "low"


def _consistency_tier(consistency: float) -> ConfidenceLevel:
    if consistency >= HIGH_CONSISTENCY:
        return "high"
    if consistency >= MEDIUM_CONSISTENCY:
        return "medium"
    return "low"


def _p_value_tier(p_value: float) -> ConfidenceLevel:
    if p_value < HIGH_P_VALUE:
        return "high"
    if p_value < P_VALUE_THRESHOLD:
        return "medium"
    return "low"


def determine_confidence(sample_size: int, consistency: float, p_value: float) -> ConfidenceLevel:
    """The weakest of the sample-size, consistency and p-value tiers."""
    tiers = (
        _sample_tier(sample_size),
        _consistency_tier(consistency),
        _p_value_tier(p_value),
    )
    return min(tiers, key=lambda tier: _RANK[tier])
