# -*- coding: utf-8 -*-
"""Portion size vs. symptom severity (dose-response) regression."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence

from ..statistics.regression import RegressionResult, compute_linear_regression

logger = logging.getLogger(__name__)

DoseResponseConfidence = Literal["high", "medium", "low", "insufficient"]

MIN_SAMPLE_SIZE = 5
LOW_CONFIDENCE_R2 = 0.4
HIGH_CONFIDENCE_R2 = 0.7
HIGH_CONFIDENCE_SAMPLE = 10
FLAT_SLOPE = 0.1

PORTION_SCALE: Dict[str, int] = {"small": 1, "medium": 2, "large": 3}


@dataclass
class DoseResponseResult:
    slope: float
    intercept: float
    r_squared: float
    confidence: DoseResponseConfidence
    sample_size: int
    portion_severity_pairs: List[Dict[str, float]] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "r_squared": self.r_squared,
            "confidence": self.confidence,
            "sample_size": self.sample_size,
            "portion_severity_pairs": list(self.portion_severity_pairs),
            "message": self.message,
        }


def normalize_portion_size(portion: str) -> int:
    value = PORTION_SCALE.get(str(portion).strip().lower())
    if value is None:
        logger.warning('Unknown portion size "%s", defaulting to medium', portion)
        return PORTION_SCALE["medium"]
    return value


def _confidence(r_squared: float, sample_size: int) -> DoseResponseConfidence:
    if sample_size < MIN_SAMPLE_SIZE:
        return "insufficient"
    if r_squared >= HIGH_CONFIDENCE_R2 and sample_size >= HIGH_CONFIDENCE_SAMPLE:
        return "high"
    if r_squared < LOW_CONFIDENCE_R2:
        return "low"
    return "medium"


def _message(regression: RegressionResult, confidence: DoseResponseConfidence, sample_size: int) -> str:
    if abs(regression.slope) < FLAT_SLOPE:
        relationship = "No clear dose-response relationship detected"
    elif regression.slope > 0:
        relationship = "Larger portions correlate with more severe symptoms"
    else:
        relationship = "Larger portions correlate with less severe symptoms"

    r2 = f"{regression.r_squared:.2f}"
    if confidence == "low":
        qualifier = f"(Low confidence: R² = {r2} < 0.4)"
    elif confidence == "medium":
        qualifier = f"(Medium confidence: R² = {r2})"
    else:
        qualifier = f"(High confidence: R² = {r2})"
    return f"{relationship} {qualifier}. Based on {sample_size} observations."


def compute_dose_response(portions: Sequence[float], severities: Sequence[float]) -> DoseResponseResult:
    """Regress severity on portion size (1=small, 2=medium, 3=large).

    Raises ValueError when the two sequences differ in length.
    """
    if len(portions) != len(severities):
        raise ValueError("Portion sizes and severity scores must have the same length")

    sample_size = len(portions)
    if sample_size < MIN_SAMPLE_SIZE:
        return DoseResponseResult(
            slope=0.0,
            intercept=0.0,
            r_squared=0.0,
            confidence="insufficient",
            sample_size=sample_size,
            message=f"Insufficient data: minimum {MIN_SAMPLE_SIZE} events required (found {sample_size})",
        )

    pairs = [{"portion": float(p), "severity": float(s)} for p, s in zip(portions, severities)]
    try:
        regression = compute_linear_regression([(float(p), float(s)) for p, s in zip(portions, severities)])
    except ValueError as exc:
        logger.warning("Dose-response regression failed: %s", exc)
        return DoseResponseResult(
            slope=0.0,
            intercept=0.0,
            r_squared=0.0,
            confidence="insufficient",
            sample_size=sample_size,
            portion_severity_pairs=pairs,
            message=f"Analysis failed: {exc}",
        )

    confidence = _confidence(regression.r_squared, sample_size)
    return DoseResponseResult(
        slope=regression.slope,
        intercept=regression.intercept,
        r_squared=regression.r_squared,
        confidence=confidence,
        sample_size=sample_size,
        portion_severity_pairs=pairs,
        message=_message(regression, confidence, sample_size),
    )
