# -*- coding: utf-8 -*-
"""Spearman correlation engine over daily time series.

Every tracked cause (food, trigger, medication) is paired with every tracked
effect (symptom, and flare severity when flares exist) at each lag window.
Only pairs with at least ``MIN_ALIGNED_POINTS`` aligned days are tested.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from ..statistics.spearman import SpearmanResult, spearman_correlation
from ..timeutil import iso, subtract_time_range, utc_now
from .extractor import DailySeries, align_time_series, extract_all_time_series

logger = logging.getLogger(__name__)

CorrelationType = Literal[
    "food-symptom",
    "trigger-symptom",
    "medication-symptom",
    "food-flare",
    "trigger-flare",
]

CORRELATION_TYPES: List[str] = [
    "food-symptom",
    "trigger-symptom",
    "medication-symptom",
    "food-flare",
    "trigger-flare",
]
LAG_WINDOWS = (0, 6, 12, 24, 48)
TIME_RANGES = ("7d", "30d", "90d")
MIN_ALIGNED_POINTS = 10
BATCH_SIZE = 100
DEFAULT_THRESHOLD = 0.3
FLARE_ITEM = "flare_severity"


@dataclass
class CorrelationPair:
    type: str
    item1: str
    item2: str
    series1: List[float]
    series2: List[float]
    lag_hours: int
    time_range: str


@dataclass
class CorrelationRecord:
    user_id: str
    type: str
    item1: str
    item2: str
    coefficient: float
    strength: str
    significance: float
    sample_size: int
    lag_hours: int
    confidence: str
    time_range: str
    calculated_at: str
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "item1": self.item1,
            "item2": self.item2,
            "coefficient": self.coefficient,
            "strength": self.strength,
            "significance": self.significance,
            "sample_size": self.sample_size,
            "lag_hours": self.lag_hours,
            "confidence": self.confidence,
            "time_range": self.time_range,
            "calculated_at": self.calculated_at,
        }


def determine_confidence(sample_size: int, p_value: float) -> str:
    if sample_size >= 30 and p_value < 0.01:
        return "high"
    if sample_size >= 10 and p_value < 0.05:
        return "medium"
    return "low"


def meets_significance_criteria(record: CorrelationRecord, threshold: float = DEFAULT_THRESHOLD) -> bool:
    return (
        abs(record.coefficient) >= threshold
        and record.sample_size >= MIN_ALIGNED_POINTS
        and record.significance < 0.05
    )


def rank_by_strength(records: List[CorrelationRecord]) -> List[CorrelationRecord]:
    return sorted(records, key=lambda r: abs(r.coefficient), reverse=True)


def calculate_correlation(series1: List[float], series2: List[float]) -> Optional[SpearmanResult]:
    return spearman_correlation(series1, series2)


def _pairs_for(
    kind: str,
    causes: Dict[str, DailySeries],
    effects: Dict[str, DailySeries],
    time_range: str,
) -> List[CorrelationPair]:
    pairs: List[CorrelationPair] = []
    for item1, cause_series in causes.items():
        for item2, effect_series in effects.items():
            for lag in LAG_WINDOWS:
                aligned1, aligned2 = align_time_series(cause_series, effect_series, lag)
                if len(aligned1) >= MIN_ALIGNED_POINTS:
                    pairs.append(
                        CorrelationPair(
                            type=kind,
                            item1=item1,
                            item2=item2,
                            series1=aligned1,
                            series2=aligned2,
                            lag_hours=lag,
                            time_range=time_range,
                        )
                    )
    return pairs


def generate_correlation_pairs(
    user_id: str,
    time_range: str,
    now: Optional[datetime] = None,
) -> List[CorrelationPair]:
    end = now or utc_now()
    start = subtract_time_range(end, time_range)
    series = extract_all_time_series(user_id, start, end)

    pairs: List[CorrelationPair] = []
    pairs += _pairs_for("food-symptom", series.food, series.symptom, time_range)
    pairs += _pairs_for("trigger-symptom", series.trigger, series.symptom, time_range)
    pairs += _pairs_for("medication-symptom", series.medication, series.symptom, time_range)
    if series.flare:
        flare = {FLARE_ITEM: series.flare}
        pairs += _pairs_for("food-flare", series.food, flare, time_range)
        pairs += _pairs_for("trigger-flare", series.trigger, flare, time_range)
    return pairs


def _score_pairs(user_id: str, pairs: List[CorrelationPair], calculated_at: str) -> List[CorrelationRecord]:
    records: List[CorrelationRecord] = []
    for offset in range(0, len(pairs), BATCH_SIZE):
        for pair in pairs[offset : offset + BATCH_SIZE]:
            coefficient = calculate_correlation(pair.series1, pair.series2)
            if coefficient is None:
                continue
            records.append(
                CorrelationRecord(
                    user_id=user_id,
                    type=pair.type,
                    item1=pair.item1,
                    item2=pair.item2,
                    coefficient=coefficient.rho,
                    strength=coefficient.strength,
                    significance=coefficient.p_value,
                    sample_size=coefficient.sample_size,
                    lag_hours=pair.lag_hours,
                    confidence=determine_confidence(coefficient.sample_size, coefficient.p_value),
                    time_range=pair.time_range,
                    calculated_at=calculated_at,
                )
            )
    return records


def find_significant_correlations(
    user_id: str,
    time_range: str,
    threshold: float = DEFAULT_THRESHOLD,
    now: Optional[datetime] = None,
) -> List[CorrelationRecord]:
    started = time.perf_counter()
    end = now or utc_now()
    pairs = generate_correlation_pairs(user_id, time_range, now=end)
    logger.info("Generated %s correlation pairs for user=%s range=%s", len(pairs), user_id, time_range)

    records = _score_pairs(user_id, pairs, iso(end))
    significant = [r for r in records if meets_significance_criteria(r, threshold)]

    elapsed = time.perf_counter() - started
    logger.info(
        "Correlation pass done: %s pairs, %s significant in %.3fs",
        len(pairs),
        len(significant),
        elapsed,
    )
    return rank_by_strength(significant)


def calculate_pair_with_all_lags(
    user_id: str,
    type: str,
    item1: str,
    item2: str,
    time_range: str,
    now: Optional[datetime] = None,
) -> List[CorrelationRecord]:
    end = now or utc_now()
    pairs = [
        p
        for p in generate_correlation_pairs(user_id, time_range, now=end)
        if p.type == type and p.item1 == item1 and p.item2 == item2
    ]
    return rank_by_strength(_score_pairs(user_id, pairs, iso(end)))


def get_analysis_statistics(
    user_id: str,
    time_range: str,
    threshold: float = DEFAULT_THRESHOLD,
    now: Optional[datetime] = None,
) -> dict:
    end = now or utc_now()
    pairs = generate_correlation_pairs(user_id, time_range, now=end)
    significant = find_significant_correlations(user_id, time_range, threshold, now=end)

    by_type = {kind: 0 for kind in CORRELATION_TYPES}
    for record in significant:
        by_type[record.type] = by_type.get(record.type, 0) + 1
    by_strength = {
        strength: sum(1 for r in significant if r.strength == strength)
        for strength in ("strong", "moderate", "weak")
    }
    return {
        "total_pairs": len(pairs),
        "significant_count": len(significant),
        "by_type": by_type,
        "by_strength": by_strength,
    }
