# -*- coding: utf-8 -*-
"""Food/symptom correlation orchestration.

Hydrates meals and symptom instances from the journal, scores them with the
window scorer, adds dose-response and confidence details, and detects
synergistic food pairs. Single-pair results go through the correlation cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..journal import storage as journal
from ..timeutil import HOUR_MS, to_ms, utc_now
from .cache import CorrelationCache, correlation_cache
from .combinations import (
    MIN_SAMPLE_SIZE,
    FoodCombination,
    IndividualCorrelation,
    MealEvent,
    detect_combinations,
)
from .confidence import P_VALUE_THRESHOLD, determine_confidence
from .dose_response import DoseResponseResult, compute_dose_response, normalize_portion_size
from .windows import (
    TimeRange,
    WindowScore,
    best_window,
    compute_consistency,
    compute_pair_with_data,
    window_by_label,
)

logger = logging.getLogger(__name__)

DOSE_RESPONSE_WINDOW_MS = 24 * HOUR_MS


@dataclass
class CorrelationResult:
    food_id: str
    symptom_id: str
    window_scores: List[WindowScore]
    best_window: Optional[WindowScore]
    computed_at: int
    sample_size: int
    dose_response: Optional[DoseResponseResult] = None
    confidence: Optional[str] = None
    consistency: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "food_id": self.food_id,
            "symptom_id": self.symptom_id,
            "window_scores": [w.to_dict() for w in self.window_scores],
            "best_window": self.best_window.to_dict() if self.best_window else None,
            "computed_at": self.computed_at,
            "sample_size": self.sample_size,
            "dose_response": self.dose_response.to_dict() if self.dose_response else None,
            "confidence": self.confidence,
            "consistency": self.consistency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrelationResult":
        best = data.get("best_window")
        dose = data.get("dose_response")
        return cls(
            food_id=data["food_id"],
            symptom_id=data["symptom_id"],
            window_scores=[WindowScore(**w) for w in data.get("window_scores") or []],
            best_window=WindowScore(**best) if best else None,
            computed_at=int(data["computed_at"]),
            sample_size=int(data["sample_size"]),
            dose_response=DoseResponseResult(**dose) if dose else None,
            confidence=data.get("confidence"),
            consistency=data.get("consistency"),
        )


@dataclass
class EnhancedCorrelationResult:
    correlations: List[CorrelationResult]
    combinations: List[FoodCombination]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "correlations": [c.to_dict() for c in self.correlations],
            "combinations": [c.to_dict() for c in self.combinations],
            "metadata": dict(self.metadata),
        }


def _range_key(time_range: TimeRange) -> str:
    return f"{time_range.start}-{time_range.end}"


def _events_with_food(events: Sequence[Dict[str, Any]], food_id: str) -> List[Dict[str, Any]]:
    return [e for e in events if food_id in (e.get("food_ids") or [])]


def _timestamps(records: Sequence[Dict[str, Any]]) -> List[int]:
    return [to_ms(r["timestamp"]) for r in records]


class CorrelationOrchestrationService:
    def __init__(self, cache: Optional[CorrelationCache] = None) -> None:
        self.cache = cache or correlation_cache

    def _hydrate(self, user_id: str, symptom_id: str, time_range: TimeRange) -> Tuple[List[dict], List[dict]]:
        meals = journal.find_food_events_by_date_range(user_id, time_range.start, time_range.end)
        symptoms = journal.find_symptom_instances_by_date_range(
            user_id, time_range.start, time_range.end, name=symptom_id
        )
        return meals, symptoms

    def compute_correlation(
        self,
        user_id: str,
        food_id: str,
        symptom_id: str,
        time_range: TimeRange,
        use_cache: bool = True,
    ) -> CorrelationResult:
        """Window scores for one food against one symptom (symptom_id is the symptom name)."""
        range_key = _range_key(time_range)
        if use_cache:
            cached = self.cache.get(user_id, food_id, symptom_id, range_key)
            if cached is not None:
                return CorrelationResult.from_dict(cached)

        meals, symptoms = self._hydrate(user_id, symptom_id, time_range)
        result = self._compute_from_records(food_id, symptom_id, meals, symptoms, time_range)
        if use_cache:
            self.cache.set(user_id, food_id, symptom_id, result.to_dict(), time_range=range_key)
        return result

    def _compute_from_records(
        self,
        food_id: str,
        symptom_id: str,
        meals: Sequence[Dict[str, Any]],
        symptoms: Sequence[Dict[str, Any]],
        time_range: TimeRange,
    ) -> CorrelationResult:
        relevant = _events_with_food(meals, food_id)
        food_ts = _timestamps(relevant)
        symptom_ts = _timestamps(symptoms)

        scores = compute_pair_with_data(food_ts, symptom_ts, time_range)
        return CorrelationResult(
            food_id=food_id,
            symptom_id=symptom_id,
            window_scores=scores,
            best_window=best_window(scores),
            computed_at=to_ms(utc_now()),
            sample_size=len(food_ts),
            dose_response=self._dose_response(relevant, symptoms, food_id),
        )

    @staticmethod
    def _dose_response(
        meals: Sequence[Dict[str, Any]],
        symptoms: Sequence[Dict[str, Any]],
        food_id: str,
    ) -> Optional[DoseResponseResult]:
        portions: List[float] = []
        severities: List[float] = []
        symptom_points = [(to_ms(s["timestamp"]), float(s["severity"])) for s in symptoms]
        for meal in meals:
            portion = (meal.get("portion_map") or {}).get(food_id)
            if not portion:
                continue
            eaten = to_ms(meal["timestamp"])
            after = [sev for ts, sev in symptom_points if eaten <= ts <= eaten + DOSE_RESPONSE_WINDOW_MS]
            if after:
                portions.append(float(normalize_portion_size(portion)))
                severities.append(max(after))
        if not portions:
            return None
        return compute_dose_response(portions, severities)

    def compute_multiple_pairs(
        self,
        user_id: str,
        pairs: Sequence[Tuple[str, str]],
        time_range: TimeRange,
    ) -> List[CorrelationResult]:
        return [self.compute_correlation(user_id, food_id, symptom_id, time_range) for food_id, symptom_id in pairs]

    def compute_with_combinations(
        self,
        user_id: str,
        symptom_id: str,
        time_range: TimeRange,
        min_sample_size: int = MIN_SAMPLE_SIZE,
    ) -> EnhancedCorrelationResult:
        meals, symptoms = self._hydrate(user_id, symptom_id, time_range)
        symptom_ts = _timestamps(symptoms)
        names = journal.food_name_map(user_id)

        food_ids: Dict[str, None] = {}
        for meal in meals:
            for food_id in meal.get("food_ids") or []:
                food_ids.setdefault(food_id, None)

        individual: List[CorrelationResult] = []
        for food_id in food_ids:
            result = self._compute_from_records(food_id, symptom_id, meals, symptoms, time_range)
            if result.best_window is not None:
                window = window_by_label(result.best_window.window)
                consistency = compute_consistency(
                    _timestamps(_events_with_food(meals, food_id)), symptom_ts, window
                )
                result.consistency = consistency
                result.confidence = determine_confidence(
                    result.sample_size, consistency, result.best_window.p_value
                )
            individual.append(result)

        significant = [
            r for r in individual if r.best_window is not None and r.best_window.p_value < P_VALUE_THRESHOLD
        ]
        individual_correlations = [
            IndividualCorrelation(
                food_id=r.food_id,
                food_name=names.get(r.food_id, r.food_id),
                symptom_id=symptom_id,
                symptom_name=symptom_id,
                correlation=r.best_window.score,
            )
            for r in significant
            if r.best_window is not None and r.best_window.score > 0
        ]

        meal_events = [
            MealEvent(
                meal_id=meal.get("meal_id") or f"meal-{meal['id']}",
                food_ids=list(meal.get("food_ids") or []),
                food_names=[names.get(f, f) for f in meal.get("food_ids") or []],
                timestamp=to_ms(meal["timestamp"]),
            )
            for meal in meals
        ]
        combinations = detect_combinations(
            meal_events,
            symptom_ts,
            individual_correlations,
            time_range,
            min_sample_size,
        )
        logger.info(
            "Combination analysis user=%s symptom=%s: %s significant foods, %s combinations",
            user_id,
            symptom_id,
            len(significant),
            len(combinations),
        )
        return EnhancedCorrelationResult(
            correlations=significant,
            combinations=combinations,
            metadata={
                "user_id": user_id,
                "range": time_range.to_dict(),
                "computed_at": to_ms(utc_now()),
                "total_pairs": len(significant),
                "combinations_detected": len(combinations),
            },
        )


correlation_orchestration_service = CorrelationOrchestrationService()
