# -*- coding: utf-8 -*-
"""Synergistic food-pair detection.

A food pair is synergistic when the share of its meals followed by a symptom
within 24 hours beats the stronger of its two individual correlations by more
than ``SYNERGY_THRESHOLD``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations as iter_combinations
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from ..timeutil import HOUR_MS, to_ms, utc_now
from .windows import TimeRange, chi_square, chi_square_to_p_value

SYNERGY_THRESHOLD = 0.15
MIN_SAMPLE_SIZE = 3
SYMPTOM_WINDOW_MS = 24 * HOUR_MS

ANY_SYMPTOM_ID = "any-symptom"
ANY_SYMPTOM_NAME = "Symptoms"


@dataclass
class MealEvent:
    meal_id: str
    food_ids: List[str]
    timestamp: int
    food_names: List[str] = field(default_factory=list)


@dataclass
class IndividualCorrelation:
    food_id: str
    food_name: str
    symptom_id: str
    symptom_name: str
    correlation: float


@dataclass
class FoodCombination:
    food_ids: List[str]
    food_names: List[str]
    symptom_id: str
    symptom_name: str
    combination_correlation: float
    individual_max: float
    synergistic: bool
    p_value: float
    confidence: Literal["high", "medium", "low"]
    consistency: float
    sample_size: int
    computed_at: int

    @property
    def synergy_delta(self) -> float:
        return self.combination_correlation - self.individual_max

    def to_dict(self) -> dict:
        return {
            "food_ids": list(self.food_ids),
            "food_names": list(self.food_names),
            "symptom_id": self.symptom_id,
            "symptom_name": self.symptom_name,
            "combination_correlation": self.combination_correlation,
            "individual_max": self.individual_max,
            "synergistic": self.synergistic,
            "p_value": self.p_value,
            "confidence": self.confidence,
            "consistency": self.consistency,
            "sample_size": self.sample_size,
            "computed_at": self.computed_at,
        }


def _confidence(sample_size: int, p_value: float) -> Literal["high", "medium", "low"]:
    if sample_size >= 10 and p_value < 0.01:
        return "high"
    if sample_size >= 5 and p_value < 0.05:
        return "medium"
    return "low"


def food_pairs(food_ids: Sequence[str]) -> List[Tuple[str, str]]:
    unique = sorted(set(food_ids))
    return list(iter_combinations(unique, 2))


def pair_key(pair: Sequence[str]) -> str:
    return "+".join(sorted(pair))


def _followed_by_symptom(meal_ts: int, symptoms: Sequence[int]) -> bool:
    return any(0 <= s - meal_ts <= SYMPTOM_WINDOW_MS for s in symptoms)


def detect_combinations(
    meals: Sequence[MealEvent],
    symptoms: Sequence[int],
    individual_correlations: Sequence[IndividualCorrelation],
    time_range: Optional[TimeRange] = None,
    min_sample_size: int = MIN_SAMPLE_SIZE,
    now_ms: Optional[int] = None,
) -> List[FoodCombination]:
    if not meals or not symptoms:
        return []

    if time_range is not None:
        meals = [m for m in meals if time_range.start <= m.timestamp <= time_range.end]
    computed_at = now_ms if now_ms is not None else to_ms(utc_now())

    pair_meals: Dict[str, List[MealEvent]] = {}
    meal_pairs: Dict[int, set] = {}
    for idx, meal in enumerate(meals):
        keys = {pair_key(p) for p in food_pairs(meal.food_ids)}
        meal_pairs[idx] = keys
        for key in keys:
            pair_meals.setdefault(key, []).append(meal)

    individual = {ic.food_id: ic.correlation for ic in individual_correlations}
    results: List[FoodCombination] = []

    for key, with_pair in pair_meals.items():
        if len(with_pair) < min_sample_size:
            continue

        food_ids = key.split("+")
        sample = with_pair[0]
        names = []
        for food_id in food_ids:
            idx = sample.food_ids.index(food_id) if food_id in sample.food_ids else -1
            if 0 <= idx < len(sample.food_names):
                names.append(sample.food_names[idx])
            else:
                names.append(food_id)

        combo_hit = sum(1 for m in with_pair if _followed_by_symptom(m.timestamp, symptoms))
        combo_miss = len(with_pair) - combo_hit

        baseline_hit = 0
        baseline_miss = 0
        for idx, meal in enumerate(meals):
            if key in meal_pairs[idx]:
                continue
            if _followed_by_symptom(meal.timestamp, symptoms):
                baseline_hit += 1
            else:
                baseline_miss += 1

        p_value = chi_square_to_p_value(chi_square(combo_hit, combo_miss, baseline_hit, baseline_miss))
        combination_correlation = combo_hit / len(with_pair)
        individual_max = max([individual.get(f, 0.0) for f in food_ids] + [0.0])

        results.append(
            FoodCombination(
                food_ids=food_ids,
                food_names=names,
                symptom_id=ANY_SYMPTOM_ID,
                symptom_name=ANY_SYMPTOM_NAME,
                combination_correlation=combination_correlation,
                individual_max=individual_max,
                synergistic=combination_correlation > individual_max + SYNERGY_THRESHOLD,
                p_value=p_value,
                confidence=_confidence(len(with_pair), p_value),
                consistency=combination_correlation,
                sample_size=len(with_pair),
                computed_at=computed_at,
            )
        )

    results.sort(key=lambda c: c.synergy_delta, reverse=True)
    return results
