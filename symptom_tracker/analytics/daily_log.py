# -*- coding: utf-8 -*-
"""Daily-log metric vs. symptom/flare correlation.

Days whose log value passes ``value <op> threshold`` become point events: at
08:00 UTC when the log is treated as the cause (forward), at 22:00 UTC when it
is treated as the effect (reverse). The window scorer then runs on those events
against symptom instances of one name, or against flare start times.
"""

from __future__ import annotations

import operator as op
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Literal, Optional

from ..journal import storage as journal
from ..timeutil import parse_date_key, to_ms, utc_now
from .confidence import determine_confidence
from .windows import TimeRange, WindowScore, best_window, compute_consistency, compute_pair_with_data, window_by_label

DailyLogMetric = Literal["sleep_hours", "sleep_quality", "mood", "stress_level"]
Direction = Literal["forward", "reverse"]

METRICS = ("sleep_hours", "sleep_quality", "mood", "stress_level")
FLARE_TARGET = "flare"
FORWARD_HOUR = 8
REVERSE_HOUR = 22

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": op.lt,
    ">": op.gt,
    "<=": op.le,
    ">=": op.ge,
}


@dataclass
class DailyLogCorrelationResult:
    metric: str
    symptom_id: str
    direction: str
    window_scores: List[WindowScore]
    best_window: Optional[WindowScore]
    computed_at: int
    sample_size: int
    confidence: Optional[str] = None
    consistency: Optional[float] = None
    significant_days: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "metric": self.metric,
            "symptom_id": self.symptom_id,
            "direction": self.direction,
            "window_scores": [w.to_dict() for w in self.window_scores],
            "best_window": self.best_window.to_dict() if self.best_window else None,
            "computed_at": self.computed_at,
            "sample_size": self.sample_size,
            "confidence": self.confidence,
            "consistency": self.consistency,
            "significant_days": list(self.significant_days),
        }


def log_events(days: List[str], direction: str) -> List[int]:
    hour = FORWARD_HOUR if direction == "forward" else REVERSE_HOUR
    return [to_ms(parse_date_key(day) + timedelta(hours=hour)) for day in days]


def compute_correlation(
    user_id: str,
    metric: str,
    symptom_id: str,
    direction: str,
    time_range: TimeRange,
    threshold: float,
    operator: str,
) -> DailyLogCorrelationResult:
    """Raises ValueError for an unknown metric, direction or operator."""
    if metric not in METRICS:
        raise ValueError(f"Unsupported daily log metric: {metric}")
    if direction not in ("forward", "reverse"):
        raise ValueError(f"Unsupported direction: {direction}")
    compare = OPERATORS.get(operator)
    if compare is None:
        raise ValueError(f"Unsupported operator: {operator}")

    logs = journal.find_daily_logs_by_date_range(user_id, time_range.start, time_range.end)
    days = [log["date"] for log in logs if log.get(metric) is not None and compare(float(log[metric]), threshold)]
    day_events = log_events(days, direction)

    if symptom_id == FLARE_TARGET:
        flares = journal.find_flares_by_date_range(user_id, time_range.start, time_range.end)
        other = [to_ms(f["start_date"]) for f in flares]
    else:
        instances = journal.find_symptom_instances_by_date_range(
            user_id, time_range.start, time_range.end, name=symptom_id
        )
        other = [to_ms(i["timestamp"]) for i in instances]

    causes, effects = (day_events, other) if direction == "forward" else (other, day_events)
    scores = compute_pair_with_data(causes, effects, time_range)
    best = best_window(scores)

    confidence = None
    consistency = None
    if best is not None:
        consistency = compute_consistency(causes, effects, window_by_label(best.window))
        confidence = determine_confidence(len(causes), consistency, best.p_value)

    return DailyLogCorrelationResult(
        metric=metric,
        symptom_id=symptom_id,
        direction=direction,
        window_scores=scores,
        best_window=best,
        computed_at=to_ms(utc_now()),
        sample_size=len(causes),
        confidence=confidence,
        consistency=consistency,
        significant_days=days,
    )
