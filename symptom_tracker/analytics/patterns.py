# -*- coding: utf-8 -*-
"""Recurring sequence and day-of-week pattern detection.

A stored correlation (|rho| >= 0.3) becomes a pattern when the timeline holds
cause events followed by matching result events ``lag_hours`` later, give or
take two hours. Causes are food, trigger and medication events; results are
symptom instances (matched by name) or flare starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..journal import storage as journal
from ..timeutil import HOUR_MS, subtract_time_range, sunday_weekday, to_ms, utc_now

logger = logging.getLogger(__name__)

MIN_COEFFICIENT = 0.3
LAG_TOLERANCE_MS = 2 * HOUR_MS
MIN_DAY_OF_WEEK_EVENTS = 7
SIGNIFICANT_RATIO = 1.5
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# correlation type -> (cause event type, result event type)
EVENT_TYPES: Dict[str, tuple] = {
    "food-symptom": ("food", "symptom"),
    "trigger-symptom": ("trigger", "symptom"),
    "medication-symptom": ("medication", "symptom"),
    "food-flare": ("food", "flare-created"),
    "trigger-flare": ("trigger", "flare-created"),
}


@dataclass
class TimelineEvent:
    id: str
    type: str
    timestamp: int
    items: List[str] = field(default_factory=list)
    severity: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "items": list(self.items),
            "severity": self.severity,
        }


@dataclass
class PatternOccurrence:
    cause: TimelineEvent
    result: TimelineEvent
    timestamp: int

    def to_dict(self) -> dict:
        return {"cause": self.cause.to_dict(), "result": self.result.to_dict(), "timestamp": self.timestamp}


@dataclass
class DetectedPattern:
    id: str
    type: str
    description: str
    frequency: int
    confidence: str
    correlation_id: str
    coefficient: float
    lag_hours: int
    occurrences: List[PatternOccurrence]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "frequency": self.frequency,
            "confidence": self.confidence,
            "correlation_id": self.correlation_id,
            "coefficient": self.coefficient,
            "lag_hours": self.lag_hours,
            "occurrences": [o.to_dict() for o in self.occurrences],
        }


@dataclass
class DayOfWeekPattern:
    day_of_week: int
    day_name: str
    avg_symptom_severity: float
    occurrence_count: int
    is_significant: bool = False

    def to_dict(self) -> dict:
        return {
            "day_of_week": self.day_of_week,
            "day_name": self.day_name,
            "avg_symptom_severity": self.avg_symptom_severity,
            "occurrence_count": self.occurrence_count,
            "is_significant": self.is_significant,
        }


def describe_correlation(correlation: Dict[str, Any]) -> str:
    item1, item2, lag = correlation["item1"], correlation["item2"], correlation["lag_hours"]
    direction = "correlates with" if float(correlation["coefficient"]) > 0 else "correlates negatively with"
    if correlation["type"] in ("food-flare", "trigger-flare"):
        return f"{item1} {direction} flare in {item2} {lag}h later"
    if correlation["type"] in EVENT_TYPES:
        return f"{item1} {direction} {item2} {lag}h later"
    return f"{item1} {direction} {item2}"


def _matches(cause: TimelineEvent, result: TimelineEvent, correlation: Dict[str, Any]) -> bool:
    if correlation["item1"] not in cause.items:
        return False
    if result.type == "symptom":
        return correlation["item2"] in result.items
    return True


def find_correlation_occurrences(
    events: Sequence[TimelineEvent], correlation: Dict[str, Any]
) -> List[PatternOccurrence]:
    cause_type, result_type = EVENT_TYPES.get(correlation["type"], ("", ""))
    causes = [e for e in events if e.type == cause_type]
    results = [e for e in events if e.type == result_type]
    lag_ms = int(correlation["lag_hours"]) * HOUR_MS

    occurrences: List[PatternOccurrence] = []
    for cause in causes:
        lo = cause.timestamp + lag_ms - LAG_TOLERANCE_MS
        hi = cause.timestamp + lag_ms + LAG_TOLERANCE_MS
        for result in results:
            if lo <= result.timestamp <= hi and _matches(cause, result, correlation):
                occurrences.append(PatternOccurrence(cause=cause, result=result, timestamp=cause.timestamp))
    return occurrences


def detect_recurring_sequences(
    events: Sequence[TimelineEvent], correlations: Sequence[Dict[str, Any]]
) -> List[DetectedPattern]:
    significant = [c for c in correlations if abs(float(c["coefficient"])) >= MIN_COEFFICIENT]
    patterns: List[DetectedPattern] = []
    for correlation in significant:
        occurrences = find_correlation_occurrences(events, correlation)
        if not occurrences:
            continue
        patterns.append(
            DetectedPattern(
                id=f"pattern-{correlation['id']}",
                type=correlation["type"],
                description=describe_correlation(correlation),
                frequency=len(occurrences),
                confidence=correlation["confidence"],
                correlation_id=correlation["id"],
                coefficient=float(correlation["coefficient"]),
                lag_hours=int(correlation["lag_hours"]),
                occurrences=occurrences,
            )
        )
    logger.info(
        "Pattern detection: %s events, %s significant correlations, %s patterns",
        len(events),
        len(significant),
        len(patterns),
    )
    return patterns


def detect_day_of_week_patterns(events: Sequence[TimelineEvent]) -> List[DayOfWeekPattern]:
    symptoms = [e for e in events if e.type == "symptom"]
    if len(symptoms) < MIN_DAY_OF_WEEK_EVENTS:
        return []

    by_day: Dict[int, List[TimelineEvent]] = {}
    for event in symptoms:
        by_day.setdefault(sunday_weekday(event.timestamp), []).append(event)

    patterns: List[DayOfWeekPattern] = []
    for day in range(7):
        day_events = by_day.get(day)
        if not day_events:
            continue
        severities = [e.severity for e in day_events if e.severity is not None]
        patterns.append(
            DayOfWeekPattern(
                day_of_week=day,
                day_name=DAY_NAMES[day],
                avg_symptom_severity=round(sum(severities) / len(severities), 2) if severities else 0.0,
                occurrence_count=len(day_events),
            )
        )

    mean = sum(p.occurrence_count for p in patterns) / len(patterns)
    for pattern in patterns:
        pattern.is_significant = pattern.occurrence_count > mean * SIGNIFICANT_RATIO
    return patterns


def build_timeline(user_id: str, start: datetime, end: datetime) -> List[TimelineEvent]:
    events: List[TimelineEvent] = []
    for meal in journal.find_food_events_by_date_range(user_id, start, end):
        events.append(
            TimelineEvent(id=str(meal["id"]), type="food", timestamp=to_ms(meal["timestamp"]), items=list(meal["food_ids"]))
        )
    for event in journal.find_trigger_events_by_date_range(user_id, start, end):
        events.append(
            TimelineEvent(
                id=str(event["id"]), type="trigger", timestamp=to_ms(event["timestamp"]), items=[event["trigger_id"]]
            )
        )
    for event in journal.find_medication_events_by_date_range(user_id, start, end):
        if not event["taken"]:
            continue
        events.append(
            TimelineEvent(
                id=str(event["id"]),
                type="medication",
                timestamp=to_ms(event["timestamp"]),
                items=[event["medication_id"]],
            )
        )
    for instance in journal.find_symptom_instances_by_date_range(user_id, start, end):
        events.append(
            TimelineEvent(
                id=str(instance["id"]),
                type="symptom",
                timestamp=to_ms(instance["timestamp"]),
                items=[instance["name"]],
                severity=float(instance["severity"]),
            )
        )
    for flare in journal.find_flares_by_date_range(user_id, start, end):
        events.append(
            TimelineEvent(
                id=str(flare["id"]),
                type="flare-created",
                timestamp=to_ms(flare["start_date"]),
                items=[flare["body_region_id"]],
                severity=float(flare["initial_severity"]),
            )
        )
    events.sort(key=lambda e: e.timestamp)
    return events


def detect_patterns_for_user(
    user_id: str,
    time_range: str,
    correlations: Sequence[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    end = now or utc_now()
    events = build_timeline(user_id, subtract_time_range(end, time_range), end)
    return {
        "sequences": [p.to_dict() for p in detect_recurring_sequences(events, correlations)],
        "day_of_week": [p.to_dict() for p in detect_day_of_week_patterns(events)],
        "event_count": len(events),
    }
