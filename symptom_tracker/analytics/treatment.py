# -*- coding: utf-8 -*-
"""Treatment effectiveness.

For every taken medication dose (or logged intervention) the mean symptom
severity over the 7 days before is compared with the mean over days 7-30
after. A treatment needs at least three such cycles to be scored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Literal, Optional, Sequence, Tuple

import numpy as np

from ..journal import storage as journal
from ..timeutil import DAY_MS, subtract_time_range, to_ms, utc_now

logger = logging.getLogger(__name__)

TreatmentType = Literal["medication", "intervention"]

BASELINE_DAYS = 7
OUTCOME_START_DAYS = 7
OUTCOME_END_DAYS = 30
MIN_CYCLES = 3
TREND_MIN_CYCLES = 6
TREND_THRESHOLD = 10.0


@dataclass
class TreatmentCycle:
    treatment_date: int
    baseline_severity: float
    outcome_severity: float
    effectiveness: float

    def to_dict(self) -> dict:
        return {
            "treatment_date": self.treatment_date,
            "baseline_severity": self.baseline_severity,
            "outcome_severity": self.outcome_severity,
            "effectiveness": self.effectiveness,
        }


@dataclass
class TreatmentEffectiveness:
    treatment_id: str
    user_id: str
    treatment_type: str
    treatment_name: str
    effectiveness_score: float
    trend_direction: str
    sample_size: int
    time_range: dict
    last_calculated: int
    confidence: str
    cycles: List[TreatmentCycle]

    def to_dict(self) -> dict:
        return {
            "treatment_id": self.treatment_id,
            "user_id": self.user_id,
            "treatment_type": self.treatment_type,
            "treatment_name": self.treatment_name,
            "effectiveness_score": self.effectiveness_score,
            "trend_direction": self.trend_direction,
            "sample_size": self.sample_size,
            "time_range": dict(self.time_range),
            "last_calculated": self.last_calculated,
            "confidence": self.confidence,
            "cycles": [c.to_dict() for c in self.cycles],
        }


def individual_effectiveness(baseline: float, outcome: float) -> float:
    """Percent reduction in severity; positive means improvement."""
    if baseline == 0:
        return 0.0
    return (baseline - outcome) / baseline * 100.0


def trend_direction(cycles: Sequence[TreatmentCycle]) -> str:
    if len(cycles) < TREND_MIN_CYCLES:
        return "stable"
    recent = float(np.mean([c.effectiveness for c in cycles[-3:]]))
    older = float(np.mean([c.effectiveness for c in cycles[:-3]]))
    if recent > older + TREND_THRESHOLD:
        return "improving"
    if recent < older - TREND_THRESHOLD:
        return "declining"
    return "stable"


def confidence_for_cycles(sample_size: int) -> str:
    if sample_size >= 10:
        return "high"
    if sample_size >= 5:
        return "medium"
    return "low"


def _mean_between(points: Sequence[Tuple[int, float]], lo: int, hi: int) -> Optional[float]:
    values = [sev for ts, sev in points if lo <= ts <= hi]
    if not values:
        return None
    return float(np.mean(values))


def build_cycles(treatment_dates: Sequence[int], severities: Sequence[Tuple[int, float]]) -> List[TreatmentCycle]:
    cycles: List[TreatmentCycle] = []
    for ts in sorted(treatment_dates):
        baseline = _mean_between(severities, ts - BASELINE_DAYS * DAY_MS, ts)
        outcome = _mean_between(severities, ts + OUTCOME_START_DAYS * DAY_MS, ts + OUTCOME_END_DAYS * DAY_MS)
        if baseline is None or outcome is None:
            continue
        cycles.append(
            TreatmentCycle(
                treatment_date=ts,
                baseline_severity=baseline,
                outcome_severity=outcome,
                effectiveness=individual_effectiveness(baseline, outcome),
            )
        )
    return cycles


def calculate_treatment_effectiveness(
    user_id: str,
    treatment_id: str,
    treatment_type: str,
    time_range: str,
    now: Optional[datetime] = None,
) -> Optional[TreatmentEffectiveness]:
    end = now or utc_now()
    start = subtract_time_range(end, time_range)

    if treatment_type == "medication":
        events = journal.find_medication_events_by_date_range(user_id, start, end, medication_id=treatment_id)
        dates = [to_ms(e["timestamp"]) for e in events if e["taken"]]
        names = {m["id"]: m["name"] for m in journal.list_medications(user_id)}
        name = names.get(treatment_id) or "Unknown Medication"
    elif treatment_type == "intervention":
        events = journal.find_trigger_events_by_date_range(user_id, start, end, trigger_id=treatment_id)
        dates = [to_ms(e["timestamp"]) for e in events]
        names = {t["id"]: t["name"] for t in journal.list_triggers(user_id)}
        name = names.get(treatment_id) or "Unknown Intervention"
    else:
        raise ValueError(f"Unsupported treatment type: {treatment_type}")

    if not dates:
        return None

    instances = journal.find_symptom_instances_by_date_range(
        user_id,
        start - timedelta(days=BASELINE_DAYS),
        end + timedelta(days=OUTCOME_END_DAYS),
    )
    severities = [(to_ms(i["timestamp"]), float(i["severity"])) for i in instances]
    cycles = build_cycles(dates, severities)
    if len(cycles) < MIN_CYCLES:
        return None

    return TreatmentEffectiveness(
        treatment_id=treatment_id,
        user_id=user_id,
        treatment_type=treatment_type,
        treatment_name=name,
        effectiveness_score=float(np.mean([c.effectiveness for c in cycles])),
        trend_direction=trend_direction(cycles),
        sample_size=len(cycles),
        time_range={"start": to_ms(start), "end": to_ms(end)},
        last_calculated=to_ms(end),
        confidence=confidence_for_cycles(len(cycles)),
        cycles=cycles,
    )


def calculate_all(user_id: str, time_range: str, now: Optional[datetime] = None) -> List[TreatmentEffectiveness]:
    medications = journal.list_medications(user_id)
    triggers = journal.list_triggers(user_id)
    results: List[TreatmentEffectiveness] = []
    for medication in medications:
        found = calculate_treatment_effectiveness(user_id, medication["id"], "medication", time_range, now)
        if found is not None:
            results.append(found)
    for trigger in triggers:
        found = calculate_treatment_effectiveness(user_id, trigger["id"], "intervention", time_range, now)
        if found is not None:
            results.append(found)

    results.sort(key=lambda r: r.effectiveness_score, reverse=True)
    logger.info(
        "Treatment effectiveness: %s medications, %s interventions, %s with enough cycles",
        len(medications),
        len(triggers),
        len(results),
    )
    return results
