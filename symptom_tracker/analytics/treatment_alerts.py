# -*- coding: utf-8 -*-
"""Treatment alerts raised from stored effectiveness history.

- effectiveness_drop: the latest score is more than 20% below the earliest
  score calculated in the 30 days before it
- low_effectiveness: the last three calculations all scored under 30
- unused_effective_treatment: the latest score is 70 or more but the
  treatment has not been used in 60 days

An alert is stored once; it is raised again only after it is dismissed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from ..journal import storage as journal
from ..timeutil import iso, to_utc, utc_now
from . import storage as analytics_store
from .treatment import TreatmentEffectiveness, calculate_all

logger = logging.getLogger(__name__)

DROP_THRESHOLD = 20.0
DROP_LOOKBACK_DAYS = 30
LOW_THRESHOLD = 30.0
LOW_CONSECUTIVE = 3
HIGH_THRESHOLD = 70.0
UNUSED_DAYS = 60


@dataclass
class TreatmentAlert:
    id: str
    user_id: str
    treatment_id: str
    alert_type: str
    severity: str
    message: str
    action_suggestion: str
    created_at: str
    dismissed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "treatment_id": self.treatment_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "message": self.message,
            "action_suggestion": self.action_suggestion,
            "created_at": self.created_at,
            "dismissed": self.dismissed,
        }


def _alert(
    user_id: str,
    treatment_id: str,
    alert_type: str,
    severity: str,
    message: str,
    action_suggestion: str,
    now: Optional[datetime],
) -> TreatmentAlert:
    return TreatmentAlert(
        id=str(uuid4()),
        user_id=user_id,
        treatment_id=treatment_id,
        alert_type=alert_type,
        severity=severity,
        message=message,
        action_suggestion=action_suggestion,
        created_at=iso(now or utc_now()),
    )


def check_effectiveness_drop(
    user_id: str,
    treatment_id: str,
    current_score: float,
    previous_score: float,
    now: Optional[datetime] = None,
) -> Optional[TreatmentAlert]:
    if previous_score <= 0:
        return None
    drop_pct = (previous_score - current_score) / previous_score * 100.0
    if drop_pct <= DROP_THRESHOLD:
        return None
    return _alert(
        user_id,
        treatment_id,
        "effectiveness_drop",
        "warning",
        f"Treatment effectiveness has dropped by {round(drop_pct)}% over the last {DROP_LOOKBACK_DAYS} days",
        "Review recent changes with your healthcare provider. Dosage, timing or lifestyle changes may affect effectiveness.",
        now,
    )


def check_low_effectiveness(
    user_id: str,
    treatment_id: str,
    scores: Sequence[float],
    now: Optional[datetime] = None,
) -> Optional[TreatmentAlert]:
    """``scores`` are oldest first; only the trailing run matters."""
    if len(scores) < LOW_CONSECUTIVE:
        return None
    recent = list(scores)[-LOW_CONSECUTIVE:]
    if any(score >= LOW_THRESHOLD for score in recent):
        return None
    return _alert(
        user_id,
        treatment_id,
        "low_effectiveness",
        "warning",
        f"Treatment shows low effectiveness ({round(recent[-1])}%)",
        "Consider discussing alternative treatment options with your healthcare provider.",
        now,
    )


def _last_used(user_id: str, treatment_id: str, treatment_type: str, start: datetime, end: datetime) -> bool:
    if treatment_type == "medication":
        events = journal.find_medication_events_by_date_range(user_id, start, end, medication_id=treatment_id)
        return any(e["taken"] for e in events)
    if treatment_type == "intervention":
        return bool(journal.find_trigger_events_by_date_range(user_id, start, end, trigger_id=treatment_id))
    raise ValueError(f"Unsupported treatment type: {treatment_type}")


def check_unused_effective_treatment(
    user_id: str,
    treatment_id: str,
    treatment_type: str,
    effectiveness_score: float,
    now: Optional[datetime] = None,
) -> Optional[TreatmentAlert]:
    if effectiveness_score < HIGH_THRESHOLD:
        return None
    end = now or utc_now()
    if _last_used(user_id, treatment_id, treatment_type, end - timedelta(days=UNUSED_DAYS), end):
        return None
    return _alert(
        user_id,
        treatment_id,
        "unused_effective_treatment",
        "info",
        f"This highly effective treatment ({round(effectiveness_score)}%) hasn't been used in {UNUSED_DAYS}+ days",
        "Consider whether this treatment should be resumed (consult your healthcare provider first).",
        now,
    )


def evaluate_history(user_id: str, history: Sequence[Dict], now: Optional[datetime] = None) -> List[TreatmentAlert]:
    """Alerts for one treatment's stored calculations, oldest first."""
    if not history:
        return []
    latest = history[-1]
    treatment_id = latest["treatment_id"]
    alerts: List[TreatmentAlert] = []

    window_start = to_utc(latest["calculated_at"]) - timedelta(days=DROP_LOOKBACK_DAYS)
    earlier = [h for h in history[:-1] if to_utc(h["calculated_at"]) >= window_start]
    if earlier:
        found = check_effectiveness_drop(
            user_id, treatment_id, latest["effectiveness_score"], earlier[0]["effectiveness_score"], now
        )
        if found:
            alerts.append(found)

    found = check_low_effectiveness(user_id, treatment_id, [h["effectiveness_score"] for h in history], now)
    if found:
        alerts.append(found)

    found = check_unused_effective_treatment(
        user_id, treatment_id, latest["treatment_type"], latest["effectiveness_score"], now
    )
    if found:
        alerts.append(found)
    return alerts


def generate_treatment_alerts(user_id: str, now: Optional[datetime] = None) -> List[TreatmentAlert]:
    """Evaluate every stored treatment and store alerts not already active."""
    by_treatment: Dict[str, List[Dict]] = {}
    for row in analytics_store.list_treatment_effectiveness(user_id):
        by_treatment.setdefault(row["treatment_id"], []).append(row)

    created: List[TreatmentAlert] = []
    for history in by_treatment.values():
        for alert in evaluate_history(user_id, history, now):
            if analytics_store.find_active_treatment_alert(user_id, alert.treatment_id, alert.alert_type):
                continue
            analytics_store.insert_treatment_alert(alert.to_dict())
            created.append(alert)

    if created:
        logger.info("Raised %s treatment alerts for user=%s", len(created), user_id)
    return created


def record_treatment_effectiveness(
    user_id: str, time_range: str, now: Optional[datetime] = None
) -> List[TreatmentEffectiveness]:
    """Calculate every treatment and append the results to the stored history."""
    results = calculate_all(user_id, time_range, now)
    for result in results:
        analytics_store.save_treatment_effectiveness(result)
    return results
