# -*- coding: utf-8 -*-
"""Daily time-series extraction for the correlation engine.

Every series maps a UTC calendar day (``YYYY-MM-DD``) to one value for that day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Tuple

import pandas as pd

from ..journal import storage as journal
from ..timeutil import DateLike, date_key, parse_date_key, to_utc

DailySeries = Dict[str, float]


@dataclass
class ExtractedSeries:
    food: Dict[str, DailySeries] = field(default_factory=dict)
    symptom: Dict[str, DailySeries] = field(default_factory=dict)
    medication: Dict[str, DailySeries] = field(default_factory=dict)
    trigger: Dict[str, DailySeries] = field(default_factory=dict)
    flare: DailySeries = field(default_factory=dict)


def _daily(records: List[Tuple[str, float]], how: str) -> DailySeries:
    if not records:
        return {}
    frame = pd.DataFrame(records, columns=["day", "value"])
    grouped = frame.groupby("day", sort=True)["value"]
    agg = grouped.sum() if how == "sum" else grouped.mean()
    return {str(day): float(value) for day, value in agg.items()}


def food_series_from_events(events: List[dict], food_id: str) -> DailySeries:
    """Number of meals per day that included ``food_id``."""
    return _daily(
        [(date_key(e["timestamp"]), 1.0) for e in events if food_id in (e.get("food_ids") or [])],
        "sum",
    )


def symptom_series_from_instances(instances: List[dict], name: str) -> DailySeries:
    """Average severity per day for symptom ``name``."""
    return _daily(
        [(date_key(i["timestamp"]), float(i["severity"])) for i in instances if i["name"] == name],
        "mean",
    )


def medication_series_from_events(events: List[dict], medication_id: str) -> DailySeries:
    """Share of that day's logged doses that were actually taken."""
    return _daily(
        [
            (date_key(e["timestamp"]), 1.0 if e["taken"] else 0.0)
            for e in events
            if e["medication_id"] == medication_id
        ],
        "mean",
    )


def trigger_series_from_events(events: List[dict], trigger_id: str) -> DailySeries:
    return _daily(
        [(date_key(e["timestamp"]), 1.0) for e in events if e["trigger_id"] == trigger_id],
        "sum",
    )


def flare_series_from_flares(flares: List[dict], start: DateLike, end: DateLike) -> DailySeries:
    """Initial severity on the creation day plus current severity on the last-update day."""
    lo, hi = to_utc(start), to_utc(end)
    records: List[Tuple[str, float]] = []
    for flare in flares:
        created = to_utc(flare["created_at"])
        updated = to_utc(flare["updated_at"])
        if lo <= created <= hi:
            records.append((date_key(created), float(flare["initial_severity"])))
        if lo <= updated <= hi:
            records.append((date_key(updated), float(flare["current_severity"])))
    return _daily(records, "mean")


def extract_food_time_series(user_id: str, food_id: str, start: DateLike, end: DateLike) -> DailySeries:
    return food_series_from_events(journal.find_food_events_by_date_range(user_id, start, end), food_id)


def extract_symptom_time_series(user_id: str, name: str, start: DateLike, end: DateLike) -> DailySeries:
    instances = journal.find_symptom_instances_by_date_range(user_id, start, end, name=name)
    return symptom_series_from_instances(instances, name)


def extract_medication_time_series(user_id: str, medication_id: str, start: DateLike, end: DateLike) -> DailySeries:
    events = journal.find_medication_events_by_date_range(user_id, start, end, medication_id=medication_id)
    return medication_series_from_events(events, medication_id)


def extract_trigger_time_series(user_id: str, trigger_id: str, start: DateLike, end: DateLike) -> DailySeries:
    events = journal.find_trigger_events_by_date_range(user_id, start, end, trigger_id=trigger_id)
    return trigger_series_from_events(events, trigger_id)


def extract_flare_time_series(user_id: str, start: DateLike, end: DateLike) -> DailySeries:
    return flare_series_from_flares(journal.list_flares(user_id), start, end)


def align_time_series(s1: DailySeries, s2: DailySeries, lag_hours: int) -> Tuple[List[float], List[float]]:
    """Pair each day of ``s1`` with the ``s2`` value on the day ``lag_hours`` later."""
    aligned1: List[float] = []
    aligned2: List[float] = []
    lag = timedelta(hours=lag_hours)
    for key, value in s1.items():
        target = date_key(parse_date_key(key) + lag)
        other = s2.get(target)
        if other is not None:
            aligned1.append(value)
            aligned2.append(other)
    return aligned1, aligned2


def extract_all_time_series(user_id: str, start: DateLike, end: DateLike) -> ExtractedSeries:
    # Fetch each table once and slice in memory.
    food_events = journal.find_food_events_by_date_range(user_id, start, end)
    instances = journal.find_symptom_instances_by_date_range(user_id, start, end)
    med_events = journal.find_medication_events_by_date_range(user_id, start, end)
    trigger_events = journal.find_trigger_events_by_date_range(user_id, start, end)

    out = ExtractedSeries()
    for food_id in journal.list_tracked_foods(user_id):
        out.food[food_id] = food_series_from_events(food_events, food_id)
    for name in journal.list_tracked_symptoms(user_id):
        out.symptom[name] = symptom_series_from_instances(instances, name)
    for medication_id in journal.list_tracked_medications(user_id):
        out.medication[medication_id] = medication_series_from_events(med_events, medication_id)
    for trigger_id in journal.list_tracked_triggers(user_id):
        out.trigger[trigger_id] = trigger_series_from_events(trigger_events, trigger_id)
    out.flare = flare_series_from_flares(journal.list_flares(user_id), start, end)
    return out
