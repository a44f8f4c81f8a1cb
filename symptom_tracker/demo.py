# -*- coding: utf-8 -*-
"""
Demo data generator

Seeds a user's journal with deterministic data that carries detectable signals:

- dairy is followed by bloating about three hours later, worse with bigger portions
- a Monday stress trigger is followed by a headache two to four hours later
- short nights (< 6 h) are followed by fatigue the same morning
- daily prednisone gradually lowers joint pain
- overall health trends upward; two flares run their course
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

import numpy as np

from .journal import storage as journal
from .timeutil import date_key, start_of_day, sunday_weekday, utc_now

logger = logging.getLogger(__name__)

FOODS = [
    ("dairy", "Dairy", "dairy", ["milk"]),
    ("gluten", "Bread", "grains", ["gluten"]),
    ("rice", "Rice", "grains", []),
    ("coffee", "Coffee", "beverages", ["caffeine"]),
    ("tomato", "Tomato", "vegetables", ["nightshade"]),
]
PORTIONS = ["small", "medium", "large"]
PORTION_SEVERITY = {"small": 3.0, "medium": 5.0, "large": 7.0}


def _clip(value: float, lo: float = 1.0, hi: float = 10.0) -> float:
    return float(round(min(hi, max(lo, value)), 1))


def seed_demo_data(
    user_id: str,
    days: int = 90,
    seed: int = 42,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Write ``days`` days of journal data ending today; returns record counts."""
    rng = np.random.default_rng(seed)
    today = start_of_day(now or utc_now())
    first_day = today - timedelta(days=days - 1)
    counts: Dict[str, int] = {
        "foods": 0,
        "meals": 0,
        "symptoms": 0,
        "triggers": 0,
        "trigger_events": 0,
        "medications": 0,
        "medication_events": 0,
        "daily_entries": 0,
        "daily_logs": 0,
        "flares": 0,
    }

    # Catalog ids are global, so each user gets generated ones.
    food: Dict[str, str] = {}
    for key, name, category, tags in FOODS:
        food[key] = journal.create_food(user_id=user_id, name=name, category=category, allergen_tags=tags)["id"]
        counts["foods"] += 1

    stress = journal.create_trigger(user_id=user_id, name="Stress", category="emotional")["id"]
    heat = journal.create_trigger(user_id=user_id, name="Heat", category="environmental")["id"]
    counts["triggers"] += 2

    prednisone = journal.create_medication(
        user_id=user_id,
        name="Prednisone",
        dosage="5mg",
        schedule=[{"time": "08:00", "days_of_week": list(range(7))}],
    )["id"]
    counts["medications"] += 1

    def symptom(name: str, severity: float, when: datetime, category: str = "general") -> None:
        journal.create_symptom_instance(
            user_id=user_id, name=name, severity=_clip(severity), category=category, timestamp=when
        )
        counts["symptoms"] += 1

    for offset in range(days):
        day = first_day + timedelta(days=offset)
        progress = offset / max(days - 1, 1)

        # Breakfast and dinner never contain dairy.
        journal.create_food_event(
            user_id=user_id,
            food_ids=[food["gluten"], food["coffee"]],
            meal_type="breakfast",
            portion_map={food["gluten"]: "medium", food["coffee"]: "medium"},
            timestamp=day + timedelta(hours=7, minutes=30),
        )
        journal.create_food_event(
            user_id=user_id,
            food_ids=[food["rice"], food["tomato"]],
            meal_type="dinner",
            portion_map={food["rice"]: "medium", food["tomato"]: "small"},
            timestamp=day + timedelta(hours=19),
        )
        counts["meals"] += 2

        dairy_servings = int(rng.choice([0, 1, 1, 2]))
        for serving in range(dairy_servings):
            portion = PORTIONS[int(rng.integers(0, 3))]
            eaten = day + timedelta(hours=12 + 3 * serving)
            journal.create_food_event(
                user_id=user_id,
                food_ids=[food["dairy"], food["rice"]] if serving else [food["dairy"]],
                meal_type="lunch" if serving == 0 else "snack",
                portion_map={food["dairy"]: portion},
                timestamp=eaten,
            )
            counts["meals"] += 1
            if rng.random() < 0.85:
                symptom(
                    "Bloating",
                    PORTION_SEVERITY[portion] + dairy_servings + rng.normal(0, 0.5),
                    eaten + timedelta(hours=3, minutes=int(rng.integers(0, 40))),
                    category="digestive",
                )
        if dairy_servings == 0 and rng.random() < 0.3:
            symptom("Bloating", 1.5 + rng.normal(0, 0.3), day + timedelta(hours=16), category="digestive")

        if sunday_weekday(day) == 1 and rng.random() < 0.8:
            stressed = day + timedelta(hours=9)
            journal.create_trigger_event(
                user_id=user_id, trigger_id=stress, intensity="high", timestamp=stressed
            )
            counts["trigger_events"] += 1
            symptom("Headache", 6 + rng.integers(0, 3), stressed + timedelta(hours=2, minutes=30))
        elif rng.random() < 0.15:
            journal.create_trigger_event(
                user_id=user_id, trigger_id=heat, intensity="low", timestamp=day + timedelta(hours=14)
            )
            counts["trigger_events"] += 1

        taken = bool(rng.random() < 0.85)
        journal.create_medication_event(
            user_id=user_id, medication_id=prednisone, taken=taken, timestamp=day + timedelta(hours=8)
        )
        counts["medication_events"] += 1
        symptom("Joint Pain", 7.5 - 4.0 * progress + rng.normal(0, 0.6), day + timedelta(hours=18), category="musculoskeletal")

        sleep_hours = float(round(rng.uniform(4.5, 9.0), 1))
        journal.upsert_daily_log(
            user_id=user_id,
            date=date_key(day),
            mood=int(min(5, max(1, round(2 + 2 * progress + rng.normal(0, 0.7))))),
            sleep_hours=sleep_hours,
            sleep_quality=int(min(5, max(1, round(sleep_hours - 3.5)))),
            stress_level=8 if sunday_weekday(day) == 1 else int(rng.integers(2, 6)),
        )
        counts["daily_logs"] += 1
        if sleep_hours < 6:
            symptom("Fatigue", 6 + rng.normal(0, 0.8), day + timedelta(hours=10, minutes=30))

        journal.create_daily_entry(
            user_id=user_id,
            date=date_key(day),
            overall_health=_clip(4 + 4 * progress + rng.normal(0, 0.5), 0, 10),
            energy_level=_clip(5 + rng.normal(0, 1.5) - (2 if sleep_hours < 6 else 0), 0, 10),
            sleep_quality=_clip(sleep_hours, 0, 10),
            stress_level=_clip(8 if sunday_weekday(day) == 1 else 4 + rng.normal(0, 1), 0, 10),
        )
        counts["daily_entries"] += 1

    for start_offset, region in ((max(days - 60, 0), "left-knee"), (max(days - 20, 0), "lower-back")):
        started = first_day + timedelta(days=start_offset, hours=9)
        flare = journal.create_flare(
            user_id=user_id, body_region_id=region, initial_severity=7, start_date=started
        )
        counts["flares"] += 1
        for step, (severity, status) in enumerate(((8, "worsening"), (6, "improving"), (3, "improving"), (1, "resolved"))):
            when = started + timedelta(days=2 * (step + 1))
            if when > today + timedelta(days=1):
                break
            journal.add_flare_severity_update(
                user_id=user_id, flare_id=flare["id"], severity=severity, status=status, timestamp=when
            )

    logger.info("Seeded demo data for user=%s over %s days: %s", user_id, days, counts)
    return counts
