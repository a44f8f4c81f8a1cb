# -*- coding: utf-8 -*-
"""Journal endpoints — log events and read them back by date range."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query

from ..analytics.worker import notify_journal_write
from ..security import get_current_user
from ..timeutil import to_utc, utc_now
from .models import (
    DailyEntry,
    DailyEntryCreate,
    DailyEntryListResponse,
    DailyLog,
    DailyLogListResponse,
    DailyLogUpsert,
    Flare,
    FlareCreate,
    FlareListResponse,
    FlareSeverityUpdate,
    Food,
    FoodCreate,
    FoodEvent,
    FoodEventCreate,
    FoodEventListResponse,
    FoodListResponse,
    Medication,
    MedicationCreate,
    MedicationEvent,
    MedicationEventCreate,
    MedicationEventListResponse,
    MedicationListResponse,
    SymptomInstance,
    SymptomInstanceCreate,
    SymptomInstanceListResponse,
    Trigger,
    TriggerCreate,
    TriggerEvent,
    TriggerEventCreate,
    TriggerEventListResponse,
    TriggerListResponse,
)
from . import storage

router = APIRouter(prefix="/api/journal", tags=["Journal"])

DEFAULT_LOOKBACK_DAYS = 30


def _window(start: Optional[str], end: Optional[str]) -> Tuple[datetime, datetime]:
    try:
        end_dt = to_utc(end) if end else utc_now()
        start_dt = to_utc(start) if start else end_dt - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if start_dt > end_dt:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return start_dt, end_dt


# ---- Symptoms ----


@router.post("/symptoms", response_model=SymptomInstance, summary="Log a symptom instance")
def create_symptom_api(request: SymptomInstanceCreate, user: dict = Depends(get_current_user)):
    created = storage.create_symptom_instance(
        user_id=user["id"],
        name=request.name,
        severity=request.severity,
        category=request.category,
        location=request.location,
        notes=request.notes,
        timestamp=request.timestamp,
    )
    notify_journal_write(user["id"], "symptom", symptom_name=created["name"])
    return SymptomInstance(**created)


@router.get("/symptoms", response_model=SymptomInstanceListResponse, summary="List symptom instances")
def list_symptoms_api(
    start: Optional[str] = Query(default=None, description="ISO8601; defaults to 30 days before end"),
    end: Optional[str] = Query(default=None, description="ISO8601; defaults to now"),
    name: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_symptom_instances_by_date_range(user["id"], start_dt, end_dt, name=name)
    return SymptomInstanceListResponse(items=[SymptomInstance(**i) for i in items])


# ---- Foods ----


@router.post("/foods", response_model=Food, summary="Add a food to the catalog")
def create_food_api(request: FoodCreate, user: dict = Depends(get_current_user)):
    created = storage.create_food(
        user_id=user["id"],
        name=request.name,
        category=request.category,
        allergen_tags=request.allergen_tags,
        is_active=request.is_active,
    )
    return Food(**created)


@router.get("/foods", response_model=FoodListResponse, summary="List foods")
def list_foods_api(
    active_only: bool = Query(default=False),
    user: dict = Depends(get_current_user),
):
    return FoodListResponse(items=[Food(**f) for f in storage.list_foods(user["id"], active_only=active_only)])


@router.post("/food-events", response_model=FoodEvent, summary="Log a meal")
def create_food_event_api(request: FoodEventCreate, user: dict = Depends(get_current_user)):
    for food_id in request.food_ids:
        storage.get_food(user_id=user["id"], food_id=food_id)
    created = storage.create_food_event(
        user_id=user["id"],
        food_ids=request.food_ids,
        meal_type=request.meal_type.value,
        portion_map=request.portion_map,
        meal_id=request.meal_id,
        notes=request.notes,
        timestamp=request.timestamp,
    )
    notify_journal_write(user["id"], "food", food_ids=created["food_ids"])
    return FoodEvent(**created)


@router.get("/food-events", response_model=FoodEventListResponse, summary="List meals")
def list_food_events_api(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_food_events_by_date_range(user["id"], start_dt, end_dt)
    return FoodEventListResponse(items=[FoodEvent(**e) for e in items])


# ---- Triggers ----


@router.post("/triggers", response_model=Trigger, summary="Add a trigger to the catalog")
def create_trigger_api(request: TriggerCreate, user: dict = Depends(get_current_user)):
    return Trigger(**storage.create_trigger(user_id=user["id"], name=request.name, category=request.category))


@router.get("/triggers", response_model=TriggerListResponse, summary="List triggers")
def list_triggers_api(user: dict = Depends(get_current_user)):
    return TriggerListResponse(items=[Trigger(**t) for t in storage.list_triggers(user["id"])])


@router.post("/trigger-events", response_model=TriggerEvent, summary="Log a trigger exposure")
def create_trigger_event_api(request: TriggerEventCreate, user: dict = Depends(get_current_user)):
    created = storage.create_trigger_event(
        user_id=user["id"],
        trigger_id=request.trigger_id,
        intensity=request.intensity.value,
        notes=request.notes,
        timestamp=request.timestamp,
    )
    notify_journal_write(user["id"], "trigger")
    return TriggerEvent(**created)


@router.get("/trigger-events", response_model=TriggerEventListResponse, summary="List trigger exposures")
def list_trigger_events_api(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    trigger_id: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_trigger_events_by_date_range(user["id"], start_dt, end_dt, trigger_id=trigger_id)
    return TriggerEventListResponse(items=[TriggerEvent(**e) for e in items])


# ---- Medications ----


@router.post("/medications", response_model=Medication, summary="Add a medication")
def create_medication_api(request: MedicationCreate, user: dict = Depends(get_current_user)):
    created = storage.create_medication(
        user_id=user["id"],
        name=request.name,
        dosage=request.dosage,
        schedule=[s.model_dump() for s in request.schedule],
        is_active=request.is_active,
    )
    return Medication(**created)


@router.get("/medications", response_model=MedicationListResponse, summary="List medications")
def list_medications_api(
    active_only: bool = Query(default=False),
    user: dict = Depends(get_current_user),
):
    items = storage.list_medications(user["id"], active_only=active_only)
    return MedicationListResponse(items=[Medication(**m) for m in items])


@router.post("/medication-events", response_model=MedicationEvent, summary="Log a medication dose")
def create_medication_event_api(request: MedicationEventCreate, user: dict = Depends(get_current_user)):
    created = storage.create_medication_event(
        user_id=user["id"],
        medication_id=request.medication_id,
        taken=request.taken,
        notes=request.notes,
        timestamp=request.timestamp,
    )
    notify_journal_write(user["id"], "medication")
    return MedicationEvent(**created)


@router.get("/medication-events", response_model=MedicationEventListResponse, summary="List medication doses")
def list_medication_events_api(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    medication_id: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_medication_events_by_date_range(
        user["id"], start_dt, end_dt, medication_id=medication_id
    )
    return MedicationEventListResponse(items=[MedicationEvent(**e) for e in items])


# ---- Daily entries / logs ----


@router.post("/daily-entries", response_model=DailyEntry, summary="Record a daily entry")
def create_daily_entry_api(request: DailyEntryCreate, user: dict = Depends(get_current_user)):
    created = storage.create_daily_entry(
        user_id=user["id"],
        date=request.date,
        overall_health=request.overall_health,
        energy_level=request.energy_level,
        sleep_quality=request.sleep_quality,
        stress_level=request.stress_level,
        notes=request.notes,
    )
    notify_journal_write(user["id"], "daily-entry")
    return DailyEntry(**created)


@router.get("/daily-entries", response_model=DailyEntryListResponse, summary="List daily entries")
def list_daily_entries_api(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_daily_entries_by_date_range(user["id"], start_dt, end_dt)
    return DailyEntryListResponse(items=[DailyEntry(**e) for e in items])


@router.put("/daily-logs", response_model=DailyLog, summary="Create or replace the log for a day")
def upsert_daily_log_api(request: DailyLogUpsert, user: dict = Depends(get_current_user)):
    saved = storage.upsert_daily_log(
        user_id=user["id"],
        date=request.date,
        mood=request.mood,
        sleep_hours=request.sleep_hours,
        sleep_quality=request.sleep_quality,
        stress_level=request.stress_level,
        notes=request.notes,
    )
    notify_journal_write(user["id"], "daily-log")
    return DailyLog(**saved)


@router.get("/daily-logs", response_model=DailyLogListResponse, summary="List daily logs")
def list_daily_logs_api(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    start_dt, end_dt = _window(start, end)
    items = storage.find_daily_logs_by_date_range(user["id"], start_dt, end_dt)
    return DailyLogListResponse(items=[DailyLog(**log) for log in items])


# ---- Flares ----


@router.post("/flares", response_model=Flare, summary="Start tracking a flare")
def create_flare_api(request: FlareCreate, user: dict = Depends(get_current_user)):
    created = storage.create_flare(
        user_id=user["id"],
        body_region_id=request.body_region_id,
        initial_severity=request.initial_severity,
        status=request.status.value,
        start_date=request.start_date,
    )
    notify_journal_write(user["id"], "flare")
    return Flare(**created)


@router.post("/flares/{flare_id}/severity", response_model=Flare, summary="Record a flare severity change")
def update_flare_severity_api(
    flare_id: str,
    request: FlareSeverityUpdate,
    user: dict = Depends(get_current_user),
):
    updated = storage.add_flare_severity_update(
        user_id=user["id"],
        flare_id=flare_id,
        severity=request.severity,
        status=request.status.value if request.status else None,
        timestamp=request.timestamp,
    )
    notify_journal_write(user["id"], "flare")
    return Flare(**updated)


@router.get("/flares", response_model=FlareListResponse, summary="List flares")
def list_flares_api(user: dict = Depends(get_current_user)):
    return FlareListResponse(items=[Flare(**f) for f in storage.list_flares(user["id"])])
