# -*- coding: utf-8 -*-
"""Journal — Pydantic models for logged events and catalog records."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..timeutil import iso, iso_now


def _normalize_timestamp(value: object) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return iso_now()
    try:
        return iso(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid ISO8601 timestamp: {value!r}") from exc


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class Intensity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class FlareStatus(str, Enum):
    active = "active"
    improving = "improving"
    worsening = "worsening"
    resolved = "resolved"


# ---- Symptoms ----


class SymptomInstanceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    category: str = Field("general", min_length=1, max_length=64)
    severity: float = Field(..., ge=1, le=10)
    location: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = Field(None, max_length=2000)
    timestamp: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: object) -> str:
        return _normalize_timestamp(value)


class SymptomInstance(BaseModel):
    id: str
    name: str
    category: str
    severity: float
    location: Optional[str] = None
    notes: Optional[str] = None
    timestamp: str


class SymptomInstanceListResponse(BaseModel):
    items: List[SymptomInstance]


# ---- Foods ----


class FoodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    category: str = Field("other", min_length=1, max_length=64)
    allergen_tags: List[str] = Field(default_factory=list)
    is_active: bool = True


class Food(BaseModel):
    id: str
    name: str
    category: str
    allergen_tags: List[str] = Field(default_factory=list)
    is_active: bool = True


class FoodListResponse(BaseModel):
    items: List[Food]


class FoodEventCreate(BaseModel):
    meal_id: Optional[str] = Field(None, description="Groups foods eaten together; generated when omitted")
    food_ids: List[str] = Field(..., min_length=1)
    portion_map: Dict[str, str] = Field(
        default_factory=dict, description="food_id -> small | medium | large"
    )
    meal_type: MealType = MealType.snack
    notes: Optional[str] = Field(None, max_length=2000)
    timestamp: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: object) -> str:
        return _normalize_timestamp(value)


class FoodEvent(BaseModel):
    id: str
    meal_id: str
    food_ids: List[str]
    portion_map: Dict[str, str] = Field(default_factory=dict)
    meal_type: MealType
    notes: Optional[str] = None
    timestamp: str


class FoodEventListResponse(BaseModel):
    items: List[FoodEvent]


# ---- Triggers ----


class TriggerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    category: str = Field("environmental", min_length=1, max_length=64)


class Trigger(BaseModel):
    id: str
    name: str
    category: str


class TriggerListResponse(BaseModel):
    items: List[Trigger]


class TriggerEventCreate(BaseModel):
    trigger_id: str = Field(..., min_length=1)
    intensity: Intensity = Intensity.medium
    notes: Optional[str] = Field(None, max_length=2000)
    timestamp: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: object) -> str:
        return _normalize_timestamp(value)


class TriggerEvent(BaseModel):
    id: str
    trigger_id: str
    intensity: Intensity
    notes: Optional[str] = None
    timestamp: str


class TriggerEventListResponse(BaseModel):
    items: List[TriggerEvent]


# ---- Medications ----


class MedicationScheduleEntry(BaseModel):
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM")
    days_of_week: List[int] = Field(default_factory=lambda: list(range(7)), description="0=Sunday .. 6=Saturday")

    @field_validator("days_of_week")
    @classmethod
    def _days(cls, value: List[int]) -> List[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError("days_of_week entries must be in 0..6")
        return sorted(set(value))


class MedicationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    dosage: Optional[str] = Field(None, max_length=64)
    schedule: List[MedicationScheduleEntry] = Field(default_factory=list)
    is_active: bool = True


class Medication(BaseModel):
    id: str
    name: str
    dosage: Optional[str] = None
    schedule: List[MedicationScheduleEntry] = Field(default_factory=list)
    is_active: bool = True


class MedicationListResponse(BaseModel):
    items: List[Medication]


class MedicationEventCreate(BaseModel):
    medication_id: str = Field(..., min_length=1)
    taken: bool = True
    notes: Optional[str] = Field(None, max_length=2000)
    timestamp: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: object) -> str:
        return _normalize_timestamp(value)


class MedicationEvent(BaseModel):
    id: str
    medication_id: str
    taken: bool
    notes: Optional[str] = None
    timestamp: str


class MedicationEventListResponse(BaseModel):
    items: List[MedicationEvent]


# ---- Daily entries / logs ----


class DailyEntryCreate(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    overall_health: float = Field(..., ge=0, le=10)
    energy_level: float = Field(..., ge=0, le=10)
    sleep_quality: float = Field(..., ge=0, le=10)
    stress_level: float = Field(..., ge=0, le=10)
    notes: Optional[str] = Field(None, max_length=2000)


class DailyEntry(BaseModel):
    id: str
    date: str
    overall_health: float
    energy_level: float
    sleep_quality: float
    stress_level: float
    notes: Optional[str] = None


class DailyEntryListResponse(BaseModel):
    items: List[DailyEntry]


class DailyLogUpsert(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    mood: int = Field(..., ge=1, le=5)
    sleep_hours: float = Field(..., ge=0, le=24)
    sleep_quality: int = Field(..., ge=1, le=5)
    stress_level: int = Field(..., ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=2000)


class DailyLog(BaseModel):
    id: str
    date: str
    mood: int
    sleep_hours: float
    sleep_quality: int
    stress_level: int
    notes: Optional[str] = None


class DailyLogListResponse(BaseModel):
    items: List[DailyLog]


# ---- Flares ----


class FlareCreate(BaseModel):
    body_region_id: str = Field(..., min_length=1, max_length=64)
    initial_severity: float = Field(..., ge=1, le=10)
    status: FlareStatus = FlareStatus.active
    start_date: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("start_date", mode="before")
    @classmethod
    def _start(cls, value: object) -> str:
        return _normalize_timestamp(value)


class FlareSeverityUpdate(BaseModel):
    severity: float = Field(..., ge=1, le=10)
    status: Optional[FlareStatus] = None
    timestamp: Optional[str] = Field(None, description="ISO8601 timestamp; defaults to now")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: object) -> str:
        return _normalize_timestamp(value)


class FlareSeverityPoint(BaseModel):
    timestamp: str
    severity: float
    status: Optional[str] = None


class Flare(BaseModel):
    id: str
    body_region_id: str
    status: FlareStatus
    initial_severity: float
    current_severity: float
    start_date: str
    end_date: Optional[str] = None
    created_at: str
    updated_at: str
    severity_history: List[FlareSeverityPoint] = Field(default_factory=list)


class FlareListResponse(BaseModel):
    items: List[Flare]
