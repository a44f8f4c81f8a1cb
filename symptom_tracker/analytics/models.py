# -*- coding: utf-8 -*-
"""Analytics — Pydantic models for API requests and responses."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class TrendLine(BaseModel):
    slope: float
    intercept: float
    r_squared: float


class TrendInterpretation(BaseModel):
    direction: str
    confidence: str


class TrendPoint(BaseModel):
    x: float
    y: float


class TrendResponse(BaseModel):
    metric: str
    time_range: str
    label: str
    points: List[TrendPoint] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    raw: List[Dict[str, Any]] = Field(default_factory=list)
    trend: Optional[TrendLine] = None
    interpretation: TrendInterpretation


class StoredCorrelation(BaseModel):
    id: str
    type: str
    item1: str
    item2: str
    coefficient: float
    strength: str
    significance: float
    sample_size: int
    lag_hours: int
    confidence: str
    time_range: str
    calculated_at: str
    priority_score: Optional[float] = None


class CorrelationListResponse(BaseModel):
    items: List[StoredCorrelation]
    top: List[StoredCorrelation] = Field(default_factory=list)
    strong: List[StoredCorrelation] = Field(default_factory=list)
    moderate: List[StoredCorrelation] = Field(default_factory=list)
    by_type: Dict[str, int] = Field(default_factory=dict)
    last_calculated: Optional[str] = None
    is_calculating: bool = False


class WindowScoreModel(BaseModel):
    window: str
    score: float
    sample_size: int
    p_value: float


class FoodCorrelationResponse(BaseModel):
    food_id: str
    symptom_id: str
    window_scores: List[WindowScoreModel]
    best_window: Optional[WindowScoreModel] = None
    computed_at: int
    sample_size: int
    dose_response: Optional[Dict[str, Any]] = None
    confidence: Optional[str] = None
    consistency: Optional[float] = None


class DailyLogCorrelationResponse(BaseModel):
    metric: str
    symptom_id: str
    direction: str
    window_scores: List[WindowScoreModel]
    best_window: Optional[WindowScoreModel] = None
    computed_at: int
    sample_size: int
    confidence: Optional[str] = None
    consistency: Optional[float] = None
    significant_days: List[str] = Field(default_factory=list)


class JobStatus(BaseModel):
    id: str
    key: str
    kind: str
    status: Literal["pending", "running", "done", "failed"]
    submitted_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    result: Any = None
    error: Optional[str] = None


class AnalysisResponse(BaseModel):
    """Either an inline result or the background job computing it."""

    result: Any = None
    job: Optional[JobStatus] = None


class RecalculateRequest(BaseModel):
    force: bool = Field(False, description="Run now, ignoring the freshness window")
    delay_sec: Optional[float] = Field(None, ge=0, description="Override the debounce delay")


class RecalculateResponse(BaseModel):
    scheduled: bool
    job: Optional[JobStatus] = None
    is_calculating: bool
    last_calculated: Optional[str] = None


class CorrelationCacheStats(BaseModel):
    total: int
    expired: int
    active: int


class CacheCleanupResponse(BaseModel):
    correlation_removed: int
    trend_removed: int


class TreatmentAlertModel(BaseModel):
    id: str
    treatment_id: str
    alert_type: Literal["effectiveness_drop", "low_effectiveness", "unused_effective_treatment"]
    severity: Literal["info", "warning"]
    message: str
    action_suggestion: str
    created_at: str
    dismissed: bool = False


class TreatmentAlertListResponse(BaseModel):
    items: List[TreatmentAlertModel] = Field(default_factory=list)
    created: int = Field(0, description="Alerts raised by this request")
