# -*- coding: utf-8 -*-
"""Analytics endpoints: trends, correlations, treatments and recalculation."""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..security import get_current_user
from ..timeutil import subtract_time_range, to_ms, to_utc, utc_now
from . import storage as correlation_store
from .cache import analysis_result_cache, correlation_cache
from .daily_log import compute_correlation as compute_daily_log_correlation
from .engine import CORRELATION_TYPES, get_analysis_statistics
from .insights import (
    calculate_priority_score,
    get_top_insights,
    group_insights_by_type,
    separate_strong_correlations,
)
from .models import (
    AnalysisResponse,
    CacheCleanupResponse,
    CorrelationCacheStats,
    CorrelationListResponse,
    DailyLogCorrelationResponse,
    FoodCorrelationResponse,
    JobStatus,
    RecalculateRequest,
    RecalculateResponse,
    StoredCorrelation,
    TreatmentAlertListResponse,
    TreatmentAlertModel,
    TrendResponse,
)
from .orchestration import correlation_orchestration_service
from .patterns import detect_patterns_for_user
from .temporal import temporal_correlations_for_user
from .treatment_alerts import generate_treatment_alerts, record_treatment_effectiveness
from .trends import parse_time_range, trend_analysis_service
from .windows import TimeRange
from .worker import scheduler, worker_pool

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


def _time_range(
    time_range: Optional[str],
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> TimeRange:
    """Explicit start/end win over a relative range like ``30d``.

    A purely relative range snaps to whole UTC days, so repeated requests on the
    same day resolve to the same bounds and share correlation cache entries.
    """
    try:
        if start or end:
            end_dt = to_utc(end) if end else utc_now()
            start_dt = to_utc(start) if start else subtract_time_range(end_dt, time_range or "30d")
        else:
            start_dt, end_dt = parse_time_range(time_range or "30d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if start_dt > end_dt:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return TimeRange(start=to_ms(start_dt), end=to_ms(end_dt))


def _check_range(time_range: str) -> str:
    try:
        subtract_time_range(utc_now(), time_range)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return time_range


def _run(
    user_id: str,
    key: str,
    background: bool,
    fn: Callable[..., Any],
    *args: Any,
) -> AnalysisResponse:
    if background:
        job = worker_pool.submit(f"{key}:{user_id}", fn, *args, kind=key, user_id=user_id)
        return AnalysisResponse(job=JobStatus(**job.to_dict()))
    try:
        return AnalysisResponse(result=fn(*args))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ---- Trends ----


@router.get("/trends", response_model=TrendResponse, summary="Metric series with its trend line")
def get_trend_api(
    metric: str = Query(..., min_length=1, description="e.g. overallHealth, symptom:fatigue, symptom-frequency:weekly"),
    time_range: str = Query(default="30d"),
    user: dict = Depends(get_current_user),
):
    _check_range(time_range)
    series = trend_analysis_service.fetch_metric_series(user["id"], metric, time_range)
    trend = trend_analysis_service.compute_trend(user["id"], metric, time_range, series=series)
    interpretation = (
        trend_analysis_service.generate_interpretation(trend, len(series.points))
        if trend is not None
        else {"direction": "Insufficient data", "confidence": "N/A"}
    )
    payload = series.to_dict()
    return TrendResponse(
        metric=metric,
        time_range=time_range,
        label=str(series.metadata.get("label") or metric),
        points=payload["points"],
        metadata=payload["metadata"],
        raw=payload["raw"],
        trend=trend,
        interpretation=interpretation,
    )


# ---- Stored correlations ----


@router.get("/correlations", response_model=CorrelationListResponse, summary="Stored significant correlations")
def list_correlations_api(
    type: Optional[str] = Query(default=None),
    time_range: Optional[str] = Query(default=None),
    min_coefficient: float = Query(default=0.0, ge=0, le=1),
    top: int = Query(default=5, ge=1, le=50),
    user: dict = Depends(get_current_user),
):
    if type is not None and type not in CORRELATION_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown correlation type: {type}")
    items = correlation_store.list_correlations(
        user["id"], type=type, time_range=time_range, min_abs_coefficient=min_coefficient or None
    )
    for item in items:
        item["priority_score"] = calculate_priority_score(item)
    separated = separate_strong_correlations(items)
    grouped = group_insights_by_type(items)
    return CorrelationListResponse(
        items=[StoredCorrelation(**i) for i in items],
        top=[StoredCorrelation(**i) for i in get_top_insights(items, count=top)],
        strong=[StoredCorrelation(**i) for i in separated["strong"]],
        moderate=[StoredCorrelation(**i) for i in separated["moderate"]],
        by_type={kind: len(group) for kind, group in grouped.items()},
        last_calculated=scheduler.get_last_calculated(user["id"]),
        is_calculating=scheduler.is_calculating(user["id"]),
    )


@router.get("/correlations/food", response_model=FoodCorrelationResponse, summary="Window scores for one food/symptom pair")
def food_correlation_api(
    food_id: str = Query(..., min_length=1),
    symptom: str = Query(..., min_length=1, description="Symptom name"),
    time_range: Optional[str] = Query(default="90d"),
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    use_cache: bool = Query(default=True),
    user: dict = Depends(get_current_user),
):
    window = _time_range(time_range, start, end)
    result = correlation_orchestration_service.compute_correlation(
        user["id"], food_id, symptom, window, use_cache=use_cache
    )
    return FoodCorrelationResponse(**result.to_dict())


@router.get("/correlations/{correlation_id}", response_model=StoredCorrelation, summary="One stored correlation")
def get_correlation_api(correlation_id: str, user: dict = Depends(get_current_user)):
    found = correlation_store.get_correlation(user_id=user["id"], correlation_id=correlation_id)
    found["priority_score"] = calculate_priority_score(found)
    return StoredCorrelation(**found)


@router.get("/statistics", response_model=AnalysisResponse, summary="Pair counts for one correlation pass")
def analysis_statistics_api(
    time_range: str = Query(default="30d"),
    background: bool = Query(default=False),
    user: dict = Depends(get_current_user),
):
    _check_range(time_range)
    return _run(user["id"], f"statistics-{time_range}", background, get_analysis_statistics, user["id"], time_range)


# ---- Food combinations / daily logs ----


def _combinations(user_id: str, symptom: str, window: TimeRange, min_sample_size: int) -> dict:
    return correlation_orchestration_service.compute_with_combinations(
        user_id, symptom, window, min_sample_size
    ).to_dict()


@router.get("/combinations", response_model=AnalysisResponse, summary="Synergistic food pairs for a symptom")
def combinations_api(
    symptom: str = Query(..., min_length=1),
    time_range: Optional[str] = Query(default="90d"),
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    min_sample_size: int = Query(default=3, ge=1),
    background: bool = Query(default=False),
    user: dict = Depends(get_current_user),
):
    window = _time_range(time_range, start, end)
    key = f"combinations-{symptom}-{window.start}-{window.end}-min{min_sample_size}"
    return _run(user["id"], key, background, _combinations, user["id"], symptom, window, min_sample_size)


@router.get("/daily-log", response_model=DailyLogCorrelationResponse, summary="Daily-log metric vs. symptom or flare")
def daily_log_correlation_api(
    metric: str = Query(..., description="sleep_hours | sleep_quality | mood | stress_level"),
    symptom_id: str = Query(..., min_length=1, description="Symptom name, or 'flare'"),
    threshold: float = Query(...),
    operator: str = Query(default="<", description="<, >, <= or >="),
    direction: str = Query(default="forward", description="forward | reverse"),
    time_range: Optional[str] = Query(default="90d"),
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    user: dict = Depends(get_current_user),
):
    window = _time_range(time_range, start, end)
    try:
        result = compute_daily_log_correlation(user["id"], metric, symptom_id, direction, window, threshold, operator)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DailyLogCorrelationResponse(**result.to_dict())


# ---- Treatments / temporal / patterns ----


def _treatments(user_id: str, time_range: str) -> list:
    return [t.to_dict() for t in record_treatment_effectiveness(user_id, time_range)]


@router.get("/treatments", response_model=AnalysisResponse, summary="Treatment effectiveness ranking")
def treatments_api(
    time_range: str = Query(default="90d"),
    background: bool = Query(default=False),
    user: dict = Depends(get_current_user),
):
    _check_range(time_range)
    return _run(user["id"], f"treatments-{time_range}", background, _treatments, user["id"], time_range)


@router.get("/treatments/alerts", response_model=TreatmentAlertListResponse, summary="Active treatment alerts")
def treatment_alerts_api(
    refresh: bool = Query(default=False, description="Evaluate stored effectiveness history first"),
    user: dict = Depends(get_current_user),
):
    created = generate_treatment_alerts(user["id"]) if refresh else []
    return TreatmentAlertListResponse(
        items=[TreatmentAlertModel(**a) for a in correlation_store.list_treatment_alerts(user["id"])],
        created=len(created),
    )


@router.post(
    "/treatments/alerts/{alert_id}/dismiss",
    response_model=TreatmentAlertModel,
    summary="Dismiss a treatment alert",
)
def dismiss_treatment_alert_api(alert_id: str, user: dict = Depends(get_current_user)):
    return TreatmentAlertModel(**correlation_store.dismiss_treatment_alert(user_id=user["id"], alert_id=alert_id))


@router.get("/temporal", response_model=AnalysisResponse, summary="Trigger to symptom time-lag buckets")
def temporal_api(
    time_range: str = Query(default="30d"),
    user: dict = Depends(get_current_user),
):
    _check_range(time_range)
    return AnalysisResponse(result=[c.to_dict() for c in temporal_correlations_for_user(user["id"], time_range)])


@router.get("/patterns", response_model=AnalysisResponse, summary="Recurring sequences and day-of-week patterns")
def patterns_api(
    time_range: str = Query(default="30d"),
    correlation_range: Optional[str] = Query(default=None, description="Stored correlation range; defaults to time_range"),
    user: dict = Depends(get_current_user),
):
    _check_range(time_range)
    correlations = correlation_store.list_correlations(user["id"], time_range=correlation_range or time_range)
    return AnalysisResponse(result=detect_patterns_for_user(user["id"], time_range, correlations))


# ---- Recalculation / jobs / cache ----


@router.post("/recalculate", response_model=RecalculateResponse, summary="Schedule or force correlation recalculation")
def recalculate_api(request: RecalculateRequest, user: dict = Depends(get_current_user)):
    job = None
    if request.force:
        job = JobStatus(**scheduler.force_recalculation(user["id"]).to_dict())
    else:
        scheduler.schedule(user["id"], delay_sec=request.delay_sec)
    return RecalculateResponse(
        scheduled=job is None,
        job=job,
        is_calculating=scheduler.is_calculating(user["id"]),
        last_calculated=scheduler.get_last_calculated(user["id"]),
    )


@router.get("/jobs/{job_id}", response_model=JobStatus, summary="Background job status")
def job_status_api(job_id: str, user: dict = Depends(get_current_user)):
    job = worker_pool.get_job(job_id)
    if job is None or job.user_id != user["id"]:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatus(**job.to_dict())


@router.get("/cache/stats", response_model=CorrelationCacheStats, summary="Correlation cache statistics")
def cache_stats_api(user: dict = Depends(get_current_user)):
    return CorrelationCacheStats(**correlation_cache.get_stats(user["id"]))


@router.post("/cache/cleanup", response_model=CacheCleanupResponse, summary="Remove expired cache entries")
def cache_cleanup_api(user: dict = Depends(get_current_user)):
    return CacheCleanupResponse(
        correlation_removed=correlation_cache.cleanup_expired(user["id"]),
        trend_removed=analysis_result_cache.cleanup_expired(user["id"]),
    )
