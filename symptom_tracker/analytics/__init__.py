# -*- coding: utf-8 -*-
"""
Analytics module

Trend analysis, correlation engine, result caches and background recalculation.
"""

from .cache import AnalysisResultCache, CorrelationCache, analysis_result_cache, correlation_cache
from .engine import find_significant_correlations
from .orchestration import CorrelationOrchestrationService, correlation_orchestration_service
from .trends import TrendAnalysisService, trend_analysis_service
from .worker import AnalysisWorkerPool, RecalculationScheduler, scheduler, worker_pool

__all__ = [
    'AnalysisResultCache',
    'AnalysisWorkerPool',
    'CorrelationCache',
    'CorrelationOrchestrationService',
    'RecalculationScheduler',
    'TrendAnalysisService',
    'analysis_result_cache',
    'correlation_cache',
    'correlation_orchestration_service',
    'find_significant_correlations',
    'scheduler',
    'trend_analysis_service',
    'worker_pool',
]
