"""
Services package for laboratory statistics.

This package contains the statistics engine, its calculators and the
record store and cache that surround it.
"""

from .record_store import RecordStore, SqlRecordStore
from .statistics_service import (
    compute_statistics,
    StatisticsError,
    TenantConfigurationError,
    LaboratoryNotAssignedError,
    MissingRoleConfigurationError,
)
from .statistics_cache import (
    StatisticsCache,
    InvalidationBus,
    CaseChangeEvent,
    register_case_change_events,
)
from .stats_engine import StatisticsEngine, CalculationValidationError

__all__ = [
    "RecordStore",
    "SqlRecordStore",
    "compute_statistics",
    "StatisticsError",
    "TenantConfigurationError",
    "LaboratoryNotAssignedError",
    "MissingRoleConfigurationError",
    "StatisticsCache",
    "InvalidationBus",
    "CaseChangeEvent",
    "register_case_change_events",
    "StatisticsEngine",
    "CalculationValidationError",
]
