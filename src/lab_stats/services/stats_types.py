"""
Type definitions for laboratory statistics calculations.

This module provides TypedDict definitions for normalized case records, the
intermediate aggregates and the final statistics snapshot.
"""
from typing import TypedDict, Optional, Literal, List, Dict
from datetime import datetime
from decimal import Decimal


PaymentStatus = Literal["paid", "incomplete", "other"]
ReportingMode = Literal["revenue", "case_count"]


class PaymentLeg(TypedDict):
    """One of the four payment slots of a case."""
    method: Optional[str]
    amount: Optional[Decimal]


class CaseRecord(TypedDict):
    """
    Normalized representation of one case row.

    Required fields are always present after normalization; missing or invalid
    source values are replaced by safe defaults (0, "" or None).
    """
    id: str
    created_at: Optional[datetime]  # Laboratory timezone; None if unparsable
    branch: str
    exam_type: str
    origin: str
    treating_doctor: str

    # Financial data
    total_amount: Decimal  # Billed amount, reference currency, >= 0
    payment_status: PaymentStatus
    exchange_rate: Decimal  # Local units per reference unit, 0 if unknown
    payment_legs: List[PaymentLeg]  # Always PAYMENT_LEG_COUNT entries

    # References
    patient_id: Optional[str]
    created_by: Optional[str]
    generated_by: Optional[str]
    pathologist_id: Optional[str]
    cytotech_id: Optional[str]

    biopsy_block_count: int
    patient_name: str  # "" when the patient could not be resolved
    patient_document: str


class StaffProfile(TypedDict):
    """Staff member as returned by the record store."""
    id: str
    display_name: str
    role: str


class StaffEntry(TypedDict):
    """Staff directory value."""
    display_name: str
    role: str


StaffDirectory = Dict[str, StaffEntry]


class TenantRoleConfig(TypedDict):
    """Role and reporting configuration of one laboratory."""
    laboratory_id: str
    available_roles: List[str]
    reporting_mode: ReportingMode
    local_currency_methods: Optional[List[str]]  # None means system default


class ReportingPeriod(TypedDict):
    """Resolved filter and comparison windows."""
    filter_start: datetime
    filter_end: datetime
    comparison_start: datetime
    comparison_end: datetime
    trend_year: int


class CurrencyBreakdown(TypedDict):
    """Collected amounts split by currency."""
    local_total: Decimal
    reference_total: Decimal
    paid_reference_total: Decimal  # Reference legs plus converted local legs


class SummaryMetrics(TypedDict):
    """Scalar metrics of the snapshot, before float conversion."""
    total_revenue_all_time: Decimal
    period_revenue: Decimal
    period_revenue_local: Decimal
    period_revenue_reference: Decimal
    total_cases: int
    completed_cases: int
    incomplete_cases: int
    pending_amount: Decimal
    unique_patients: int
    new_patients_in_period: int
    total_biopsy_blocks: int
    total_cases_with_pathologist: int
    total_cases_with_cytotech: int


class DimensionalBucket(TypedDict):
    """One group of a dimension (e.g., a branch)."""
    key: str
    label: str
    count: int
    revenue: Decimal
    percentage: Decimal


class RankedDimension(TypedDict):
    """Sorted buckets of a dimension with their top-N prefix."""
    top: List[DimensionalBucket]
    all: List[DimensionalBucket]


class TrendPoint(TypedDict):
    """Single month of the yearly sales trend."""
    month_key: str  # YYYY-MM
    month_index: int  # 0-11
    value: Decimal
    is_selected: bool


class GrowthMetric(TypedDict):
    """Period-over-period growth."""
    revenue_growth_pct: Decimal
    case_growth_pct: Decimal
    previous_period_revenue: Decimal
    previous_period_cases: int
