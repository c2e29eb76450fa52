"""
Statistics service: entry point for laboratory statistics.

Resolves the reporting period, validates the laboratory configuration, fetches
the needed case sets from a RecordStore and hands normalized records to the
pure StatisticsEngine.
"""
from datetime import date, datetime
from typing import Dict, Any, Optional, Union
import logging

from lab_stats.services.record_store import RecordStore
from lab_stats.services.stats_engine import StatisticsEngine
from lab_stats.services.stats_normalizer import CaseRecordNormalizer
from lab_stats.services.stats_period import PeriodResolver

logger = logging.getLogger(__name__)


class StatisticsError(Exception):
    """Base exception for statistics computation."""
    pass


class TenantConfigurationError(StatisticsError):
    """The laboratory is not configured well enough to compute statistics."""
    pass


class LaboratoryNotAssignedError(TenantConfigurationError):
    """The tenant has no laboratory."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No laboratory found for tenant {tenant_id}")


class MissingRoleConfigurationError(TenantConfigurationError):
    """The laboratory has no available roles configured."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Laboratory {tenant_id} has no available roles configured")


def compute_statistics(
    store: RecordStore,
    tenant_id: str,
    filter_start: Optional[Union[date, datetime]] = None,
    filter_end: Optional[Union[date, datetime]] = None,
    selected_year: Optional[int] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Compute the statistics snapshot of one laboratory.

    Args:
        store: Record store scoped to the caller's tenant
        tenant_id: Laboratory id
        filter_start: Inclusive window start (defaults to start of current month)
        filter_end: Inclusive window end (defaults to end of current month)
        selected_year: Year of the monthly trend (defaults to filter_start's year)
        now: Reference instant for the default window

    Returns:
        Statistics snapshot dictionary

    Raises:
        LaboratoryNotAssignedError: If the tenant has no laboratory
        MissingRoleConfigurationError: If the laboratory has no roles configured
    """
    period = PeriodResolver.resolve(filter_start, filter_end, selected_year, now)

    tenant_config = store.fetch_tenant_role_config(tenant_id)
    if tenant_config is None:
        raise LaboratoryNotAssignedError(tenant_id)
    if not tenant_config.get('available_roles'):
        raise MissingRoleConfigurationError(tenant_id)

    period_rows = store.fetch_cases(tenant_id, period['filter_start'], period['filter_end'])
    comparison_rows = store.fetch_cases(tenant_id, period['comparison_start'], period['comparison_end'])
    year_rows = store.fetch_cases_for_year(tenant_id, period['trend_year'])
    all_time_rows = store.fetch_cases(tenant_id)

    logger.debug(
        f"Fetched rows for laboratory {tenant_id}: period={len(period_rows)}, "
        f"comparison={len(comparison_rows)}, year={len(year_rows)}, all_time={len(all_time_rows)}"
    )

    period_records, staff_directory = CaseRecordNormalizer.normalize(
        period_rows, store.fetch_staff_profiles
    )

    engine = StatisticsEngine()
    return engine.compute(
        period,
        period_records,
        CaseRecordNormalizer.normalize_rows(comparison_rows),
        CaseRecordNormalizer.normalize_rows(year_rows),
        CaseRecordNormalizer.normalize_rows(all_time_rows),
        staff_directory,
        tenant_config
    )
