"""
Metric calculators for laboratory statistics.

Each calculator computes one group of metrics from normalized case records.
Amounts stay Decimal here; float conversion happens in the engine.
"""
from typing import List, Set, Optional, Dict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import logging

from lab_stats.core.constants import (
    TREND_MONTH_COUNT,
    REPORTING_MODE_CASE_COUNT,
)
from lab_stats.services.stats_classifiers import CurrencyClassifier
from lab_stats.services.stats_dimensions import DimensionalAggregator
from lab_stats.services.stats_types import (
    CaseRecord,
    CurrencyBreakdown,
    GrowthMetric,
    ReportingMode,
    StaffDirectory,
    SummaryMetrics,
    TrendPoint,
)
from lab_stats.utils.datetime_utils import month_bounds, get_month_key

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal('0.01')


class CurrencyConverter:
    """
    Splits the collected amount of a case by currency.

    A leg contributes only when it has a method and a positive amount. Local legs
    reach the reference total only through a positive exchange rate; a local leg
    on a case without a usable rate is counted in local_total only.
    """

    def __init__(self, classifier: Optional[CurrencyClassifier] = None):
        self.classifier = classifier or CurrencyClassifier()

    def convert(self, record: CaseRecord) -> CurrencyBreakdown:
        local_total = Decimal('0')
        reference_total = Decimal('0')
        paid_reference_total = Decimal('0')

        exchange_rate = record['exchange_rate']

        for leg in record['payment_legs']:
            amount = leg['amount']
            method = leg['method']
            if amount is None or amount <= 0 or not method or not method.strip():
                continue

            if self.classifier.is_local_currency(method):
                local_total += amount
                if exchange_rate > 0:
                    paid_reference_total += amount / exchange_rate
                else:
                    logger.warning(
                        f"Case {record['id']} has local-currency payment {amount} ({method}) "
                        f"but exchange rate {exchange_rate}; excluded from reference total"
                    )
            else:
                reference_total += amount
                paid_reference_total += amount

        return CurrencyBreakdown(
            local_total=local_total,
            reference_total=reference_total,
            paid_reference_total=paid_reference_total
        )

    def convert_all(self, records: List[CaseRecord]) -> CurrencyBreakdown:
        """Sum the breakdown of several records."""
        totals = CurrencyBreakdown(
            local_total=Decimal('0'),
            reference_total=Decimal('0'),
            paid_reference_total=Decimal('0')
        )
        for record in records:
            breakdown = self.convert(record)
            totals['local_total'] += breakdown['local_total']
            totals['reference_total'] += breakdown['reference_total']
            totals['paid_reference_total'] += breakdown['paid_reference_total']
        return totals


class SummaryMetricsCalculator:
    """Calculates the scalar metrics of the statistics snapshot."""

    @staticmethod
    def calculate(
        period_records: List[CaseRecord],
        all_time_records: List[CaseRecord],
        filter_start: datetime,
        converter: CurrencyConverter,
        aggregator: DimensionalAggregator,
        directory: StaffDirectory
    ) -> SummaryMetrics:
        """
        Calculate all summary metrics.

        Args:
            period_records: Records inside the filter window
            all_time_records: Every record of the laboratory
            filter_start: Start of the filter window (for new patients)
            converter: Currency converter for collected revenue
            aggregator: Resolves staff attribution of each record
            directory: Staff directory of the period records

        Returns:
            SummaryMetrics with all calculated values
        """
        currency = converter.convert_all(period_records)

        total_revenue_all_time = Decimal('0')
        all_time_patients: Set[str] = set()
        patients_seen_before: Set[str] = set()
        for record in all_time_records:
            total_revenue_all_time += record['total_amount']
            patient_id = record['patient_id']
            if patient_id is None:
                continue
            all_time_patients.add(patient_id)
            created_at = record['created_at']
            if created_at is not None and created_at < filter_start:
                patients_seen_before.add(patient_id)

        completed_cases = 0
        pending_amount = Decimal('0')
        total_biopsy_blocks = 0
        with_pathologist = 0
        with_cytotech = 0
        period_patients: Set[str] = set()

        for record in period_records:
            if record['payment_status'] == 'paid':
                completed_cases += 1
            else:
                pending_amount += record['total_amount']

            total_biopsy_blocks += record['biopsy_block_count']

            if record['patient_id'] is not None:
                period_patients.add(record['patient_id'])

            if aggregator.resolve_pathologist(record, directory):
                with_pathologist += 1
            if aggregator.resolve_cytotech(record, directory):
                with_cytotech += 1

        total_cases = len(period_records)

        return SummaryMetrics(
            total_revenue_all_time=total_revenue_all_time,
            period_revenue=currency['paid_reference_total'],
            period_revenue_local=currency['local_total'],
            period_revenue_reference=currency['reference_total'],
            total_cases=total_cases,
            completed_cases=completed_cases,
            incomplete_cases=total_cases - completed_cases,
            pending_amount=pending_amount,
            unique_patients=len(all_time_patients),
            new_patients_in_period=len(period_patients - patients_seen_before),
            total_biopsy_blocks=total_biopsy_blocks,
            total_cases_with_pathologist=with_pathologist,
            total_cases_with_cytotech=with_cytotech
        )


class SalesTrendBuilder:
    """Builds the 12-month sales trend of a calendar year."""

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self.converter = converter or CurrencyConverter()

    def build(
        self,
        year_records: List[CaseRecord],
        trend_year: int,
        filter_start: datetime,
        filter_end: datetime,
        reporting_mode: ReportingMode = "revenue"
    ) -> List[TrendPoint]:
        """
        Build one bucket per month of trend_year.

        Records outside trend_year (or without a timestamp) are ignored. In
        case_count mode each record adds 1, otherwise its collected revenue.
        """
        values: Dict[int, Decimal] = {month: Decimal('0') for month in range(1, TREND_MONTH_COUNT + 1)}

        for record in year_records:
            created_at = record['created_at']
            if created_at is None or created_at.year != trend_year:
                continue

            if reporting_mode == REPORTING_MODE_CASE_COUNT:
                values[created_at.month] += Decimal('1')
            else:
                values[created_at.month] += self.converter.convert(record)['paid_reference_total']

        trend: List[TrendPoint] = []
        for month in range(1, TREND_MONTH_COUNT + 1):
            month_start, month_end = month_bounds(trend_year, month)
            trend.append(TrendPoint(
                month_key=get_month_key(month_start),
                month_index=month - 1,
                value=values[month],
                is_selected=month_start <= filter_end and month_end >= filter_start
            ))
        return trend


class GrowthCalculator:
    """Calculates period-over-period growth."""

    @staticmethod
    def growth_percentage(current: Decimal, previous: Decimal) -> Decimal:
        """Percentage change, 0 when there is no previous value to compare against."""
        if previous <= 0:
            return Decimal('0')
        return ((current - previous) / previous * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)

    @staticmethod
    def calculate(
        current_revenue: Decimal,
        current_cases: int,
        previous_revenue: Decimal,
        previous_cases: int
    ) -> GrowthMetric:
        return GrowthMetric(
            revenue_growth_pct=GrowthCalculator.growth_percentage(current_revenue, previous_revenue),
            case_growth_pct=GrowthCalculator.growth_percentage(
                Decimal(current_cases), Decimal(previous_cases)
            ),
            previous_period_revenue=previous_revenue,
            previous_period_cases=previous_cases
        )
