"""
Calculation engine for laboratory statistics.

Orchestrates currency conversion, dimensional breakdowns, the monthly trend and
growth into a single snapshot. The engine is a pure function of its inputs: it
performs no I/O and keeps no state between calls.
"""
from typing import List, Dict, Any, Optional
from decimal import Decimal, ROUND_HALF_UP
import logging
import os

from lab_stats.core.config import ENVIRONMENT
from lab_stats.core.constants import (
    CALCULATION_TOLERANCE,
    TREND_MONTH_COUNT,
    REPORTING_MODE_CASE_COUNT,
)
from lab_stats.services.stats_classifiers import CurrencyClassifier, RoleClassifier
from lab_stats.services.stats_calculators import (
    CurrencyConverter,
    SummaryMetricsCalculator,
    SalesTrendBuilder,
    GrowthCalculator,
)
from lab_stats.services.stats_dimensions import DimensionalAggregator, TopNSelector
from lab_stats.services.stats_types import (
    CaseRecord,
    DimensionalBucket,
    GrowthMetric,
    ReportingPeriod,
    StaffDirectory,
    SummaryMetrics,
    TenantRoleConfig,
    TrendPoint,
)

logger = logging.getLogger(__name__)

MONEY_QUANTUM = Decimal('0.01')


class CalculationValidationError(Exception):
    """Exception raised when calculation validation fails."""
    pass


def _money(value: Decimal) -> float:
    return float(value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP))


class StatisticsEngine:
    """
    Orchestrates statistics calculations for one laboratory.

    This engine coordinates:
    1. Currency conversion of collected payments
    2. Summary metrics
    3. Dimensional breakdowns with top-N selection
    4. Monthly trend and period-over-period growth
    5. Result validation
    """

    def compute(
        self,
        period: ReportingPeriod,
        period_records: List[CaseRecord],
        comparison_records: List[CaseRecord],
        year_records: List[CaseRecord],
        all_time_records: List[CaseRecord],
        staff_directory: StaffDirectory,
        tenant_config: TenantRoleConfig
    ) -> Dict[str, Any]:
        """
        Compute the statistics snapshot.

        Args:
            period: Resolved filter/comparison windows and trend year
            period_records: Records inside the filter window
            comparison_records: Records inside the comparison window
            year_records: Records of the trend year
            all_time_records: Every record of the laboratory
            staff_directory: Staff referenced by period_records
            tenant_config: Role and reporting configuration of the laboratory

        Returns:
            Dictionary with the snapshot, money as float rounded to cents
        """
        converter = CurrencyConverter(CurrencyClassifier(tenant_config.get('local_currency_methods')))
        aggregator = DimensionalAggregator(RoleClassifier(tenant_config['available_roles']))
        trend_builder = SalesTrendBuilder(converter)
        reporting_mode = tenant_config.get('reporting_mode') or 'revenue'

        summary = SummaryMetricsCalculator.calculate(
            period_records,
            all_time_records,
            period['filter_start'],
            converter,
            aggregator,
            staff_directory
        )

        logger.debug(
            f"Computing statistics for laboratory {tenant_config['laboratory_id']}: "
            f"{summary['total_cases']} period records, {len(comparison_records)} comparison records, "
            f"{len(year_records)} trend-year records"
        )

        dimensions: Dict[str, List[DimensionalBucket]] = {
            'by_branch': aggregator.aggregate_by_branch(period_records),
            'by_exam_type': aggregator.aggregate_by_exam_type(period_records),
            'by_exam_type_frequency': aggregator.aggregate_by_exam_type_frequency(period_records),
            'by_origin': aggregator.aggregate_by_origin(period_records),
            'by_treating_doctor': aggregator.aggregate_by_treating_doctor(period_records),
            'by_receptionist': aggregator.aggregate_by_receptionist(period_records, staff_directory),
            'by_pathologist': aggregator.aggregate_by_pathologist(period_records, staff_directory),
            'by_cytotech': aggregator.aggregate_by_cytotech(period_records, staff_directory),
        }

        sales_trend = trend_builder.build(
            year_records,
            period['trend_year'],
            period['filter_start'],
            period['filter_end'],
            reporting_mode  # type: ignore[arg-type]
        )

        previous = converter.convert_all(comparison_records)
        growth = GrowthCalculator.calculate(
            summary['period_revenue'],
            summary['total_cases'],
            previous['paid_reference_total'],
            len(comparison_records)
        )

        self._validate_results(
            summary,
            dimensions,
            period_records,
            sales_trend,
            self._trend_year_total(year_records, period['trend_year'], converter, reporting_mode),
            aggregator,
            staff_directory
        )

        snapshot: Dict[str, Any] = {
            'period': {
                'filter_start': period['filter_start'].isoformat(),
                'filter_end': period['filter_end'].isoformat(),
                'comparison_start': period['comparison_start'].isoformat(),
                'comparison_end': period['comparison_end'].isoformat(),
                'trend_year': period['trend_year'],
            },
            'reporting_mode': reporting_mode,
        }
        snapshot.update(self._format_summary(summary))
        for name, buckets in dimensions.items():
            ranked = TopNSelector.select(buckets)
            snapshot[name] = {
                'top': [self._format_bucket(bucket) for bucket in ranked['top']],
                'all': [self._format_bucket(bucket) for bucket in ranked['all']],
            }
        snapshot['sales_trend'] = [self._format_trend_point(point) for point in sales_trend]
        snapshot['growth'] = self._format_growth(growth)
        return snapshot

    @staticmethod
    def _trend_year_total(
        year_records: List[CaseRecord],
        trend_year: int,
        converter: CurrencyConverter,
        reporting_mode: Optional[str]
    ) -> Decimal:
        in_year = [
            record for record in year_records
            if record['created_at'] is not None and record['created_at'].year == trend_year
        ]
        if reporting_mode == REPORTING_MODE_CASE_COUNT:
            return Decimal(len(in_year))
        return converter.convert_all(in_year)['paid_reference_total']

    @staticmethod
    def _format_summary(summary: SummaryMetrics) -> Dict[str, Any]:
        return {
            'total_revenue_all_time': _money(summary['total_revenue_all_time']),
            'period_revenue': _money(summary['period_revenue']),
            'period_revenue_local': _money(summary['period_revenue_local']),
            'period_revenue_reference': _money(summary['period_revenue_reference']),
            'total_cases': summary['total_cases'],
            'completed_cases': summary['completed_cases'],
            'incomplete_cases': summary['incomplete_cases'],
            'pending_amount': _money(summary['pending_amount']),
            'unique_patients': summary['unique_patients'],
            'new_patients_in_period': summary['new_patients_in_period'],
            'total_biopsy_blocks': summary['total_biopsy_blocks'],
            'total_cases_with_pathologist': summary['total_cases_with_pathologist'],
            'total_cases_with_cytotech': summary['total_cases_with_cytotech'],
        }

    @staticmethod
    def _format_bucket(bucket: DimensionalBucket) -> Dict[str, Any]:
        """Percentage is the truncated share of the dimension's ranking metric."""
        return {
            'key': bucket['key'],
            'label': bucket['label'],
            'count': bucket['count'],
            'revenue': _money(bucket['revenue']),
            'percentage': float(bucket['percentage']),
        }

    @staticmethod
    def _format_trend_point(point: TrendPoint) -> Dict[str, Any]:
        return {
            'month_key': point['month_key'],
            'month_index': point['month_index'],
            'value': _money(point['value']),
            'is_selected': point['is_selected'],
        }

    @staticmethod
    def _format_growth(growth: GrowthMetric) -> Dict[str, Any]:
        return {
            'revenue_growth_pct': float(growth['revenue_growth_pct']),
            'case_growth_pct': float(growth['case_growth_pct']),
            'previous_period_revenue': _money(growth['previous_period_revenue']),
            'previous_period_cases': growth['previous_period_cases'],
        }

    def _validate_results(
        self,
        summary: SummaryMetrics,
        dimensions: Dict[str, List[DimensionalBucket]],
        period_records: List[CaseRecord],
        sales_trend: List[TrendPoint],
        trend_year_total: Decimal,
        aggregator: DimensionalAggregator,
        directory: StaffDirectory
    ) -> None:
        """
        Validate calculation results for accounting accuracy.

        Checks:
        1. Dimension revenue matches the billed total of contributing records
        2. Dimension counts match the number of contributing records
        3. Percentages of a dimension do not exceed 100
        4. The trend has one bucket per month
        5. The trend sums to the independently computed trend-year total

        Fails loudly in development/test environments, logs warnings in production.
        """
        is_test = os.getenv("PYTEST_VERSION") is not None
        is_dev_or_test = ENVIRONMENT in ['development', 'test'] or is_test

        errors: List[str] = []
        warnings: List[str] = []

        def report(message: str) -> None:
            if is_dev_or_test:
                errors.append(message)
            else:
                warnings.append(message)

        contributing: Dict[str, List[CaseRecord]] = {
            'by_branch': period_records,
            'by_exam_type': period_records,
            'by_exam_type_frequency': period_records,
            'by_origin': [r for r in period_records if r['origin'].strip()],
            'by_treating_doctor': [r for r in period_records if r['treating_doctor'].strip()],
            'by_receptionist': [r for r in period_records if aggregator.resolve_receptionist(r, directory)],
            'by_pathologist': [r for r in period_records if aggregator.resolve_pathologist(r, directory)],
            'by_cytotech': [r for r in period_records if aggregator.resolve_cytotech(r, directory)],
        }

        # Check 1 & 2: dimension totals
        for name, buckets in dimensions.items():
            records = contributing[name]
            expected_revenue = sum((record['total_amount'] for record in records), Decimal('0'))
            dimension_revenue = sum((bucket['revenue'] for bucket in buckets), Decimal('0'))
            if abs(dimension_revenue - expected_revenue) > CALCULATION_TOLERANCE:
                report(
                    f"{name} revenue mismatch: expected={expected_revenue}, "
                    f"breakdown={dimension_revenue}, diff={abs(dimension_revenue - expected_revenue)}"
                )

            dimension_count = sum(bucket['count'] for bucket in buckets)
            if dimension_count != len(records):
                report(f"{name} count mismatch: expected={len(records)}, breakdown={dimension_count}")

            # Check 3: percentages never exceed 100
            pct_total = sum((bucket['percentage'] for bucket in buckets), Decimal('0'))
            if pct_total > 100:
                report(f"{name} percentages sum to {pct_total}, expected at most 100")

        if summary['completed_cases'] + summary['incomplete_cases'] != summary['total_cases']:
            report(
                f"Case count mismatch: completed={summary['completed_cases']}, "
                f"incomplete={summary['incomplete_cases']}, total={summary['total_cases']}"
            )

        # Check 4: trend length
        if len(sales_trend) != TREND_MONTH_COUNT:
            report(f"Sales trend has {len(sales_trend)} buckets, expected {TREND_MONTH_COUNT}")

        # Check 5: trend total
        trend_total = sum((point['value'] for point in sales_trend), Decimal('0'))
        if abs(trend_total - trend_year_total) > CALCULATION_TOLERANCE:
            report(
                f"Sales trend total mismatch: trend={trend_total}, "
                f"year_total={trend_year_total}, diff={abs(trend_total - trend_year_total)}"
            )

        # Log warnings in production
        for warning in warnings:
            logger.warning(warning)

        # Raise errors in dev/test
        if errors:
            error_message = "Calculation validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            raise CalculationValidationError(error_message)
