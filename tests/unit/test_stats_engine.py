"""
Unit tests for the statistics engine.
"""
import logging
import pytest
from decimal import Decimal

from lab_stats.services import stats_engine
from lab_stats.services.stats_calculators import SalesTrendBuilder
from lab_stats.services.stats_engine import StatisticsEngine, CalculationValidationError
from lab_stats.services.stats_period import PeriodResolver
from tests.utils import lab_datetime, make_record, make_tenant_config


PERIOD = PeriodResolver.resolve(now=lab_datetime(2024, 3, 10))


def _compute(period_records, comparison_records=None, year_records=None, all_time_records=None,
             directory=None, **config):
    return StatisticsEngine().compute(
        PERIOD,
        period_records,
        comparison_records or [],
        period_records if year_records is None else year_records,
        period_records if all_time_records is None else all_time_records,
        directory or {},
        make_tenant_config(**config)
    )


class TestSnapshotShape:
    """Snapshot layout and formatting."""

    def test_empty_period(self):
        snapshot = _compute([])

        assert snapshot['total_cases'] == 0
        assert snapshot['period_revenue'] == 0.0
        assert snapshot['reporting_mode'] == 'revenue'
        assert len(snapshot['sales_trend']) == 12
        assert snapshot['by_branch'] == {'top': [], 'all': []}
        assert snapshot['growth']['revenue_growth_pct'] == 0.0
        assert snapshot['period']['trend_year'] == 2024
        assert snapshot['period']['filter_start'].startswith('2024-03-01T00:00:00')

    def test_money_is_rounded_float(self):
        records = [make_record(payments=[('Pago móvil', Decimal('100'))], exchange_rate=Decimal('3'))]

        snapshot = _compute(records)

        assert snapshot['period_revenue'] == 33.33
        assert isinstance(snapshot['by_branch']['all'][0]['revenue'], float)

    def test_every_dimension_present(self):
        snapshot = _compute([make_record()])

        for name in ('by_branch', 'by_exam_type', 'by_exam_type_frequency', 'by_origin', 'by_treating_doctor',
                     'by_receptionist', 'by_pathologist', 'by_cytotech'):
            assert set(snapshot[name]) == {'top', 'all'}


class TestScenarios:
    """End-to-end calculation scenarios."""

    def test_currency_split(self):
        records = [
            make_record(
                payments=[('Cash-USD', Decimal('60')), ('Transfer-Bs', Decimal('4000'))],
                exchange_rate=Decimal('40')
            )
        ]

        snapshot = _compute(records, local_currency_methods=['Transfer-Bs'])

        assert snapshot['period_revenue_reference'] == 60.0
        assert snapshot['period_revenue_local'] == 4000.0
        assert snapshot['period_revenue'] == 160.0

    def test_exam_type_variants(self):
        records = [
            make_record(exam_type='Citología'),
            make_record(exam_type='citologia'),
            make_record(exam_type='CITOLOGIA '),
        ]

        snapshot = _compute(records)

        exam_types = snapshot['by_exam_type']['all']
        assert len(exam_types) == 1
        assert exam_types[0]['count'] == 3
        assert exam_types[0]['label'] == 'Citología'
        assert exam_types[0]['percentage'] == 100.0

    def test_exam_type_frequency_view(self):
        records = [
            make_record(exam_type='Biopsia', total_amount=Decimal('900')),
            make_record(exam_type='Citología', total_amount=Decimal('10')),
            make_record(exam_type='Citología', total_amount=Decimal('10')),
        ]

        snapshot = _compute(records)

        assert [b['label'] for b in snapshot['by_exam_type']['top']] == ['Biopsia', 'Citología']
        frequency = snapshot['by_exam_type_frequency']['top']
        assert [(b['label'], b['count']) for b in frequency] == [('Citología', 2), ('Biopsia', 1)]
        assert frequency[0]['percentage'] == 66.66

    def test_growth_doubled(self):
        current = [make_record(payments=[('Zelle', Decimal('200'))])]
        previous = [make_record(
            created_at=lab_datetime(2024, 2, 10),
            payments=[('Zelle', Decimal('100'))]
        )]

        snapshot = _compute(current, comparison_records=previous, year_records=previous + current)

        assert snapshot['growth']['revenue_growth_pct'] == 100.0
        assert snapshot['growth']['case_growth_pct'] == 0.0
        assert snapshot['growth']['previous_period_revenue'] == 100.0
        assert snapshot['sales_trend'][1]['value'] == 100.0
        assert snapshot['sales_trend'][2]['value'] == 200.0
        assert snapshot['sales_trend'][2]['is_selected'] is True

    def test_empty_payment_legs_still_count_as_case(self):
        records = [make_record(payments=[], total_amount=Decimal('90'), payment_status='Incompleto')]

        snapshot = _compute(records)

        assert snapshot['total_cases'] == 1
        assert snapshot['period_revenue'] == 0.0
        assert snapshot['period_revenue_local'] == 0.0
        assert snapshot['period_revenue_reference'] == 0.0
        assert snapshot['pending_amount'] == 90.0
        assert snapshot['incomplete_cases'] == 1

    def test_case_count_reporting_mode(self):
        records = [make_record(), make_record(payments=[])]

        snapshot = _compute(records, reporting_mode='case_count')

        assert snapshot['reporting_mode'] == 'case_count'
        assert snapshot['sales_trend'][2]['value'] == 2.0

    def test_dimension_top_is_limited(self):
        records = [make_record(treating_doctor=f'Dr. {i}') for i in range(8)]

        snapshot = _compute(records)

        assert len(snapshot['by_treating_doctor']['top']) == 5
        assert len(snapshot['by_treating_doctor']['all']) == 8


class TestValidation:
    """Accounting cross-checks."""

    def test_broken_trend_raises_in_test_environment(self, monkeypatch):
        original_build = SalesTrendBuilder.build

        def short_build(self, *args, **kwargs):
            return original_build(self, *args, **kwargs)[:11]

        monkeypatch.setattr(SalesTrendBuilder, 'build', short_build)

        with pytest.raises(CalculationValidationError, match='expected 12'):
            _compute([make_record()])

    def test_broken_trend_only_logs_in_production(self, monkeypatch, caplog):
        original_build = SalesTrendBuilder.build

        def short_build(self, *args, **kwargs):
            return original_build(self, *args, **kwargs)[:11]

        monkeypatch.setattr(SalesTrendBuilder, 'build', short_build)
        monkeypatch.setattr(stats_engine, 'ENVIRONMENT', 'production')
        monkeypatch.delenv('PYTEST_VERSION', raising=False)

        with caplog.at_level(logging.WARNING):
            snapshot = _compute([make_record()])

        assert len(snapshot['sales_trend']) == 11
        assert 'expected 12' in caplog.text
