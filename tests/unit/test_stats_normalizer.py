"""
Unit tests for the case record normalizer.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal

from lab_stats.services.stats_normalizer import CaseRecordNormalizer, normalize_payment_status
from lab_stats.utils.datetime_utils import LAB_TZ
from tests.utils import make_case_row, staff


class TestNormalizeRows:
    """Field coercion."""

    def test_basic_row(self):
        row = make_case_row(
            id='case-a',
            payments=[('Efectivo USD', Decimal('60')), ('Pago Móvil', '4000')],
            biopsy_block_count=3
        )

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['id'] == 'case-a'
        assert record['total_amount'] == Decimal('100')
        assert record['payment_status'] == 'paid'
        assert record['patient_name'] == 'Ana Pérez'
        assert record['patient_document'] == 'V-1234567'
        assert record['biopsy_block_count'] == 3
        assert len(record['payment_legs']) == 4
        assert record['payment_legs'][1] == {'method': 'Pago Móvil', 'amount': Decimal('4000')}
        assert record['payment_legs'][2] == {'method': None, 'amount': None}

    def test_invalid_numbers_become_zero(self):
        row = make_case_row(total_amount='abc', exchange_rate=None, biopsy_block_count='x')

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['total_amount'] == Decimal('0')
        assert record['exchange_rate'] == Decimal('0')
        assert record['biopsy_block_count'] == 0

    def test_numeric_strings_and_floats_are_parsed(self):
        row = make_case_row(total_amount='150.50', exchange_rate=36.5)

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['total_amount'] == Decimal('150.50')
        assert record['exchange_rate'] == Decimal('36.5')

    def test_negative_total_is_clamped(self, caplog):
        row = make_case_row(total_amount=Decimal('-20'))

        with caplog.at_level(logging.WARNING):
            record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['total_amount'] == Decimal('0')
        assert 'negative total_amount' in caplog.text

    def test_missing_strings_become_empty(self):
        row = make_case_row(branch=None, exam_type=None, origin=None, treating_doctor=None)

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['branch'] == ''
        assert record['exam_type'] == ''
        assert record['origin'] == ''
        assert record['treating_doctor'] == ''

    def test_iso_string_timestamp_is_converted_to_lab_tz(self):
        row = make_case_row(created_at='2024-03-01T02:00:00Z')

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['created_at'] == datetime(2024, 2, 29, 22, 0, tzinfo=LAB_TZ)
        assert record['created_at'].month == 2

    def test_aware_datetime_is_converted(self):
        row = make_case_row(created_at=datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc))

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['created_at'].year == 2023

    def test_blank_references_become_none(self):
        row = make_case_row(created_by='  ', pathologist_id='')

        record = CaseRecordNormalizer.normalize_rows([row])[0]

        assert record['created_by'] is None
        assert record['pathologist_id'] is None


class TestDegradedRows:
    """Degraded rows are kept and logged."""

    def test_missing_patient_is_kept(self, caplog):
        row = make_case_row(patient=None)

        with caplog.at_level(logging.WARNING):
            records = CaseRecordNormalizer.normalize_rows([row])

        assert len(records) == 1
        assert records[0]['patient_name'] == ''
        assert records[0]['patient_id'] is None
        assert 'no resolvable patient' in caplog.text

    def test_unparsable_timestamp_is_kept(self, caplog):
        row = make_case_row(created_at='not a date')

        with caplog.at_level(logging.WARNING):
            records = CaseRecordNormalizer.normalize_rows([row])

        assert records[0]['created_at'] is None
        assert 'unparsable created_at' in caplog.text


class TestPaymentStatus:
    """Payment status normalization."""

    def test_known_values(self):
        assert normalize_payment_status('Pagado') == 'paid'
        assert normalize_payment_status(' PAID ') == 'paid'
        assert normalize_payment_status('Incompleto') == 'incomplete'
        assert normalize_payment_status('incomplete') == 'incomplete'

    def test_unknown_values(self):
        assert normalize_payment_status(None) == 'other'
        assert normalize_payment_status('Anulado') == 'other'


class TestStaffDirectory:
    """Staff directory resolution."""

    def test_single_lookup_with_all_referenced_ids(self):
        rows = [
            make_case_row(created_by='u1', generated_by='u2'),
            make_case_row(created_by='u1', pathologist_id='u3', cytotech_id='u4'),
        ]
        lookups = []

        def lookup(ids):
            lookups.append(set(ids))
            return {
                'u1': staff('u1', 'María', 'employee'),
                'u3': staff('u3', 'Dr. Gómez', 'patologo'),
            }

        records, directory = CaseRecordNormalizer.normalize(rows, lookup)

        assert len(records) == 2
        assert lookups == [{'u1', 'u2', 'u3', 'u4'}]
        assert directory == {
            'u1': {'display_name': 'María', 'role': 'employee'},
            'u3': {'display_name': 'Dr. Gómez', 'role': 'patologo'},
        }

    def test_no_references_skips_lookup(self):
        lookups = []

        def lookup(ids):
            lookups.append(ids)
            return {}

        records, directory = CaseRecordNormalizer.normalize([make_case_row()], lookup)

        assert lookups == []
        assert directory == {}
