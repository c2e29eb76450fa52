"""
Test utilities for laboratory statistics tests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from lab_stats.services.record_store import RecordStore
from lab_stats.services.stats_normalizer import CaseRecordNormalizer
from lab_stats.services.stats_types import CaseRecord, StaffProfile, TenantRoleConfig
from lab_stats.utils.datetime_utils import LAB_TZ, ensure_lab_tz, parse_datetime_string_to_lab_tz

ALL_ROLES = ["owner", "admin", "employee", "residente", "citotecno", "patologo"]

_case_counter = 0


def lab_datetime(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Laboratory-timezone datetime."""
    return datetime(year, month, day, hour, minute, tzinfo=LAB_TZ)


def make_case_row(**overrides: Any) -> Dict[str, Any]:
    """
    Build a raw joined case row as returned by a record store.

    Defaults describe a paid 100.00 biopsy with a single cash payment.
    Pass payments=[(method, amount), ...] to fill the payment legs.
    """
    global _case_counter
    _case_counter += 1

    payments = overrides.pop('payments', [('Efectivo USD', Decimal('100'))])
    patient = overrides.pop('patient', {'id': 'patient-1', 'cedula': 'V-1234567', 'nombre': 'Ana Pérez'})

    row: Dict[str, Any] = {
        'id': f'case-{_case_counter}',
        'created_at': lab_datetime(2024, 3, 15),
        'branch': 'PMG',
        'exam_type': 'Biopsia',
        'origin': 'Clínica Central',
        'treating_doctor': 'Dr. Rivas',
        'total_amount': Decimal('100'),
        'payment_status': 'Pagado',
        'exchange_rate': Decimal('40'),
        'patient_id': patient['id'] if patient else None,
        'created_by': None,
        'generated_by': None,
        'pathologist_id': None,
        'cytotech_id': None,
        'biopsy_block_count': 0,
    }
    for index in range(1, 5):
        method, amount = payments[index - 1] if index <= len(payments) else (None, None)
        row[f'payment_method_{index}'] = method
        row[f'payment_amount_{index}'] = amount
    row['patient'] = patient
    row.update(overrides)
    return row


def make_record(**overrides: Any) -> CaseRecord:
    """Build a normalized CaseRecord."""
    return CaseRecordNormalizer.normalize_rows([make_case_row(**overrides)])[0]


def make_tenant_config(**overrides: Any) -> TenantRoleConfig:
    config: Dict[str, Any] = {
        'laboratory_id': 'lab-1',
        'available_roles': list(ALL_ROLES),
        'reporting_mode': 'revenue',
        'local_currency_methods': None,
    }
    config.update(overrides)
    return config  # type: ignore[return-value]


class FakeRecordStore(RecordStore):
    """In-memory record store that filters rows by created_at and records calls."""

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        profiles: Optional[Dict[str, StaffProfile]] = None,
        config: Optional[TenantRoleConfig] = None,
        tenant_id: str = 'lab-1'
    ):
        self.rows = rows or []
        self.profiles = profiles or {}
        self.config = config if config is not None else make_tenant_config(laboratory_id=tenant_id)
        self.tenant_id = tenant_id
        self.fetch_cases_calls: List[tuple] = []
        self.profile_lookups: List[Set[str]] = []

    def fetch_cases(self, tenant_id, start_date=None, end_date=None):
        self.fetch_cases_calls.append((tenant_id, start_date, end_date))
        if tenant_id != self.tenant_id:
            return []
        result = []
        for row in self.rows:
            created_at = row.get('created_at')
            if isinstance(created_at, str):
                created_at = parse_datetime_string_to_lab_tz(created_at)
            elif created_at is not None:
                created_at = ensure_lab_tz(created_at)
            if (start_date is not None or end_date is not None) and created_at is None:
                continue
            if start_date is not None and created_at < start_date:
                continue
            if end_date is not None and created_at > end_date:
                continue
            result.append(dict(row))
        return result

    def fetch_staff_profiles(self, ids):
        self.profile_lookups.append(set(ids))
        return {staff_id: self.profiles[staff_id] for staff_id in ids if staff_id in self.profiles}

    def fetch_tenant_role_config(self, tenant_id):
        if tenant_id != self.tenant_id:
            return None
        return self.config


def staff(staff_id: str, display_name: str, role: str) -> StaffProfile:
    return StaffProfile(id=staff_id, display_name=display_name, role=role)
