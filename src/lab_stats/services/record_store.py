"""
Record store: data access for statistics computation.

The statistics engine never queries the database directly. It receives raw
joined rows (case columns plus a nested patient mapping) from a RecordStore,
which is already scoped to a single laboratory.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Dict, Any, Optional, Set
import logging

from sqlalchemy.orm import Session, joinedload

from lab_stats.core.constants import PAYMENT_LEG_COUNT
from lab_stats.models import Laboratory, MedicalCase, Patient, Profile
from lab_stats.services.stats_types import StaffProfile, TenantRoleConfig
from lab_stats.utils.datetime_utils import ensure_lab_tz, year_bounds

logger = logging.getLogger(__name__)

CASE_COLUMNS = [
    'id', 'created_at', 'branch', 'exam_type', 'origin', 'treating_doctor',
    'total_amount', 'payment_status', 'exchange_rate',
    'patient_id', 'created_by', 'generated_by', 'pathologist_id', 'cytotech_id',
    'biopsy_block_count',
] + [
    f'payment_{part}_{index}'
    for index in range(1, PAYMENT_LEG_COUNT + 1)
    for part in ('method', 'amount')
]


class RecordStore(ABC):
    """Source of case rows and lookup tables for one laboratory."""

    @abstractmethod
    def fetch_cases(
        self,
        tenant_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch raw case rows created within [start_date, end_date].

        Both bounds are inclusive; a missing bound leaves that side open.
        """

    def fetch_cases_for_year(self, tenant_id: str, year: int) -> List[Dict[str, Any]]:
        """Fetch raw case rows created during a calendar year."""
        start, end = year_bounds(year)
        return self.fetch_cases(tenant_id, start, end)

    @abstractmethod
    def fetch_staff_profiles(self, ids: Set[str]) -> Dict[str, StaffProfile]:
        """Fetch staff profiles by id. Unknown ids are omitted."""

    @abstractmethod
    def fetch_tenant_role_config(self, tenant_id: str) -> Optional[TenantRoleConfig]:
        """Fetch the role configuration, or None if the tenant has no laboratory."""


class SqlRecordStore(RecordStore):
    """RecordStore backed by the SQLAlchemy models."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_cases(
        self,
        tenant_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        query = self.db.query(MedicalCase).options(
            joinedload(MedicalCase.patient)
        ).filter(
            MedicalCase.laboratory_id == tenant_id
        )

        if start_date is not None:
            query = query.filter(MedicalCase.created_at >= ensure_lab_tz(start_date))
        if end_date is not None:
            query = query.filter(MedicalCase.created_at <= ensure_lab_tz(end_date))

        cases = query.order_by(MedicalCase.created_at, MedicalCase.id).all()

        logger.debug(
            f"Fetched {len(cases)} cases for laboratory {tenant_id} "
            f"(start={start_date}, end={end_date})"
        )
        return [self._case_to_row(case) for case in cases]

    def fetch_staff_profiles(self, ids: Set[str]) -> Dict[str, StaffProfile]:
        if not ids:
            return {}

        profiles = self.db.query(Profile).filter(Profile.id.in_(list(ids))).all()

        return {
            profile.id: StaffProfile(
                id=profile.id,
                display_name=profile.display_name or profile.email or '',
                role=profile.role or ''
            )
            for profile in profiles
        }

    def fetch_tenant_role_config(self, tenant_id: str) -> Optional[TenantRoleConfig]:
        laboratory = self.db.query(Laboratory).filter(Laboratory.id == tenant_id).first()
        if laboratory is None:
            return None

        statistics_settings = laboratory.get_validated_settings().statistics_settings

        return TenantRoleConfig(
            laboratory_id=laboratory.id,
            available_roles=list(laboratory.available_roles or []),
            reporting_mode=statistics_settings.reporting_mode,
            local_currency_methods=statistics_settings.local_currency_methods
        )

    @staticmethod
    def _case_to_row(case: MedicalCase) -> Dict[str, Any]:
        row: Dict[str, Any] = {column: getattr(case, column) for column in CASE_COLUMNS}
        patient: Optional[Patient] = case.patient
        row['patient'] = None if patient is None else {
            'id': patient.id,
            'cedula': patient.cedula,
            'nombre': patient.nombre,
        }
        return row
