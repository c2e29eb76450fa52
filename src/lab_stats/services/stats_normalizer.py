"""
Case record normalizer for statistics calculations.

Converts raw joined rows returned by the record store into CaseRecord objects,
handling missing and malformed data gracefully. Aggregation code only ever sees
normalized records.
"""
from typing import List, Optional, Dict, Any, Callable, Set, Tuple, Iterable
from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging

from lab_stats.core.constants import (
    PAYMENT_LEG_COUNT,
    PAYMENT_STATUS_PAID_VALUES,
    PAYMENT_STATUS_INCOMPLETE_VALUES,
)
from lab_stats.services.stats_types import (
    CaseRecord,
    PaymentLeg,
    PaymentStatus,
    StaffDirectory,
    StaffEntry,
    StaffProfile,
)
from lab_stats.utils.datetime_utils import ensure_lab_tz, parse_datetime_string_to_lab_tz

logger = logging.getLogger(__name__)

ProfileLookup = Callable[[Set[str]], Dict[str, StaffProfile]]

# Case columns that reference staff profiles
STAFF_REFERENCE_FIELDS = ('created_by', 'generated_by', 'pathologist_id', 'cytotech_id')


class CaseRecordNormalizer:
    """
    Normalizes raw case rows.

    Handles:
    - Missing or non-numeric amounts (coerced to 0)
    - Negative billed amounts (clamped to 0)
    - Missing patient join (record kept with empty patient fields)
    - Unparsable timestamps (record kept with created_at None)
    """

    @staticmethod
    def normalize(
        rows: Iterable[Dict[str, Any]],
        profile_lookup: ProfileLookup
    ) -> Tuple[List[CaseRecord], StaffDirectory]:
        """
        Normalize rows and resolve the staff directory in a single lookup.

        Args:
            rows: Raw joined rows from the record store
            profile_lookup: Callable receiving the set of referenced staff ids

        Returns:
            (records, directory). Ids unknown to the lookup are absent from the directory.
        """
        records = CaseRecordNormalizer.normalize_rows(rows)

        staff_ids: Set[str] = set()
        for record in records:
            for field in STAFF_REFERENCE_FIELDS:
                staff_id = record[field]  # type: ignore[literal-required]
                if staff_id:
                    staff_ids.add(staff_id)

        directory: StaffDirectory = {}
        if staff_ids:
            profiles = profile_lookup(staff_ids)
            for staff_id, profile in profiles.items():
                directory[staff_id] = StaffEntry(
                    display_name=profile.get('display_name') or '',
                    role=profile.get('role') or ''
                )

        missing = staff_ids - set(directory)
        if missing:
            logger.debug(f"{len(missing)} referenced staff ids have no profile")

        logger.debug(f"Normalized {len(records)} records, resolved {len(directory)} staff profiles")
        return records, directory

    @staticmethod
    def normalize_rows(rows: Iterable[Dict[str, Any]]) -> List[CaseRecord]:
        """Normalize rows without resolving staff."""
        return [CaseRecordNormalizer._normalize_row(row) for row in rows]

    @staticmethod
    def _normalize_row(row: Dict[str, Any]) -> CaseRecord:
        record_id = str(row.get('id') or '')

        patient = row.get('patient')
        if not isinstance(patient, dict):
            logger.warning(f"Case {record_id} has no resolvable patient")
            patient = {}

        total_amount = _to_decimal(row.get('total_amount'))
        if total_amount < 0:
            logger.warning(f"Case {record_id} has negative total_amount {total_amount}, using 0")
            total_amount = Decimal('0')

        legs: List[PaymentLeg] = []
        for index in range(1, PAYMENT_LEG_COUNT + 1):
            amount = row.get(f'payment_amount_{index}')
            legs.append(PaymentLeg(
                method=_to_optional_str(row.get(f'payment_method_{index}')),
                amount=_to_decimal(amount) if amount is not None else None
            ))

        blocks = _to_int(row.get('biopsy_block_count'))

        return CaseRecord(
            id=record_id,
            created_at=_to_datetime(row.get('created_at'), record_id),
            branch=_to_str(row.get('branch')),
            exam_type=_to_str(row.get('exam_type')),
            origin=_to_str(row.get('origin')),
            treating_doctor=_to_str(row.get('treating_doctor')),
            total_amount=total_amount,
            payment_status=normalize_payment_status(row.get('payment_status')),
            exchange_rate=_to_decimal(row.get('exchange_rate')),
            payment_legs=legs,
            patient_id=_to_optional_str(row.get('patient_id')),
            created_by=_to_optional_str(row.get('created_by')),
            generated_by=_to_optional_str(row.get('generated_by')),
            pathologist_id=_to_optional_str(row.get('pathologist_id')),
            cytotech_id=_to_optional_str(row.get('cytotech_id')),
            biopsy_block_count=max(blocks, 0),
            patient_name=_to_str(patient.get('nombre')),
            patient_document=_to_str(patient.get('cedula'))
        )


def normalize_payment_status(value: Any) -> PaymentStatus:
    """Map a raw payment_status to paid / incomplete / other (case-insensitive)."""
    normalized = _to_str(value).strip().lower()
    if normalized in PAYMENT_STATUS_PAID_VALUES:
        return "paid"
    if normalized in PAYMENT_STATUS_INCOMPLETE_VALUES:
        return "incomplete"
    return "other"


def _to_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal('0')
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.debug(f"Non-numeric value {value!r}, using 0")
        return Decimal('0')
    if not result.is_finite():
        return Decimal('0')
    return result


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def _to_str(value: Any) -> str:
    if value is None:
        return ''
    return str(value)


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _to_datetime(value: Any, record_id: str) -> Optional[datetime]:
    if value is None:
        logger.warning(f"Case {record_id} has no created_at")
        return None
    if isinstance(value, datetime):
        return ensure_lab_tz(value)
    try:
        return parse_datetime_string_to_lab_tz(str(value))
    except ValueError:
        logger.warning(f"Case {record_id} has unparsable created_at: {value!r}")
        return None
