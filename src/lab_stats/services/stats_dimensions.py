"""
Dimensional breakdowns for laboratory statistics.

Groups case records by branch, exam type, origin, treating doctor and staff
member, and ranks the groups for display.
"""
from typing import List, Dict, Callable, Optional, Tuple
from decimal import Decimal, ROUND_DOWN
import logging
import re
import unicodedata

from lab_stats.core.constants import (
    TOP_N_SIZE,
    EXAM_TYPE_SYNONYMS,
    BRANCH_ALIASES,
    UNKNOWN_STAFF_LABEL,
)
from lab_stats.services.stats_classifiers import RoleClassifier
from lab_stats.services.stats_types import (
    CaseRecord,
    DimensionalBucket,
    RankedDimension,
    StaffDirectory,
)

logger = logging.getLogger(__name__)

PERCENTAGE_QUANTUM = Decimal('0.01')

_WHITESPACE_RE = re.compile(r'\s+')

# (key, label) of the group a record belongs to, or None if it does not contribute
GroupResolver = Callable[[CaseRecord], Optional[Tuple[str, str]]]


def strip_accents(value: str) -> str:
    """Remove combining marks after NFD decomposition ("Citología" -> "Citologia")."""
    decomposed = unicodedata.normalize('NFD', value)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def _fold(value: str) -> str:
    return _WHITESPACE_RE.sub(' ', strip_accents(value.strip().lower()))


def normalize_exam_type(exam_type: str) -> str:
    """
    Grouping key for an exam type.

    Case, surrounding and repeated whitespace, accents and known spelling
    variants are ignored.
    """
    folded = _fold(exam_type)
    return EXAM_TYPE_SYNONYMS.get(folded, folded)


def canonical_branch(branch: str) -> str:
    """Canonical branch name; unknown branches are returned trimmed."""
    trimmed = branch.strip()
    return BRANCH_ALIASES.get(_fold(trimmed), trimmed)


class TopNSelector:
    """Selects the leading buckets of an already sorted dimension."""

    @staticmethod
    def select(buckets: List[DimensionalBucket], size: int = TOP_N_SIZE) -> RankedDimension:
        return RankedDimension(top=list(buckets[:size]), all=list(buckets))


class DimensionalAggregator:
    """
    Aggregates case records into ranked dimensional buckets.

    Every bucket counts the records of the group and sums their billed
    total_amount. Branch, exam type, origin and doctor rank by revenue; exam type
    frequency and staff rankings rank by case count. Percentages are shares of
    the ranking metric, truncated (not rounded) to two decimals so that a
    dimension never sums above 100.
    """

    def __init__(self, role_classifier: Optional[RoleClassifier] = None):
        self.role_classifier = role_classifier or RoleClassifier()

    # Staff attribution

    def resolve_receptionist(self, record: CaseRecord, directory: StaffDirectory) -> Optional[str]:
        created_by = record['created_by']
        if created_by and self._has_role(created_by, directory, self.role_classifier.is_receptionist):
            return created_by
        return None

    def resolve_pathologist(self, record: CaseRecord, directory: StaffDirectory) -> Optional[str]:
        if record['pathologist_id']:
            return record['pathologist_id']
        created_by = record['created_by']
        if created_by and self._has_role(created_by, directory, self.role_classifier.is_pathologist):
            return created_by
        return None

    def resolve_cytotech(self, record: CaseRecord, directory: StaffDirectory) -> Optional[str]:
        if record['cytotech_id']:
            return record['cytotech_id']
        for staff_id in (record['generated_by'], record['created_by']):
            if staff_id and self._has_role(staff_id, directory, self.role_classifier.is_cytotech):
                return staff_id
        return None

    @staticmethod
    def _has_role(staff_id: str, directory: StaffDirectory, predicate: Callable[[str], bool]) -> bool:
        entry = directory.get(staff_id)
        return entry is not None and predicate(entry['role'])

    @staticmethod
    def staff_label(staff_id: str, directory: StaffDirectory) -> str:
        entry = directory.get(staff_id)
        if entry and entry['display_name']:
            return entry['display_name']
        return UNKNOWN_STAFF_LABEL.format(staff_id=staff_id)

    # Dimensions

    def aggregate_by_branch(self, records: List[CaseRecord]) -> List[DimensionalBucket]:
        def resolve(record: CaseRecord) -> Tuple[str, str]:
            branch = canonical_branch(record['branch'])
            return _fold(branch), branch
        return self._aggregate(records, resolve, rank_by_revenue=True)

    def aggregate_by_exam_type(self, records: List[CaseRecord]) -> List[DimensionalBucket]:
        return self._aggregate(records, _exam_type_group, rank_by_revenue=True)

    def aggregate_by_exam_type_frequency(self, records: List[CaseRecord]) -> List[DimensionalBucket]:
        """Exam types ranked by how many cases requested them."""
        return self._aggregate(records, _exam_type_group, rank_by_revenue=False)

    def aggregate_by_origin(self, records: List[CaseRecord]) -> List[DimensionalBucket]:
        return self._aggregate(records, _trimmed_group('origin'), rank_by_revenue=True)

    def aggregate_by_treating_doctor(self, records: List[CaseRecord]) -> List[DimensionalBucket]:
        return self._aggregate(records, _trimmed_group('treating_doctor'), rank_by_revenue=True)

    def aggregate_by_receptionist(
        self, records: List[CaseRecord], directory: StaffDirectory
    ) -> List[DimensionalBucket]:
        return self._aggregate(
            records, self._staff_group(self.resolve_receptionist, directory), rank_by_revenue=False
        )

    def aggregate_by_pathologist(
        self, records: List[CaseRecord], directory: StaffDirectory
    ) -> List[DimensionalBucket]:
        return self._aggregate(
            records, self._staff_group(self.resolve_pathologist, directory), rank_by_revenue=False
        )

    def aggregate_by_cytotech(
        self, records: List[CaseRecord], directory: StaffDirectory
    ) -> List[DimensionalBucket]:
        return self._aggregate(
            records, self._staff_group(self.resolve_cytotech, directory), rank_by_revenue=False
        )

    def _staff_group(
        self,
        resolver: Callable[[CaseRecord, StaffDirectory], Optional[str]],
        directory: StaffDirectory
    ) -> GroupResolver:
        def resolve(record: CaseRecord) -> Optional[Tuple[str, str]]:
            staff_id = resolver(record, directory)
            if staff_id is None:
                return None
            return staff_id, self.staff_label(staff_id, directory)
        return resolve

    @staticmethod
    def _aggregate(
        records: List[CaseRecord],
        resolve_group: GroupResolver,
        rank_by_revenue: bool
    ) -> List[DimensionalBucket]:
        """
        Group, sort and attach percentages.

        Sorting is stable, so groups with equal metric keep first-seen order.
        """
        groups: Dict[str, DimensionalBucket] = {}
        for record in records:
            group = resolve_group(record)
            if group is None:
                continue
            key, label = group
            bucket = groups.get(key)
            if bucket is None:
                bucket = DimensionalBucket(
                    key=key,
                    label=label,
                    count=0,
                    revenue=Decimal('0'),
                    percentage=Decimal('0')
                )
                groups[key] = bucket
            bucket['count'] += 1
            bucket['revenue'] += record['total_amount']

        buckets = list(groups.values())

        def metric(bucket: DimensionalBucket) -> Decimal:
            return bucket['revenue'] if rank_by_revenue else Decimal(bucket['count'])

        buckets.sort(key=metric, reverse=True)

        total = sum((metric(bucket) for bucket in buckets), Decimal('0'))
        for bucket in buckets:
            bucket['percentage'] = percentage_of(metric(bucket), total)

        return buckets


def percentage_of(value: Decimal, total: Decimal) -> Decimal:
    """
    value / total * 100, truncated to two decimals; 0 when total is 0.

    Truncation keeps the sum over a dimension at or below 100, so 1/3 of a
    total is 33.33 and never 33.34.
    """
    if total <= 0:
        return Decimal('0')
    return (value / total * 100).quantize(PERCENTAGE_QUANTUM, rounding=ROUND_DOWN)


def _exam_type_group(record: CaseRecord) -> Tuple[str, str]:
    exam_type = record['exam_type']
    return normalize_exam_type(exam_type), exam_type


def _trimmed_group(field: str) -> GroupResolver:
    def resolve(record: CaseRecord) -> Optional[Tuple[str, str]]:
        value = record[field].strip()  # type: ignore[literal-required]
        if not value:
            return None
        return value, value
    return resolve
