"""
Capability predicates used by the statistics calculators.

Currency and role classification are configured once per computation so the
calculators never consult global state.
"""
from typing import Iterable, Optional, Set
import logging

from lab_stats.core.config import LOCAL_CURRENCY_METHODS
from lab_stats.core.constants import (
    DEFAULT_LOCAL_CURRENCY_METHODS,
    RECEPTIONIST_ROLES,
    PATHOLOGIST_ROLES,
    CYTOTECH_ROLES,
)

logger = logging.getLogger(__name__)


def _normalize_label(value: Optional[str]) -> str:
    return (value or '').strip().lower()


class CurrencyClassifier:
    """
    Decides whether a payment method is collected in local currency.

    Matching is an exact membership test on the trimmed, lower-cased method name.
    """

    def __init__(self, local_methods: Optional[Iterable[str]] = None):
        if local_methods is None:
            local_methods = LOCAL_CURRENCY_METHODS or DEFAULT_LOCAL_CURRENCY_METHODS
        self.local_methods: Set[str] = {
            _normalize_label(method) for method in local_methods if _normalize_label(method)
        }

    def is_local_currency(self, method: Optional[str]) -> bool:
        normalized = _normalize_label(method)
        if not normalized:
            return False
        return normalized in self.local_methods


class RoleClassifier:
    """
    Maps staff roles to the rankings they appear in.

    Only roles enabled for the laboratory are considered; a role that exists
    globally but is not in available_roles never qualifies.
    """

    def __init__(
        self,
        available_roles: Optional[Iterable[str]] = None,
        receptionist_roles: Iterable[str] = RECEPTIONIST_ROLES,
        pathologist_roles: Iterable[str] = PATHOLOGIST_ROLES,
        cytotech_roles: Iterable[str] = CYTOTECH_ROLES,
    ):
        enabled = None if available_roles is None else {_normalize_label(r) for r in available_roles}
        self._receptionist = self._restrict(receptionist_roles, enabled)
        self._pathologist = self._restrict(pathologist_roles, enabled)
        self._cytotech = self._restrict(cytotech_roles, enabled)

    @staticmethod
    def _restrict(roles: Iterable[str], enabled: Optional[Set[str]]) -> Set[str]:
        normalized = {_normalize_label(role) for role in roles}
        if enabled is None:
            return normalized
        return normalized & enabled

    def is_receptionist(self, role: Optional[str]) -> bool:
        return _normalize_label(role) in self._receptionist

    def is_pathologist(self, role: Optional[str]) -> bool:
        return _normalize_label(role) in self._pathologist

    def is_cytotech(self, role: Optional[str]) -> bool:
        return _normalize_label(role) in self._cytotech
