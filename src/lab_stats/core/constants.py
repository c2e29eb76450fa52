"""Application constants and configuration values."""

from decimal import Decimal

# Database field lengths
MAX_STRING_LENGTH = 255

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# Case records carry up to four payment legs (payment_method_N / payment_amount_N)
PAYMENT_LEG_COUNT = 4

# Statistics layout
TOP_N_SIZE = 5  # Entries shown on summary cards
TREND_MONTH_COUNT = 12  # Trend always covers a full calendar year

# Tolerance for revenue cross-checks (1 cent)
CALCULATION_TOLERANCE = Decimal('0.01')

# Payment methods collected in local currency (bolívares).
# Matched case-insensitively against the trimmed method name, exact membership.
DEFAULT_LOCAL_CURRENCY_METHODS = [
    'punto de venta',
    'pago móvil',
    'pago movil',
    'bs en efectivo',
    'transferencia',
]

# Raw payment_status values
PAYMENT_STATUS_PAID_VALUES = {'pagado', 'paid'}
PAYMENT_STATUS_INCOMPLETE_VALUES = {'incompleto', 'incomplete'}

# Staff roles (laboratory.available_roles / profiles.role)
ROLE_OWNER = 'owner'
ROLE_ADMIN = 'admin'
ROLE_EMPLOYEE = 'employee'
ROLE_RESIDENT = 'residente'
ROLE_CYTOTECH = 'citotecno'
ROLE_PATHOLOGIST = 'patologo'

RECEPTIONIST_ROLES = {ROLE_EMPLOYEE}
PATHOLOGIST_ROLES = {ROLE_PATHOLOGIST}
CYTOTECH_ROLES = {ROLE_CYTOTECH}

# Reporting modes: what the monthly trend measures
REPORTING_MODE_REVENUE = 'revenue'
REPORTING_MODE_CASE_COUNT = 'case_count'

# Exam type spelling variants, keyed by the accent-free lowercase form
EXAM_TYPE_SYNONYMS = {
    'citologias': 'citologia',
    'cytologia': 'citologia',
    'biopsias': 'biopsia',
    'ihq': 'inmunohistoquimica',
    'inmuno': 'inmunohistoquimica',
    'inmunohistoquimicas': 'inmunohistoquimica',
    'inmunohistoquimia': 'inmunohistoquimica',
}

# Branch name variants that refer to the same physical branch.
# Keyed by the accent-free lowercase form, value is the canonical display name.
BRANCH_ALIASES = {
    'cafetal': 'El Cafetal',
    'el cafetal': 'El Cafetal',
    'paseo hatillo': 'Paseo El Hatillo',
    'paseo el hatillo': 'Paseo El Hatillo',
    'cnx': 'CNX',
}

UNKNOWN_STAFF_LABEL = "Unknown staff ({staff_id})"
