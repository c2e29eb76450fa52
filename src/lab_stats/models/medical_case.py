"""
MedicalCase model representing one registered laboratory case.

A case records what was billed (total_amount, reference currency) and up to four
payment legs describing what was actually collected, each in either the
reference or the local currency. The exchange rate stored on the case converts
local-currency legs back to the reference currency.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, ForeignKey, TIMESTAMP, Numeric, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_stats.core.database import Base


class MedicalCase(Base):
    """
    Medical case entity.

    Key features:
    - Billed amount in reference currency (total_amount)
    - Four fixed payment legs (payment_method_N / payment_amount_N)
    - Per-case exchange rate (local units per reference unit)
    - Staff attribution (created_by, generated_by, pathologist_id, cytotech_id)
    """

    __tablename__ = "medical_records_clean"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    """Unique identifier for the case."""

    laboratory_id: Mapped[str] = mapped_column(ForeignKey("laboratories.id"))
    """Reference to the laboratory that registered this case."""

    patient_id: Mapped[Optional[str]] = mapped_column(ForeignKey("patients.id"), nullable=True)
    """Reference to the patient. Null for cases whose patient was never linked."""

    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Human readable case code."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Registration timestamp. Drives period, trend and new-patient calculations."""

    branch: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    exam_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    origin: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Originating entity (procedencia)."""
    treating_doctor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    """Billed amount in reference currency."""

    payment_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """'Pagado' or 'Incompleto'."""

    exchange_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), nullable=True)
    """Local-currency units per one reference-currency unit at registration time."""

    payment_method_1: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_amount_1: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    payment_method_2: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_amount_2: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    payment_method_3: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_amount_3: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    payment_method_4: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_amount_4: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    """Profile id of the staff member who registered the case."""

    generated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    """Profile id of the staff member who generated the report document."""

    pathologist_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    """Explicitly assigned pathologist."""

    cytotech_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    """Explicitly assigned cytology technician."""

    biopsy_block_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Number of paraffin blocks produced for the case."""

    laboratory = relationship("Laboratory", back_populates="cases")
    patient = relationship("Patient", back_populates="cases")

    __table_args__ = (
        Index('idx_cases_laboratory_created_at', 'laboratory_id', 'created_at'),
    )
