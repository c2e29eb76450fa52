"""
Patient model representing individuals whose samples the laboratory processes.

Each patient belongs to exactly one laboratory and can have many cases.
"""

from typing import Optional

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_stats.core.database import Base


class Patient(Base):
    """Patient entity."""

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    """Unique identifier for the patient."""

    laboratory_id: Mapped[str] = mapped_column(ForeignKey("laboratories.id"), index=True)
    """Reference to the laboratory this patient belongs to."""

    cedula: Mapped[str] = mapped_column(String(50))
    """National identity document number."""

    nombre: Mapped[str] = mapped_column(String(255))
    """Full name of the patient."""

    telefono: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Optional contact phone number."""

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Optional contact email."""

    laboratory = relationship("Laboratory", back_populates="patients")
    cases = relationship("MedicalCase", back_populates="patient")
