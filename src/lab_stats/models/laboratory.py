"""
Laboratory model representing a tenant of the system.

A laboratory owns all cases, patients and staff profiles. Statistics are always
computed for exactly one laboratory; the laboratory also carries the role
configuration and reporting settings the statistics engine depends on.
"""

from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_stats.core.database import Base
from lab_stats.core.constants import MAX_STRING_LENGTH


class StatisticsSettings(BaseModel):
    """Schema for statistics/reporting settings."""
    reporting_mode: Literal["revenue", "case_count"] = Field(
        default="revenue",
        description="What the monthly sales trend measures: collected revenue or number of cases"
    )
    local_currency_methods: Optional[List[str]] = Field(
        default=None,
        description="Payment method names collected in local currency. None uses the system-wide list."
    )

    @field_validator('local_currency_methods')
    @classmethod
    def strip_blank_methods(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        cleaned = [method.strip() for method in value if method and method.strip()]
        return cleaned or None


class LaboratorySettings(BaseModel):
    """Schema for all laboratory settings."""
    statistics_settings: StatisticsSettings = Field(default_factory=StatisticsSettings)


class Laboratory(Base):
    """
    Laboratory (tenant) entity.

    Represents a laboratory that uses the system. Each laboratory has:
    - Its own set of enabled staff roles (available_roles)
    - Branches, patients and cases
    - Reporting settings stored as validated JSON
    """

    __tablename__ = "laboratories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    """Unique identifier for the laboratory."""

    slug: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), unique=True)
    """Short unique name used in URLs and configuration (e.g., "spt")."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name of the laboratory."""

    available_roles: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    """
    Staff roles enabled for this laboratory (e.g., ["owner", "employee", "patologo"]).

    A laboratory without configured roles cannot produce statistics.
    """

    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    """Laboratory settings, see LaboratorySettings for the schema."""

    profiles = relationship("Profile", back_populates="laboratory")
    patients = relationship("Patient", back_populates="laboratory")
    cases = relationship("MedicalCase", back_populates="laboratory")

    def get_validated_settings(self) -> LaboratorySettings:
        """Get settings with schema validation."""
        return LaboratorySettings.model_validate(self.settings or {})

    def set_validated_settings(self, settings: LaboratorySettings):
        """Set settings with schema validation."""
        self.settings = settings.model_dump()
