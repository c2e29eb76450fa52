"""
Profile model representing a staff member of a laboratory.

Profiles are referenced by cases through created_by, generated_by,
pathologist_id and cytotech_id. The role decides in which staff ranking
(receptionists, pathologists, cytology technicians) the member appears.
"""

from typing import Optional

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_stats.core.database import Base


class Profile(Base):
    """Staff profile entity."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    """Unique identifier (matches the authentication user id)."""

    laboratory_id: Mapped[Optional[str]] = mapped_column(ForeignKey("laboratories.id"), nullable=True, index=True)
    """Laboratory the staff member works for."""

    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Name shown in rankings."""

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Login email, used as display fallback."""

    role: Mapped[str] = mapped_column(String(50))
    """Staff role (e.g., "employee", "patologo", "citotecno")."""

    laboratory = relationship("Laboratory", back_populates="profiles")
