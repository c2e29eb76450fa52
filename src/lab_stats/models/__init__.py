# Package initialization
# Import all models to ensure relationships are properly established
from .laboratory import Laboratory, LaboratorySettings, StatisticsSettings
from .patient import Patient
from .profile import Profile
from .medical_case import MedicalCase

__all__ = [
    "Laboratory",
    "LaboratorySettings",
    "StatisticsSettings",
    "Patient",
    "Profile",
    "MedicalCase",
]
