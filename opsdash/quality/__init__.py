"""
Data Quality Module
"""
from .validators import (
    IntegrityValidator,
    ValidationCheck,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
    create_attendance_validator,
    create_business_validator,
    create_talent_validator,
    validate_snapshot,
)

__all__ = [
    "IntegrityValidator",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "create_attendance_validator",
    "create_business_validator",
    "create_talent_validator",
    "validate_snapshot",
]
