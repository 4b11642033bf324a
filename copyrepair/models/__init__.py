"""Data models: violations, validation results, attempts and API schemas."""
from .violation import (
    ALL_FIELDS,
    DOCUMENT_LOCATION,
    Attempt,
    GenerationResult,
    RepairScope,
    Severity,
    ValidationResult,
    ValidationStats,
    Violation,
    count_errors,
    violation_signature,
)

__all__ = [
    "ALL_FIELDS",
    "DOCUMENT_LOCATION",
    "Attempt",
    "GenerationResult",
    "RepairScope",
    "Severity",
    "ValidationResult",
    "ValidationStats",
    "Violation",
    "count_errors",
    "violation_signature",
]
