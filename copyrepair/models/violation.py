"""
Violation model shared by every stage of the repair engine.

A Violation is one detected breach of a deterministic rule. The validator
produces them, the scope resolver and knowledge selector read them, and the
orchestrator keeps them in its attempt history. Violations are frozen: once
produced they are never mutated.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

DOCUMENT_LOCATION = "document"
ALL_FIELDS = "all"


class Severity(Enum):
    """Severity level for a violation."""
    ERROR = "ERROR"        # Blocks validity, must be repaired
    WARNING = "WARNING"    # Should be fixed, does not block
    INFO = "INFO"          # FYI, no action needed


@dataclass(frozen=True)
class Violation:
    """A single rule breach found in a draft."""
    code: str
    severity: Severity
    message: str
    location: str  # field id or "document"
    evidence: str = ""
    suggested_fix: Optional[str] = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.code, self.location)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "location": self.location,
            "evidence": self.evidence[:200] if self.evidence else "",
            "suggested_fix": self.suggested_fix,
        }


def violation_signature(violations: list[Violation]) -> tuple[str, ...]:
    """Sorted set of ``code:location`` pairs identifying a validation outcome."""
    return tuple(sorted({f"{v.code}:{v.location}" for v in violations}))


def count_errors(violations: list[Violation]) -> int:
    return sum(1 for v in violations if v.severity == Severity.ERROR)


@dataclass
class ValidationStats:
    """Counters collected while running the check battery."""
    checked: int = 0
    errors: int = 0
    warnings: int = 0

    def to_dict(self) -> dict:
        return {"checked": self.checked, "errors": self.errors, "warnings": self.warnings}


@dataclass
class ValidationResult:
    """Result of validating one draft."""
    is_valid: bool
    violations: list[Violation] = field(default_factory=list)
    structure: dict[str, Any] = field(default_factory=dict)
    stats: ValidationStats = field(default_factory=ValidationStats)

    @property
    def error_count(self) -> int:
        return count_errors(self.violations)

    @property
    def warning_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == Severity.WARNING)

    @property
    def signature(self) -> tuple[str, ...]:
        return violation_signature(self.violations)

    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.is_error]

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "violations": [v.to_dict() for v in self.violations],
            "structure": self.structure,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class RepairScope:
    """Which part of a draft a repair has to regenerate."""
    field: str
    requires_full_context: bool

    @classmethod
    def full(cls) -> "RepairScope":
        return cls(field=ALL_FIELDS, requires_full_context=True)

    @classmethod
    def for_field(cls, field_id: str) -> "RepairScope":
        return cls(field=field_id, requires_full_context=False)

    @property
    def is_surgical(self) -> bool:
        return not self.requires_full_context


@dataclass
class Attempt:
    """One completed generate-and-validate round trip."""
    index: int
    draft: str
    validation: ValidationResult
    strategy: str = "generate"  # generate | surgical | full

    @property
    def error_count(self) -> int:
        return self.validation.error_count

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "strategy": self.strategy,
            "draft": self.draft,
            "validation": self.validation.to_dict(),
        }


@dataclass
class GenerationResult:
    """Caller-facing outcome of one generation request."""
    success: bool
    content: str
    violations: list[Violation]
    attempts: int
    attempt_history: list[Attempt] = field(default_factory=list)
    structure: dict[str, Any] = field(default_factory=dict)
    stopped_reason: str = "valid"  # valid | repair_disabled | exhausted | non_convergence
    best_attempt: int = 1

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "content": self.content,
            "violations": [v.to_dict() for v in self.violations],
            "attempts": self.attempts,
            "attempt_history": [a.to_dict() for a in self.attempt_history],
            "structure": self.structure,
            "stopped_reason": self.stopped_reason,
            "best_attempt": self.best_attempt,
        }
