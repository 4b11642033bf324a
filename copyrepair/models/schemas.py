"""Pydantic models for API requests and responses."""
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

from .violation import Attempt, GenerationResult, ValidationResult, Violation

CopyFormat = Literal["email", "multiformat"]


class ViolationModel(BaseModel):
    """One rule breach."""

    code: str
    severity: Literal["ERROR", "WARNING", "INFO"]
    message: str
    location: str
    evidence: str = ""
    suggested_fix: Optional[str] = None

    @classmethod
    def from_violation(cls, violation: Violation) -> "ViolationModel":
        return cls(**violation.to_dict())


class ValidateRequest(BaseModel):
    """Request for the validation-only endpoint."""

    draft: str = Field(..., description="Draft text to check")
    format: CopyFormat = Field("email", description="Rulebook to validate against")
    brief: Optional[str] = Field(None, description="Brief whose [VAR]/[LIMIT] directives apply")
    required_variants: Optional[dict[str, int]] = Field(None, description="Field id -> variant count override")
    char_limits: Optional[dict[str, int]] = Field(None, description="Field id -> max characters override")


class ValidateResponse(BaseModel):
    """Validation outcome."""

    is_valid: bool
    error_count: int
    warning_count: int
    violations: list[ViolationModel]
    structure: dict[str, Any]
    stats: dict[str, int]

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidateResponse":
        return cls(
            is_valid=result.is_valid,
            error_count=result.error_count,
            warning_count=result.warning_count,
            violations=[ViolationModel.from_violation(v) for v in result.violations],
            structure=result.structure,
            stats=result.stats.to_dict(),
        )


class GenerateRequest(BaseModel):
    """Request for the generation endpoint."""

    brief: str = Field(..., min_length=1, description="Parsed brief")
    format: CopyFormat = Field("email", description="Output format")
    max_attempts: Optional[int] = Field(None, ge=1, le=10, description="Overrides MAX_REPAIR_ATTEMPTS")
    enable_repair: Optional[bool] = Field(None, description="Overrides ENABLE_REPAIR_LOOP")


class AttemptSummary(BaseModel):
    """One validated attempt, without its draft text."""

    index: int
    strategy: str
    error_count: int
    warning_count: int
    signature: list[str]

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> "AttemptSummary":
        return cls(
            index=attempt.index,
            strategy=attempt.strategy,
            error_count=attempt.validation.error_count,
            warning_count=attempt.validation.warning_count,
            signature=list(attempt.validation.signature),
        )


class GenerateResponse(BaseModel):
    """Best attempt of a generation session."""

    success: bool
    content: str
    violations: list[ViolationModel]
    attempts: int
    attempt_history: list[AttemptSummary]
    structure: dict[str, Any]
    stopped_reason: Literal["valid", "repair_disabled", "exhausted", "non_convergence"]
    best_attempt: int
    execution_time_ms: int

    @classmethod
    def from_result(cls, result: GenerationResult, execution_time_ms: int) -> "GenerateResponse":
        return cls(
            success=result.success,
            content=result.content,
            violations=[ViolationModel.from_violation(v) for v in result.violations],
            attempts=result.attempts,
            attempt_history=[AttemptSummary.from_attempt(a) for a in result.attempt_history],
            structure=result.structure,
            stopped_reason=result.stopped_reason,
            best_attempt=result.best_attempt,
            execution_time_ms=execution_time_ms,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    formats: list[str]
    knowledge_sections: int
