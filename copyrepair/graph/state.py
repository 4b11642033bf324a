"""
State schema for the generate -> validate -> repair workflow.

One state object per request; nothing is shared between runs.
"""
from typing import Any, Callable, Optional, TypedDict

from ..models.violation import Attempt, ValidationResult, Violation
from ..validators.base import ValidationContext

# (message, attempt index, violations of the latest validation)
ProgressCallback = Callable[[str, int, list[Violation]], Any]


class RepairState(TypedDict, total=False):
    """Shared state across the workflow nodes."""

    # ==========================================================================
    # INPUT
    # ==========================================================================
    request: str                              # Parsed brief
    context: ValidationContext                # Per-request overrides
    progress: Optional[ProgressCallback]      # Caller's progress hook

    # ==========================================================================
    # LOOP
    # ==========================================================================
    attempt: int                              # Last consumed attempt index
    draft: str                                # Latest successfully generated draft
    strategy: str                             # generate | surgical | full
    validation: Optional[ValidationResult]    # Validation of ``draft``
    history: list[Attempt]                    # Validated attempts, in order
    repair_failed: bool                       # Last repair call raised GenerationFailure

    # ==========================================================================
    # OUTPUT
    # ==========================================================================
    stopped_reason: Optional[str]             # valid | repair_disabled | exhausted | non_convergence
    result: Any                               # GenerationResult


def create_initial_state(
    request: str,
    context: ValidationContext,
    progress: Optional[ProgressCallback] = None,
) -> RepairState:
    return RepairState(
        request=request,
        context=context,
        progress=progress,
        attempt=0,
        draft="",
        strategy="generate",
        validation=None,
        history=[],
        repair_failed=False,
        stopped_reason=None,
        result=None,
    )
